"""
/auth endpoints: entry redirects, SSO callbacks, scope re-authorization, verify, logout.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from sso_broker.audit import get_client_ip
from sso_broker.auth import ProfileClaims
from sso_broker.dependencies import get_flows
from sso_broker.flows import AuthFlows

router = APIRouter(prefix="/auth")

Flows = Annotated[AuthFlows, Depends(get_flows)]


def _host(request: Request) -> str:
    """Audience of issued session tokens: the Host the browser called."""
    return request.headers.get("host", "")


@router.get("/login")
def login(
    request: Request,
    flows: Flows,
    redirect_to: str | None = None,
    response_type: str | None = None,
    scopes: str | None = None,
):
    """Start login with the login client. Scopes are checked on the callback, not requested."""
    return flows.start_login(host=_host(request), redirect_to=redirect_to, response_type=response_type, scopes=scopes)


@router.get("/login/callback")
async def login_callback(request: Request, flows: Flows, code: str | None = None, state: str | None = None):
    return await flows.login_callback(code=code, state=state, ip=get_client_ip(request))


@router.get("/logout")
def logout(flows: Flows, redirect_to: str | None = None):
    """Clear the session cookie and go back to redirect_to."""
    return flows.logout(redirect_to=redirect_to)


@router.get("/register")
def register(
    request: Request,
    flows: Flows,
    redirect_to: str | None = None,
    response_type: str | None = None,
    scopes: str | None = None,
):
    """Start registration with the register client; requests scopes (defaults if none given)."""
    return flows.start_register(
        host=_host(request), redirect_to=redirect_to, response_type=response_type, scopes=scopes
    )


@router.get("/register/callback")
async def register_callback(request: Request, flows: Flows, code: str | None = None, state: str | None = None):
    """Callback for both register and add-character."""
    return await flows.register_callback(code=code, state=state, ip=get_client_ip(request))


@router.get("/character")
async def add_character(
    request: Request,
    flows: Flows,
    claims: ProfileClaims,
    redirect_to: str | None = None,
    scopes: str | None = None,
):
    """Link another character to the caller's profile."""
    return await flows.start_add_character(
        claims=claims, host=_host(request), redirect_to=redirect_to, scopes=scopes
    )


@router.get("/scopes")
async def modify_scopes(flows: Flows, redirect_to: str | None = None, state: str | None = None):
    """Re-enter registration asking for the missing scopes plus everything already held."""
    return await flows.modify_scopes(redirect_to=redirect_to, state=state)


@router.get("/verify")
async def verify_main(request: Request, flows: Flows, claims: ProfileClaims, scopes: str | None = None):
    """Check the main character holds scopes; returns a custom token for it."""
    return await flows.verify(
        claims=claims,
        character_id=None,
        scopes=scopes,
        referrer=request.headers.get("referer", ""),
        ip=get_client_ip(request),
    )


@router.get("/verify/{character_id}")
async def verify_character(
    request: Request, flows: Flows, claims: ProfileClaims, character_id: int, scopes: str | None = None
):
    """Same as /verify for a specific character of the caller's profile."""
    return await flows.verify(
        claims=claims,
        character_id=character_id,
        scopes=scopes,
        referrer=request.headers.get("referer", ""),
        ip=get_client_ip(request),
    )
