"""
Delivery of a finished session token to the client: bare redirect, URL fragment or cookie.
"""
from fastapi.responses import RedirectResponse

from sso_broker.config import COOKIE_DOMAIN
from sso_broker.state_codec import ResponseType

COOKIE_NAME = "profile_jwt"
COOKIE_PATH = "/"
# ~10 years
PERSISTENT_COOKIE_MAX_AGE = 60 * 60 * 24 * 365 * 10


def deliver(target: str, token: str, response_type: ResponseType) -> RedirectResponse:
    """Redirect to target, handing over the session token as response_type asks."""
    if response_type == ResponseType.TOKEN:
        # Fragment never reaches a server
        return RedirectResponse(url=f"{target}#{token}", status_code=302)

    response = RedirectResponse(url=target, status_code=302)
    if response_type == ResponseType.PERSISTENT:
        _set_session_cookie(response, token, max_age=PERSISTENT_COOKIE_MAX_AGE)
    elif response_type == ResponseType.SESSION:
        _set_session_cookie(response, token, max_age=None)
    return response


def _set_session_cookie(response: RedirectResponse, token: str, max_age: int | None) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=max_age,
        domain=COOKIE_DOMAIN,
        path=COOKIE_PATH,
        secure=True,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: RedirectResponse) -> None:
    response.delete_cookie(
        COOKIE_NAME,
        domain=COOKIE_DOMAIN,
        path=COOKIE_PATH,
        secure=True,
        httponly=True,
        samesite="lax",
    )
