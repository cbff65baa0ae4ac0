"""
Process-wide collaborators, built once from config and handed to routes as FastAPI dependencies.
Tests replace them through app.dependency_overrides.
"""
from sso_broker.config import ISSUER, JWT_SECRET_KEY, SSO_BASE_URL, SSO_TIMEOUT
from sso_broker.database import SessionLocal
from sso_broker.directory import Directory
from sso_broker.flows import AuthFlows
from sso_broker.identity import UserDirectory
from sso_broker.session_tokens import SessionTokenIssuer
from sso_broker.sso import SsoClient
from sso_broker.state_codec import StateCodec

_issuer: SessionTokenIssuer | None = None
_flows: AuthFlows | None = None


def get_session_issuer() -> SessionTokenIssuer:
    global _issuer
    if _issuer is None:
        _issuer = SessionTokenIssuer(JWT_SECRET_KEY, ISSUER)
    return _issuer


def get_flows() -> AuthFlows:
    global _flows
    if _flows is None:
        _flows = AuthFlows(
            codec=StateCodec(JWT_SECRET_KEY),
            issuer=get_session_issuer(),
            directory=Directory(SessionLocal),
            users=UserDirectory(SessionLocal),
            sso=SsoClient(SSO_BASE_URL, timeout=SSO_TIMEOUT),
        )
    return _flows


async def close_flows() -> None:
    global _flows
    if _flows is not None:
        await _flows.sso.aclose()
        _flows = None
