"""
Authentication of profile session tokens on protected endpoints.
Accepts `Authorization: Bearer <token>` or the profile_jwt cookie.
"""
import logging
from typing import Annotated

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sso_broker.delivery import COOKIE_NAME
from sso_broker.dependencies import get_session_issuer
from sso_broker.errors import unauthorized
from sso_broker.session_tokens import SessionTokenIssuer

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_session_token(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Bearer header first, then the session cookie. 401 if neither is present."""
    if credentials is not None:
        if credentials.scheme.lower() != "bearer":
            raise unauthorized("Bearer scheme required")
        return credentials.credentials
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise unauthorized("Authorization header missing")
    return token


def get_profile_claims(
    token: Annotated[str, Depends(get_session_token)],
    issuer: Annotated[SessionTokenIssuer, Depends(get_session_issuer)],
) -> dict:
    """Dependency: valid session token -> claims (aud, accountId, mainId)."""
    try:
        return issuer.verify(token)
    except jwt.InvalidTokenError as e:
        logger.debug("Session token rejected: %s", e)
        raise unauthorized("Invalid session token")


ProfileClaims = Annotated[dict, Depends(get_profile_claims)]
