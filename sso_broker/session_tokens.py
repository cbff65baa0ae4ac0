"""
Profile session tokens (HS256 JWT). No expiry: rotating the secret invalidates all sessions.
"""
import logging

import jwt

logger = logging.getLogger(__name__)

SUBJECT = "profile"
ALGORITHM = "HS256"


class SessionTokenIssuer:
    def __init__(self, secret: str, issuer: str):
        if not secret:
            raise ValueError("session secret must not be empty")
        self._secret = secret
        self.issuer = issuer

    def issue(self, audience: str, account_id: str, main_id: int) -> str:
        """Sign a session token for a profile and its main character."""
        token = jwt.encode(
            {
                "iss": self.issuer,
                "sub": SUBJECT,
                "aud": audience,
                "accountId": account_id,
                "mainId": main_id,
            },
            self._secret,
            algorithm=ALGORITHM,
        )
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token

    def verify(self, token: str) -> dict:
        """
        Check signature, issuer and subject; return claims.
        Audience is left to the caller, which compares it with the requesting host.
        Raises jwt.InvalidTokenError.
        """
        claims = jwt.decode(
            token,
            self._secret,
            algorithms=[ALGORITHM],
            issuer=self.issuer,
            options={"verify_aud": False, "require": ["iss", "sub", "aud"]},
        )
        if claims.get("sub") != SUBJECT or not claims.get("accountId"):
            raise jwt.InvalidTokenError("not a profile token")
        return claims
