"""
Client for the EVE SSO: authorize URL, code exchange, token verification, revocation.
Failures are not retried; httpx errors propagate to the caller.
"""
import logging
from dataclasses import dataclass
from urllib.parse import quote, urlencode

import httpx

from sso_broker.config import ClientProfile

logger = logging.getLogger(__name__)


@dataclass
class TokenSet:
    token_type: str
    access_token: str
    refresh_token: str
    expires_in: int


@dataclass
class IdentityAssertion:
    """Verified identity behind an authorization code, with the tokens it was exchanged for."""

    character_id: int
    character_name: str
    owner_hash: str
    scopes: str  # space-separated, as granted
    tokens: TokenSet


def build_authorize_url(
    *,
    base_url: str,
    client: ClientProfile,
    state: str,
    scopes: list[str] | None = None,
) -> str:
    """SSO /oauth/authorize URL. Scopes are joined with %20, not '+'."""
    params = {
        "response_type": "code",
        "redirect_uri": client.redirect_uri,
        "client_id": client.client_id,
    }
    if scopes:
        params["scope"] = " ".join(scopes)
    params["state"] = state
    return f"{base_url}/oauth/authorize?{urlencode(params, quote_via=quote)}"


class SsoClient:
    def __init__(self, base_url: str, http: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def exchange_code(self, code: str, client: ClientProfile) -> TokenSet:
        r = await self._http.post(
            f"{self.base_url}/oauth/token",
            data={"grant_type": "authorization_code", "code": code},
            auth=(client.client_id, client.client_secret),
            headers={"Accept": "application/json"},
        )
        r.raise_for_status()
        data = r.json()
        return TokenSet(
            token_type=data.get("token_type", "Bearer"),
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            expires_in=int(data.get("expires_in", 0)),
        )

    async def verify(self, tokens: TokenSet) -> IdentityAssertion:
        r = await self._http.get(
            f"{self.base_url}/oauth/verify",
            headers={"Authorization": f"{tokens.token_type} {tokens.access_token}", "Accept": "application/json"},
        )
        r.raise_for_status()
        data = r.json()
        return IdentityAssertion(
            character_id=int(data["CharacterID"]),
            character_name=data["CharacterName"],
            owner_hash=data.get("CharacterOwnerHash", ""),
            scopes=data.get("Scopes") or "",
            tokens=tokens,
        )

    async def authenticate(self, code: str, client: ClientProfile) -> IdentityAssertion:
        """Exchange an authorization code and verify the resulting access token."""
        tokens = await self.exchange_code(code, client)
        assertion = await self.verify(tokens)
        logger.info("SSO verified character_id=%s client_id=%s", assertion.character_id, client.client_id)
        return assertion

    async def revoke(self, access_token: str, client: ClientProfile) -> None:
        r = await self._http.post(
            f"{self.base_url}/oauth/revoke",
            data={"token_type_hint": "access_token", "token": access_token},
            auth=(client.client_id, client.client_secret),
        )
        r.raise_for_status()
