"""Tests for the EVE SSO client (httpx MockTransport, no network)."""
import asyncio
import base64
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from sso_broker.config import ClientProfile
from sso_broker.sso import SsoClient, TokenSet, build_authorize_url

CLIENT = ClientProfile(client_id="cid", client_secret="csecret", redirect_uri="https://api.example/auth/register/callback")


def _basic(request: httpx.Request) -> str:
    header = request.headers["authorization"]
    assert header.startswith("Basic ")
    return base64.b64decode(header[6:]).decode()


def _client(handler) -> SsoClient:
    return SsoClient("https://sso.example", http=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_build_authorize_url_with_scopes():
    url = build_authorize_url(base_url="https://sso.example", client=CLIENT, state="abc", scopes=["a.v1", "b.v1"])
    assert url.startswith("https://sso.example/oauth/authorize?")
    assert "scope=a.v1%20b.v1" in url
    params = parse_qs(urlparse(url).query)
    assert params["response_type"] == ["code"]
    assert params["client_id"] == ["cid"]
    assert params["redirect_uri"] == [CLIENT.redirect_uri]
    assert params["state"] == ["abc"]


def test_build_authorize_url_without_scopes():
    url = build_authorize_url(base_url="https://sso.example", client=CLIENT, state="abc")
    assert "scope=" not in url


def test_authenticate_exchanges_and_verifies():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if request.url.path == "/oauth/token":
            assert _basic(request) == "cid:csecret"
            assert parse_qs(request.content.decode()) == {"grant_type": ["authorization_code"], "code": ["the-code"]}
            return httpx.Response(
                200,
                json={"access_token": "at", "token_type": "Bearer", "expires_in": 1200, "refresh_token": "rt"},
            )
        if request.url.path == "/oauth/verify":
            assert request.headers["authorization"] == "Bearer at"
            return httpx.Response(
                200,
                json={
                    "CharacterID": 90000001,
                    "CharacterName": "Pilot One",
                    "CharacterOwnerHash": "hash",
                    "Scopes": "esi-characters.read_titles.v1",
                },
            )
        return httpx.Response(404)

    assertion = asyncio.run(_client(handler).authenticate("the-code", CLIENT))
    assert seen == ["/oauth/token", "/oauth/verify"]
    assert assertion.character_id == 90000001
    assert assertion.character_name == "Pilot One"
    assert assertion.owner_hash == "hash"
    assert assertion.scopes == "esi-characters.read_titles.v1"
    assert assertion.tokens == TokenSet(token_type="Bearer", access_token="at", refresh_token="rt", expires_in=1200)


def test_exchange_failure_propagates():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant"})

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(_client(handler).authenticate("bad", CLIENT))


def test_revoke_posts_access_token():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/oauth/revoke"
        assert _basic(request) == "cid:csecret"
        bodies.append(parse_qs(request.content.decode()))
        return httpx.Response(200)

    asyncio.run(_client(handler).revoke("old-at", CLIENT))
    assert bodies == [{"token_type_hint": ["access_token"], "token": ["old-at"]}]
