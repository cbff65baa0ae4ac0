"""
Login, register, add-character and modify-scopes flows.

Every flow starts with a redirect to the SSO carrying an encrypted flow state and
resumes in a callback that decrypts it. A callback ends either by delivering a
session token or by sending the browser to the accounts app (character_not_found,
missing_scopes) with enough state to resume.
"""
import asyncio
import logging
import secrets
import time
from urllib.parse import quote, unquote, urlencode

from fastapi import status
from fastapi.responses import JSONResponse, RedirectResponse

from sso_broker import audit
from sso_broker.config import ACCOUNTS_ORIGIN, LOGIN_CLIENT, REGISTER_CLIENT, ClientProfile
from sso_broker.delivery import clear_session_cookie, deliver
from sso_broker.directory import CharacterRecord, Directory, ProfileRecord, SsoGrant
from sso_broker.errors import bad_request, unauthorized
from sso_broker.identity import UserDirectory
from sso_broker.scopes import build_register_scopes, compute_deficit, merge_scopes, normalize_requested, parse_scopes
from sso_broker.session_tokens import SessionTokenIssuer
from sso_broker.sso import IdentityAssertion, SsoClient, build_authorize_url
from sso_broker.state_codec import (
    AddCharacterState,
    DecodeError,
    FlowState,
    LoginState,
    RegisterState,
    ResponseType,
    ScopesState,
    StateCodec,
)

logger = logging.getLogger(__name__)

ERROR_CHARACTER_NOT_FOUND = "character_not_found"
ERROR_MISSING_SCOPES = "missing_scopes"

# SSO access tokens are treated as expired this many seconds early
EXPIRY_MARGIN_SECONDS = 60


def generate_account_id() -> str:
    """New profile key: 20 URL-safe characters."""
    return secrets.token_urlsafe(15)


def grant_from(assertion: IdentityAssertion) -> SsoGrant:
    expires_in = assertion.tokens.expires_in - EXPIRY_MARGIN_SECONDS
    return SsoGrant(
        access_token=assertion.tokens.access_token,
        refresh_token=assertion.tokens.refresh_token,
        expires_at=int(time.time() * 1000) + expires_in * 1000,
        scope=assertion.scopes,
    )


def character_from(assertion: IdentityAssertion, account_id: str) -> CharacterRecord:
    return CharacterRecord(
        id=assertion.character_id,
        account_id=account_id,
        name=assertion.character_name,
        owner_hash=assertion.owner_hash,
        sso=grant_from(assertion),
    )


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=302)


def _query(params: dict) -> str:
    return urlencode(params, quote_via=quote)


def _require_redirect(redirect_to: str | None) -> str:
    if not redirect_to:
        raise bad_request("redirect_to parameter is required.")
    return unquote(redirect_to)


async def _settle(*writes) -> None:
    """Wait for every write to finish, then raise the first failure. Completed writes stay."""
    results = await asyncio.gather(*writes, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result


def _require_response_type(value: str | None) -> ResponseType:
    response_type = ResponseType.parse(value)
    if response_type is None:
        raise bad_request("valid response_type parameter is required.")
    return response_type


class AuthFlows:
    def __init__(
        self,
        *,
        codec: StateCodec,
        issuer: SessionTokenIssuer,
        directory: Directory,
        users: UserDirectory,
        sso: SsoClient,
        login_client: ClientProfile = LOGIN_CLIENT,
        register_client: ClientProfile = REGISTER_CLIENT,
        accounts_origin: str = ACCOUNTS_ORIGIN,
    ):
        self.codec = codec
        self.issuer = issuer
        self.directory = directory
        self.users = users
        self.sso = sso
        self.login_client = login_client
        self.register_client = register_client
        self.accounts_origin = accounts_origin

    # --- accounts app redirects ---

    def character_not_found_url(self, redirect: str, scopes: list[str]) -> str:
        return f"{self.accounts_origin}?" + _query(
            {"type": ERROR_CHARACTER_NOT_FOUND, "redirect_to": redirect, "scopes": " ".join(scopes)}
        )

    def missing_scopes_url(self, character: CharacterRecord, redirect: str, missing: list[str]) -> str:
        state = self.codec.encode(
            ScopesState(account_id=character.account_id, character_id=character.id, scopes=missing)
        )
        return f"{self.accounts_origin}?" + _query(
            {"type": ERROR_MISSING_SCOPES, "name": character.name, "redirect": redirect, "state": state}
        )

    def _decode(self, token: str | None, *variants: type) -> FlowState:
        try:
            state = self.codec.decode(token)
        except DecodeError as e:
            raise bad_request(f"Invalid state: {e}")
        if not isinstance(state, variants):
            raise bad_request(f"state of type {state.type} is not valid here")
        return state

    # --- login ---

    def start_login(
        self, *, host: str, redirect_to: str | None, response_type: str | None, scopes: str | None
    ) -> RedirectResponse:
        redirect = _require_redirect(redirect_to)
        state = LoginState(
            audience=host,
            response_type=_require_response_type(response_type),
            redirect=redirect,
            scopes=normalize_requested(scopes),
        )
        return _redirect(
            build_authorize_url(base_url=self.sso.base_url, client=self.login_client, state=self.codec.encode(state))
        )

    async def login_callback(self, *, code: str | None, state: str | None, ip: str | None = None):
        flow = self._decode(state, LoginState)
        if not code:
            raise bad_request("code parameter is required.")
        assertion = await self.sso.authenticate(code, self.login_client)
        character = await self.directory.get_character(assertion.character_id)

        if character is None:
            logger.info("Login for unknown character_id=%s", assertion.character_id)
            await self.directory.record_event(
                audit.EVENT_LOGIN_CHARACTER_NOT_FOUND,
                character_id=assertion.character_id,
                ip=ip,
                outcome=audit.OUTCOME_BLOCKED,
            )
            return _redirect(self.character_not_found_url(flow.redirect, flow.scopes))

        profile = await self.directory.get_profile(character.account_id)
        if profile is None:
            raise bad_request("Profile for character not found.")
        token = self.issuer.issue(flow.audience, profile.id, profile.main_id)

        missing = compute_deficit(flow.scopes, character.sso)
        if missing:
            # Re-authorization wins; the minted token is not handed out
            logger.info("Login character_id=%s missing scopes: %s", character.id, " ".join(missing))
            await self.directory.record_event(
                audit.EVENT_LOGIN_MISSING_SCOPES,
                character_id=character.id,
                account_id=profile.id,
                ip=ip,
                outcome=audit.OUTCOME_BLOCKED,
            )
            return _redirect(self.missing_scopes_url(character, flow.redirect, missing))

        await self.directory.record_event(
            audit.EVENT_LOGIN_OK, character_id=character.id, account_id=profile.id, ip=ip
        )
        return deliver(flow.redirect, token, flow.response_type)

    def logout(self, *, redirect_to: str | None) -> RedirectResponse:
        if not redirect_to:
            raise bad_request("redirect_to parameter is required.")
        response = _redirect(redirect_to)
        clear_session_cookie(response)
        return response

    # --- register / add character ---

    def _register_redirect(self, state: FlowState, scopes: str | None) -> RedirectResponse:
        return _redirect(
            build_authorize_url(
                base_url=self.sso.base_url,
                client=self.register_client,
                state=self.codec.encode(state),
                scopes=build_register_scopes(scopes),
            )
        )

    def start_register(
        self, *, host: str, redirect_to: str | None, response_type: str | None, scopes: str | None
    ) -> RedirectResponse:
        redirect = _require_redirect(redirect_to)
        state = RegisterState(
            audience=host,
            response_type=_require_response_type(response_type),
            redirect=redirect,
        )
        return self._register_redirect(state, scopes)

    async def start_add_character(
        self, *, claims: dict, host: str, redirect_to: str | None, scopes: str | None
    ) -> RedirectResponse:
        redirect = _require_redirect(redirect_to)
        if claims.get("aud") != host:
            raise unauthorized("invalid_client: Token is for another client")
        profile = await self.directory.get_profile(claims["accountId"])
        if profile is None:
            raise unauthorized("Profile not found")
        state = AddCharacterState(audience=host, account_id=profile.id, redirect=redirect)
        return self._register_redirect(state, scopes)

    async def register_callback(self, *, code: str | None, state: str | None, ip: str | None = None):
        flow = self._decode(state, RegisterState, AddCharacterState)
        if not code:
            raise bad_request("code parameter is required.")
        assertion = await self.sso.authenticate(code, self.register_client)
        character = await self.directory.get_character(assertion.character_id)

        if character is None:
            if isinstance(flow, RegisterState):
                return await self._create_profile(flow, assertion, ip)
            return await self._add_character(flow, assertion, ip)

        if character.has_grant:
            await self.sso.revoke(character.sso.access_token, self.register_client)
        await self.directory.set_grant(character.id, grant_from(assertion))

        account_id = flow.account_id if isinstance(flow, AddCharacterState) else character.account_id
        logger.info("Replaced SSO grant for character_id=%s account_id=%s", character.id, account_id)
        await self.directory.record_event(
            audit.EVENT_GRANT_REPLACED, character_id=character.id, account_id=account_id, ip=ip
        )
        token = self.issuer.issue(flow.audience, account_id, assertion.character_id)
        # Add-character callers already hold a session
        response_type = getattr(flow, "response_type", ResponseType.NONE)
        return deliver(flow.redirect, token, response_type)

    async def _create_profile(self, flow: RegisterState, assertion: IdentityAssertion, ip: str | None):
        account_id = generate_account_id()
        # Independent writes, no rollback if one of them fails
        await _settle(
            self.users.upsert_user(assertion),
            self.directory.set_character(character_from(assertion, account_id)),
            self.directory.set_profile(
                ProfileRecord(id=account_id, main_id=assertion.character_id, name=assertion.character_name)
            ),
        )
        logger.info("Created profile account_id=%s main character_id=%s", account_id, assertion.character_id)
        await self.directory.record_event(
            audit.EVENT_PROFILE_CREATED, character_id=assertion.character_id, account_id=account_id, ip=ip
        )
        token = self.issuer.issue(flow.audience, account_id, assertion.character_id)
        return deliver(flow.redirect, token, flow.response_type)

    async def _add_character(self, flow: AddCharacterState, assertion: IdentityAssertion, ip: str | None):
        await _settle(
            self.users.upsert_user(assertion),
            self.directory.set_character(character_from(assertion, flow.account_id)),
        )
        logger.info("Linked character_id=%s to account_id=%s", assertion.character_id, flow.account_id)
        await self.directory.record_event(
            audit.EVENT_CHARACTER_ADDED, character_id=assertion.character_id, account_id=flow.account_id, ip=ip
        )
        return _redirect(flow.redirect)

    # --- modify scopes ---

    async def modify_scopes(self, *, redirect_to: str | None, state: str | None) -> RedirectResponse:
        if not redirect_to:
            raise bad_request("redirect_to parameter is required.")
        if not state:
            raise bad_request("state parameter is required.")
        flow = self._decode(state, ScopesState)
        character = await self.directory.get_character(flow.character_id)
        if character is None:
            raise bad_request("character not found.")
        scopes = merge_scopes(flow.scopes, character.sso)
        return _redirect(
            "/auth/register?"
            + _query({"redirect_to": unquote(redirect_to), "response_type": "none", "scopes": " ".join(scopes)})
        )

    # --- protected resource check ---

    async def verify(
        self,
        *,
        claims: dict,
        character_id: int | None,
        scopes: str | None,
        referrer: str,
        ip: str | None = None,
    ):
        if not scopes:
            raise bad_request("scopes parameter is required.")
        required = parse_scopes(scopes)
        account_id = claims["accountId"]
        target = character_id if character_id is not None else claims.get("mainId")

        profile = await self.directory.get_profile(account_id)
        if profile is None:
            raise bad_request("profile doesn't exist!")

        character = await self.directory.get_character(target) if target is not None else None
        if character is None:
            await self.directory.record_event(
                audit.EVENT_VERIFY_BLOCKED, character_id=target, account_id=account_id, ip=ip,
                outcome=audit.OUTCOME_BLOCKED,
            )
            return JSONResponse(
                {"error": ERROR_CHARACTER_NOT_FOUND, "redirect": self.character_not_found_url(referrer, required)},
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        if character.account_id != account_id:
            raise unauthorized("Character not part of provided profile!")

        missing = compute_deficit(required, character.sso)
        if missing:
            await self.directory.record_event(
                audit.EVENT_VERIFY_BLOCKED, character_id=character.id, account_id=account_id, ip=ip,
                outcome=audit.OUTCOME_BLOCKED,
            )
            return JSONResponse(
                {"error": ERROR_MISSING_SCOPES, "redirect": self.missing_scopes_url(character, referrer, missing)},
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        await self.directory.record_event(
            audit.EVENT_VERIFY_OK, character_id=character.id, account_id=account_id, ip=ip
        )
        return {"characterId": character.id, "token": self.users.create_custom_token(str(character.id))}
