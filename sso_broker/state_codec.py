"""
Encrypted flow state carried through the SSO `state` parameter.

The broker keeps nothing between the redirect to the SSO and its callback:
everything the callback needs travels inside this token. Fernet gives
confidentiality and integrity from the one shared secret.
"""
import base64
import hashlib
import json
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """State token is malformed, forged, or does not hold a known flow state."""


class ResponseType(str, Enum):
    """How the finished session token reaches the client."""

    NONE = "none"
    TOKEN = "token"
    PERSISTENT = "persistent"
    SESSION = "session"

    @classmethod
    def parse(cls, value: str | None) -> "ResponseType | None":
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class LoginState:
    audience: str
    response_type: ResponseType
    redirect: str
    scopes: list[str] = field(default_factory=list)
    type: str = "login"


@dataclass(frozen=True)
class RegisterState:
    audience: str
    response_type: ResponseType
    redirect: str
    type: str = "register"


@dataclass(frozen=True)
class AddCharacterState:
    audience: str
    account_id: str
    redirect: str
    type: str = "addCharacter"


@dataclass(frozen=True)
class ScopesState:
    """Re-authorization request for a linked character that lacks scopes."""

    account_id: str
    character_id: int
    scopes: list[str] = field(default_factory=list)
    type: str = "scopes"


FlowState = LoginState | RegisterState | AddCharacterState | ScopesState

_VARIANTS: dict[str, type] = {
    "login": LoginState,
    "register": RegisterState,
    "addCharacter": AddCharacterState,
    "scopes": ScopesState,
}


def _state_from_payload(payload) -> FlowState:
    if not isinstance(payload, dict):
        raise DecodeError("state payload is not an object")
    # Login states written before the tag existed carry no type
    tag = payload.get("type") or "login"
    variant = _VARIANTS.get(tag)
    if variant is None:
        raise DecodeError(f"unknown state type: {tag}")
    try:
        state = variant(**payload)
    except TypeError as e:
        raise DecodeError(f"invalid {tag} state") from e
    if hasattr(state, "response_type"):
        response_type = ResponseType.parse(state.response_type)
        if response_type is None:
            raise DecodeError("invalid response_type in state")
        state = variant(**{**payload, "response_type": response_type})
    return state


def _fernet_key(secret: str) -> bytes:
    """Derive a Fernet key (32 bytes, urlsafe base64) from an arbitrary secret string."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class StateCodec:
    """Encrypt flow states into URL-safe tokens and back."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("state secret must not be empty")
        self._fernet = Fernet(_fernet_key(secret))

    def encode(self, state: FlowState) -> str:
        payload = asdict(state)
        if "response_type" in payload:
            payload["response_type"] = state.response_type.value
        token = self._fernet.encrypt(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        # Fernet output is already base64url; drop the padding so it never needs quoting
        return token.decode("ascii").rstrip("=")

    def decode(self, token: str | None) -> FlowState:
        if not token:
            raise DecodeError("state is required")
        padded = token + "=" * (-len(token) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded)
        except ValueError as e:
            raise DecodeError("state token is not base64url") from e
        # The decoder ignores the unused low bits of the last character; only the canonical spelling is accepted
        if base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=") != token:
            raise DecodeError("state token is not canonical base64url")
        try:
            plain = self._fernet.decrypt(padded.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError, ValueError) as e:
            logger.debug("State token rejected: %s", type(e).__name__)
            raise DecodeError("state token is invalid") from e
        try:
            payload = json.loads(plain.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError("state payload is not JSON") from e
        return _state_from_payload(payload)
