"""
SSO broker configuration. Values come from the environment; no secrets in this file.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ClientProfile:
    """One registered SSO application (login or register)."""

    client_id: str
    client_secret: str
    redirect_uri: str


# Shared secret for the encrypted flow state and the session token signature.
# Required; StateCodec and SessionTokenIssuer refuse an empty value.
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "")

# Issuer claim of session tokens
ISSUER = os.environ.get("BROKER_ISSUER", "https://api.new-eden.io")

# EVE SSO base URL (authorize, token, verify, revoke)
SSO_BASE_URL = os.environ.get("SSO_BASE_URL", "https://login.eveonline.com").rstrip("/")

# Accounts SPA page that renders character_not_found / missing_scopes
ACCOUNTS_ORIGIN = os.environ.get("ACCOUNTS_ORIGIN", "https://accounts.new-eden.io")

# Session cookie (profile_jwt) domain
COOKIE_DOMAIN = os.environ.get("COOKIE_DOMAIN", "new-eden.io")

# Login client: identifies an existing character, requests no scopes
LOGIN_CLIENT = ClientProfile(
    client_id=os.environ.get("LOGIN_CLIENT_ID", ""),
    client_secret=os.environ.get("LOGIN_SECRET", ""),
    redirect_uri=os.environ.get("LOGIN_REDIRECT", "https://api.new-eden.io/auth/login/callback"),
)

# Register client: links characters and requests ESI scopes
REGISTER_CLIENT = ClientProfile(
    client_id=os.environ.get("REGISTER_CLIENT_ID", ""),
    client_secret=os.environ.get("REGISTER_SECRET", ""),
    redirect_uri=os.environ.get("REGISTER_REDIRECT", "https://api.new-eden.io/auth/register/callback"),
)

# Directory database (SQLite acceptable for development)
DATABASE_URL = os.environ.get("BROKER_DATABASE_URL", "sqlite:///./sso_broker.db")

# RSA key for custom tokens handed out by /auth/verify. Generated on first start if missing.
CUSTOM_TOKEN_KEY_PATH = os.environ.get("CUSTOM_TOKEN_KEY_PATH", ".custom_token_key.pem")
CUSTOM_TOKEN_ISSUER = os.environ.get("CUSTOM_TOKEN_ISSUER", ISSUER)
CUSTOM_TOKEN_AUDIENCE = os.environ.get(
    "CUSTOM_TOKEN_AUDIENCE",
    "https://identitytoolkit.googleapis.com/google.identity.identitytoolkit.v1.IdentityToolkit",
)
CUSTOM_TOKEN_EXPIRES = 3600

# Timeout for calls to the SSO provider (seconds)
SSO_TIMEOUT = float(os.environ.get("SSO_TIMEOUT", "10"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
