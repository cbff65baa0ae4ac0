"""
RSA key for signing custom tokens handed to downstream apps by /auth/verify.
Loaded from file, or generated and persisted on first use; the public half is served as a JWKS.
"""
import base64
import logging
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

logger = logging.getLogger(__name__)

KID = "custom-token-key"
_KEY_BITS = 2048

_key: rsa.RSAPrivateKey | None = None


def load_or_create_key(path: str) -> rsa.RSAPrivateKey:
    """Read a PEM private key from path; if missing or unreadable, generate one and try to save it."""
    p = Path(path)
    if p.exists():
        try:
            return serialization.load_pem_private_key(p.read_bytes(), password=None)
        except (ValueError, TypeError) as e:
            logger.warning("Unreadable custom token key at %s: %s; generating a new one", path, e)
    key = rsa.generate_private_key(public_exponent=65537, key_size=_KEY_BITS)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    try:
        p.write_bytes(pem)
        logger.info("Generated custom token key at %s", path)
    except OSError as e:
        logger.warning("Could not save custom token key to %s: %s", path, e)
    return key


def get_custom_token_key() -> rsa.RSAPrivateKey:
    global _key
    if _key is None:
        from sso_broker.config import CUSTOM_TOKEN_KEY_PATH

        _key = load_or_create_key(CUSTOM_TOKEN_KEY_PATH)
    return _key


def _b64_uint(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def get_jwks() -> dict:
    numbers = get_custom_token_key().public_key().public_numbers()
    return {
        "keys": [
            {
                "kty": "RSA",
                "kid": KID,
                "alg": "RS256",
                "use": "sig",
                "n": _b64_uint(numbers.n),
                "e": _b64_uint(numbers.e),
            }
        ]
    }
