"""
Public keys for verifying custom tokens issued by /auth/verify.
"""
from fastapi import APIRouter

from sso_broker.keys import get_jwks

router = APIRouter()


@router.get("/.well-known/jwks.json")
def jwks_json():
    return get_jwks()
