"""
Directory users (one sign-in identity per character) and the custom tokens minted for them.
"""
import logging
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from sso_broker.config import CUSTOM_TOKEN_AUDIENCE, CUSTOM_TOKEN_EXPIRES, CUSTOM_TOKEN_ISSUER
from sso_broker.keys import KID, get_custom_token_key
from sso_broker.models import DirectoryUser
from sso_broker.sso import IdentityAssertion

logger = logging.getLogger(__name__)

PORTRAIT_URL = "https://imageserver.eveonline.com/Character/{}_512.jpg"


class UserDirectory:
    def __init__(self, session_factory: sessionmaker, signing_key=None):
        self._session_factory = session_factory
        self._signing_key = signing_key

    async def upsert_user(self, assertion: IdentityAssertion) -> DirectoryUser:
        """Create the user for a character, or update it when it already exists."""
        return await run_in_threadpool(self._upsert_user, assertion)

    def _upsert_user(self, assertion: IdentityAssertion) -> DirectoryUser:
        uid = str(assertion.character_id)
        fields = {
            "display_name": assertion.character_name,
            "photo_url": PORTRAIT_URL.format(assertion.character_id),
            "disabled": False,
        }
        db = self._session_factory()
        try:
            user = DirectoryUser(uid=uid, **fields)
            db.add(user)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                user = db.get(DirectoryUser, uid)
                for name, value in fields.items():
                    setattr(user, name, value)
                db.commit()
                logger.debug("Updated directory user %s", uid)
            return user
        finally:
            db.close()

    def create_custom_token(self, uid: str) -> str:
        """Short-lived RS256 token a downstream app exchanges to sign in as uid."""
        key = self._signing_key or get_custom_token_key()
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "iss": CUSTOM_TOKEN_ISSUER,
                "sub": CUSTOM_TOKEN_ISSUER,
                "aud": CUSTOM_TOKEN_AUDIENCE,
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(seconds=CUSTOM_TOKEN_EXPIRES)).timestamp()),
                "uid": uid,
            },
            key,
            algorithm="RS256",
            headers={"kid": KID, "typ": "JWT"},
        )
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token
