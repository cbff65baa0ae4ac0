"""
Character and profile directory. Get/set by key over the SQLAlchemy tables.

Methods are coroutines that run their session work in the threadpool, so flows
can dispatch independent writes together without stalling the event loop;
each call uses its own session.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from sso_broker.audit import OUTCOME_SUCCESS, log_audit
from sso_broker.models import Character, Profile

logger = logging.getLogger(__name__)


@dataclass
class SsoGrant:
    access_token: str
    refresh_token: str
    expires_at: int  # epoch ms
    scope: str  # space-separated


@dataclass
class CharacterRecord:
    id: int
    account_id: str
    name: str
    owner_hash: str
    sso: SsoGrant | None = None

    @property
    def has_grant(self) -> bool:
        return self.sso is not None


@dataclass
class ProfileRecord:
    id: str
    main_id: int
    name: str
    errors: bool = False


def _to_character_record(row: Character) -> CharacterRecord:
    sso = None
    if row.sso_access_token is not None:
        sso = SsoGrant(
            access_token=row.sso_access_token,
            refresh_token=row.sso_refresh_token or "",
            expires_at=row.sso_expires_at or 0,
            scope=row.sso_scope or "",
        )
    return CharacterRecord(
        id=row.id,
        account_id=row.account_id,
        name=row.name,
        owner_hash=row.owner_hash,
        sso=sso,
    )


def _apply_grant(row: Character, grant: SsoGrant | None) -> None:
    row.sso_access_token = grant.access_token if grant else None
    row.sso_refresh_token = grant.refresh_token if grant else None
    row.sso_expires_at = grant.expires_at if grant else None
    row.sso_scope = grant.scope if grant else None


class Directory:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    async def get_character(self, character_id: int) -> CharacterRecord | None:
        return await run_in_threadpool(self._get_character, int(character_id))

    async def set_character(self, record: CharacterRecord) -> None:
        """Create or replace characters/{id}."""
        await run_in_threadpool(self._set_character, record)

    async def set_grant(self, character_id: int, grant: SsoGrant) -> None:
        """Overwrite characters/{id}/sso. The character must exist."""
        await run_in_threadpool(self._set_grant, int(character_id), grant)

    async def get_profile(self, account_id: str) -> ProfileRecord | None:
        return await run_in_threadpool(self._get_profile, str(account_id))

    async def set_profile(self, record: ProfileRecord) -> None:
        """Create or replace users/{id}."""
        await run_in_threadpool(self._set_profile, record)

    async def record_event(
        self,
        event_type: str,
        *,
        character_id: int | None = None,
        account_id: str | None = None,
        ip: str | None = None,
        outcome: str = OUTCOME_SUCCESS,
    ) -> None:
        await run_in_threadpool(
            self._record_event, event_type, character_id=character_id, account_id=account_id, ip=ip, outcome=outcome
        )

    def _get_character(self, character_id: int) -> CharacterRecord | None:
        db = self._session()
        try:
            row = db.get(Character, character_id)
            return _to_character_record(row) if row else None
        finally:
            db.close()

    def _set_character(self, record: CharacterRecord) -> None:
        db = self._session()
        try:
            row = db.get(Character, record.id)
            if row is None:
                row = Character(id=record.id)
                db.add(row)
            row.account_id = record.account_id
            row.name = record.name
            row.owner_hash = record.owner_hash
            _apply_grant(row, record.sso)
            db.commit()
        finally:
            db.close()

    def _set_grant(self, character_id: int, grant: SsoGrant) -> None:
        db = self._session()
        try:
            row = db.get(Character, character_id)
            if row is None:
                raise LookupError(f"character {character_id} not found")
            _apply_grant(row, grant)
            db.commit()
        finally:
            db.close()

    def _get_profile(self, account_id: str) -> ProfileRecord | None:
        db = self._session()
        try:
            row = db.get(Profile, account_id)
            if row is None:
                return None
            return ProfileRecord(id=row.id, main_id=row.main_id, name=row.name, errors=row.errors)
        finally:
            db.close()

    def _set_profile(self, record: ProfileRecord) -> None:
        db = self._session()
        try:
            row = db.get(Profile, record.id)
            if row is None:
                row = Profile(id=record.id)
                db.add(row)
            row.main_id = record.main_id
            row.name = record.name
            row.errors = record.errors
            db.commit()
        finally:
            db.close()

    def _record_event(self, event_type: str, **fields) -> None:
        db = self._session()
        try:
            log_audit(db, event_type, **fields)
        finally:
            db.close()
