"""
SQLAlchemy models for the broker's directory: characters, profiles, directory users, audit log.
"""
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Character(Base):
    """An EVE character linked to a profile. sso_* columns are the current SSO grant (all null when none)."""
    __tablename__ = "characters"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    sso_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    sso_refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    sso_expires_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)  # epoch ms
    sso_scope: Mapped[str | None] = mapped_column(Text, nullable=True)  # space-separated
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)


class Profile(Base):
    """One per human; created at first registration."""
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    main_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    errors: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)


class DirectoryUser(Base):
    """Sign-in identity for downstream apps, keyed by character id."""
    __tablename__ = "directory_users"

    uid: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)


class AuditLog(Base):
    """Flow outcomes. No tokens stored."""
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    character_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    account_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    outcome: Mapped[str] = mapped_column(String(16), nullable=False)  # success | blocked
