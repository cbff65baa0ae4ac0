"""
Database engine and session factory for the broker directory.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sso_broker.config import DATABASE_URL
from sso_broker.models import Base


def make_engine(url: str) -> Engine:
    """SQLite in-memory needs StaticPool so every connection sees the same DB."""
    if url.startswith("sqlite://") and (url == "sqlite://" or ":memory:" in url):
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(bind: Engine = engine) -> None:
    """Create all tables."""
    Base.metadata.create_all(bind=bind)


def get_db():
    """Dependency: yield a DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
