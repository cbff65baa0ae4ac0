"""
Pytest configuration for sso_broker. Secrets and the DB URL are set before the app is imported.
"""
import os
import tempfile

os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-enough-entropy"
os.environ["BROKER_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CUSTOM_TOKEN_KEY_PATH"] = os.path.join(tempfile.gettempdir(), "sso_broker_test_custom_token_key.pem")
os.environ["LOGIN_CLIENT_ID"] = "login-client"
os.environ["LOGIN_SECRET"] = "login-secret"
os.environ["REGISTER_CLIENT_ID"] = "register-client"
os.environ["REGISTER_SECRET"] = "register-secret"

import pytest
from sqlalchemy.orm import sessionmaker

from sso_broker.database import init_db, make_engine


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite: directory writes run on worker threads, each with its own connection."""
    engine = make_engine(f"sqlite:///{tmp_path / 'broker.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
