import os

# before any reviewguard import: settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_USER_LOCKS"] = "false"
os.environ["DB_LOG_ENABLED"] = "false"
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reviewguard.shared.db_models import Base
from reviewguard.worker.agents.antifraud.store import SqlAntifraudStore


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return SqlAntifraudStore(db)
