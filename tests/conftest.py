import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

import bizchat.models  # noqa: F401  register models on Base.metadata
from bizchat.core.clock import get_clock
from bizchat.core.config import get_settings
from bizchat.db.base import Base
from bizchat.db.session import get_db
from bizchat.main import app
from bizchat.models.plan import Plan
from bizchat.seed.seed_data import seed_db
from tests.factories import FIXED_NOW, make_settings


# Use SQLite file database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)


@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Set SQLite pragmas."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# Monkey-patch postgresql.UUID to work with SQLite (store as CHAR(36))
import sqlalchemy.dialects.sqlite.base as sqlite_base
# SQLAlchemy 2.x already defines visit_UUID (renders "UUID", NUMERIC affinity in
# SQLite), so the override is applied unconditionally.
def visit_UUID(self, type_, **kw):
    return "CHAR(36)"
sqlite_base.SQLiteTypeCompiler.visit_UUID = visit_UUID

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_settings():
    """Settings used by the API under test; tests may replace fields with model_copy."""
    return make_settings()


@pytest.fixture(scope="function")
def client(db_session, test_settings):
    """Create a test client with database, settings and clock overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_clock] = lambda: (lambda: FIXED_NOW)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def seeded_db(db_session):
    """Create a database session with seeded data."""
    seed_db(db_session)
    return db_session


@pytest.fixture(scope="function")
def plans(db_session):
    """The default plans: free 100, pro 2000, business 10000."""
    rows = [
        Plan(name="free", message_limit=100, max_businesses=1),
        Plan(name="pro", message_limit=2000, max_businesses=3),
        Plan(name="business", message_limit=10000, max_businesses=10),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return {p.name: p for p in rows}
