from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from bizchat.core.config import settings
from bizchat.db.base import Base

_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency for getting a database session.

    The session stays open until the (possibly streamed) response is finished,
    so the SSE generator can write the cache row and assistant reply with it.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all tables (development and tests; production uses Alembic)."""
    import bizchat.models  # noqa: F401  register models on Base.metadata

    Base.metadata.create_all(bind=engine)
