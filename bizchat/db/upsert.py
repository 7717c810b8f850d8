"""Dialect-aware INSERT ... ON CONFLICT helper.

Usage counters and cache rows are written with a single atomic statement so
concurrent requests for the same key never lose an update. Both PostgreSQL
(production) and SQLite (tests, local dev) support ON CONFLICT DO UPDATE.
"""

from sqlalchemy.orm import Session


def insert_for(db: Session, model):
    """Return a dialect-specific insert() for model that supports on_conflict_do_update."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}")
    return insert(model)
