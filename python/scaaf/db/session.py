"""Database session management and transaction helpers.

Provides:
- Request-scoped database sessions via get_db() dependency
- Transaction context manager for multi-step mutations
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from scaaf.db.engine import get_engine

_SessionLocal: sessionmaker[Session] | None = None


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Create a session factory bound to an engine (the default engine when None)."""
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the default session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = create_session_factory()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that provides a database session.

    Tests override this dependency to bind sessions to their own engine.
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[None, None, None]:
    """Commit on success, roll back and re-raise on error.

    Usage:
        with transaction(db):
            db.add(row)
            db.execute(...)
    """
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise
