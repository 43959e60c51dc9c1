"""Database engine, session factory and the transaction helper used by multi-write operations."""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.packages.rbac.core.config import get_settings

settings = get_settings()

# ``pool_pre_ping`` keeps the connection pool healthy; ``echo`` mirrors SQL logs
# when enabled in settings for easier debugging.
engine = create_engine(settings.sql_database_url, pool_pre_ping=True, echo=settings.database_echo)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def open_session() -> Session:
    """Create a session from the current factory; callers close it."""
    return SessionLocal()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Run a block as one unit of work: commit on success, roll back on any exception."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
