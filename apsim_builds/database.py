"""
Database session management and configuration.

This module provides the SQLAlchemy engine, the session factory and the
unit-of-work context used by the registries. Every registry operation opens
its own session; nothing here holds a process-wide session.
"""
from contextlib import contextmanager
from typing import Generator, Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from apsim_builds.config import get_settings

settings = get_settings()


def engine_options(database_url: str) -> dict:
    """
    Connection pooling options for the given database URL.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Keyword arguments for create_engine()
    """
    if "postgresql" in database_url or "mysql" in database_url:
        # Production database pooling configuration
        return {
            'pool_size': 10,              # Number of connections to maintain
            'max_overflow': 20,            # Maximum number of connections beyond pool_size
            'pool_pre_ping': True,         # Verify connections before using them
            'pool_recycle': 3600,          # Recycle connections after 1 hour
        }
    if "sqlite" in database_url:
        # SQLite doesn't benefit from pooling but needs thread safety
        return {
            'connect_args': {"check_same_thread": False}
        }
    return {}


def create_session_factory(bind: Engine) -> sessionmaker:
    """
    Create a session factory bound to an engine.

    Records are returned to callers after their unit of work has closed, so
    sessions must not expire loaded attributes on commit.
    """
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# Create SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,  # Log SQL queries in debug mode
    **engine_options(settings.DATABASE_URL)
)

# Create session factory
SessionLocal = create_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for ad-hoc database sessions (health checks).

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()  # Auto-rollback on error
        raise
    finally:
        db.close()


@contextmanager
def get_db_context(session_factory: Optional[sessionmaker] = None):
    """
    Unit of work scoped to a single registry operation.

    Commits when the block exits normally, rolls back on any exception and
    always closes the session.

    Usage:
        with get_db_context(factory) as db:
            db.add(item)

    Args:
        session_factory: Session factory to use (defaults to SessionLocal)

    Yields:
        Database session
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None):
    """
    Initialize database tables.
    Creates all tables defined in models.

    Note: In production, use Alembic migrations instead.
    """
    from apsim_builds.models.db_models import Base
    Base.metadata.create_all(bind=bind or engine)


def drop_db(bind: Optional[Engine] = None):
    """
    Drop all database tables.

    Warning: This will delete all data!
    Only use in development/testing.
    """
    from apsim_builds.models.db_models import Base
    Base.metadata.drop_all(bind=bind or engine)
