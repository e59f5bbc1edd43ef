"""
Database connection and session management for MedTrack
"""

import logging
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from typing import Generator

from config import settings


logger = logging.getLogger(__name__)


def is_memory_sqlite(url: str) -> bool:
    """In-memory SQLite lives in a single connection that every session must share"""
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:")


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """Create the SQLAlchemy engine for a database URL"""
    if url.startswith("sqlite"):
        # SQLite specific configuration; file databases get a connection per session
        options = {"poolclass": StaticPool} if is_memory_sqlite(url) else {}
        sqlite_engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=echo,
            **options
        )

        # Enable foreign keys for SQLite
        @event.listens_for(sqlite_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    # PostgreSQL or other databases
    return create_engine(
        url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True
    )


# Create SQLAlchemy engine
engine = create_db_engine(settings.DATABASE_URL, settings.DATABASE_ECHO)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for ORM models
Base = declarative_base()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database session.
    Use this for background ticks or non-FastAPI contexts.

    Usage:
        with get_db_context() as db:
            repository = SqlTrackerRepository(db)
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """
    Initialize database tables.
    Creates all tables defined in models.
    """
    # Import models to register them with Base
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized at: {settings.DATABASE_URL}")


class DatabaseHealthCheck:
    """Database health check utilities"""

    @staticmethod
    def is_connected() -> bool:
        """Check if database is connected"""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.warning("Database health check failed", exc_info=True)
            return False


# Export commonly used items
__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "get_db_context",
    "init_db",
    "create_db_engine",
    "is_memory_sqlite",
    "DatabaseHealthCheck"
]
