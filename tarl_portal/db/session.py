"""Database engine, session factory, and dependency injection."""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, Session

from tarl_portal.core.config import Settings

logger = logging.getLogger("tarl_portal.db")


class Database:
    """Owns one engine and its session factory.

    Built once by the application factory and handed to whoever needs a
    session; nothing in the package reaches for a module-level engine.
    """

    def __init__(self, url: str, engine: Optional[Engine] = None, **engine_options):
        self.url = url
        self.engine = engine or create_engine(url, **engine_options)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        options = {"pool_pre_ping": True}
        if not settings.DATABASE_URL.startswith("sqlite"):
            options.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                pool_recycle=settings.DB_POOL_RECYCLE,
            )
        return cls(settings.DATABASE_URL, echo=settings.SQL_ECHO, **options)

    def create_all(self) -> None:
        """Create every table known to the models package."""
        from tarl_portal.db.base import Base
        import tarl_portal.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        from tarl_portal.db.base import Base
        import tarl_portal.models  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session for scripts and the CLI."""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency that provides a DB session per request."""
    db = request.app.state.db.SessionLocal()
    try:
        yield db
    except OperationalError:
        logger.error("Database connection failed")
        db.rollback()
        raise
    finally:
        db.close()
