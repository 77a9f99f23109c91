"""Database setup for users and guestbook entries."""

import logging
from datetime import datetime
from typing import NoReturn

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import StorageError

logger = logging.getLogger(__name__)

Base = declarative_base()


class GuestbookEntry(Base):
    """SQLAlchemy model for a single guestbook entry."""

    __tablename__ = "guestbook_entries"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), nullable=False)
    text = Column(Text, nullable=False)
    date = Column(DateTime, default=datetime.utcnow, nullable=False)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine, keeping a single shared connection for in-memory SQLite."""
    kwargs = {"future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    """Create database tables if they do not exist."""
    # the users table lives on the same metadata
    from .models import user  # noqa: F401

    Base.metadata.create_all(bind=engine)


def handle_storage_error(session: Session, exc: Exception) -> NoReturn:
    """Rollback transaction and raise a storage error."""
    session.rollback()
    logger.exception("storage layer error", exc_info=exc)
    raise StorageError("Database error") from exc
