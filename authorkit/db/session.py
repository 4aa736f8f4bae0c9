"""Database engine, session factory, and declarative base."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from authorkit.core.config import DatabaseSettings
from authorkit.core.errors import DatabaseAppError, ErrorCode

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    # ON DELETE CASCADE on genres relies on this for SQLite
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_settings: DatabaseSettings) -> Engine:
    """Create the SQLAlchemy engine for the configured URL.

    In-memory SQLite URLs share a single connection so every session sees
    the same database.
    """
    url = db_settings.url
    # Bound parameters (e-mails, IPs) stay out of exception text and logs
    kwargs: dict[str, Any] = {"echo": db_settings.echo, "future": True, "hide_parameters": True}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@contextmanager
def database_errors(session: Session, operation: str) -> Iterator[None]:
    """Translate SQLAlchemy failures into ``DatabaseAppError``.

    Rolls the session back and logs the failure with the operation name; the
    original exception stays chained for development error details.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(
            "database.error",
            extra={"operation": operation, "error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        raise DatabaseAppError(code=ErrorCode.DATABASE_ERROR, message="Database error occurred") from exc


def create_tables(engine: Engine) -> None:
    # Import models so they register on Base.metadata
    from authorkit.db import models  # noqa: F401

    Base.metadata.create_all(engine)
