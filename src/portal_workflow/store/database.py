"""SQLAlchemy engine and session helpers."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def create_db_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``url``.

    SQLite connections are shared across request threads; an in-memory SQLite
    database is pinned to a single connection so every session sees the same data.
    """

    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(parsed, echo=echo, pool_pre_ping=True)

    if parsed.database in (None, "", ":memory:"):
        return create_engine(
            parsed,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(parsed, echo=echo, connect_args={"check_same_thread": False})


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_schema(engine: Engine) -> None:
    """Create the engine's tables if they don't exist yet."""

    # Importing the models registers them on Base.metadata.
    from portal_workflow.store import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Database schema ready", extra={"url": engine.url.render_as_string()})
