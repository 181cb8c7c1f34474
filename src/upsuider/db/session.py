"""Engine and session wiring for the salt and wallet tables."""

from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from upsuider.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base for viewer salts and wallet bindings."""


import upsuider.models  # noqa: E402,F401


def build_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``url``.

    In-memory SQLite shares one connection across threads so every session
    (request handlers run in a worker pool) sees the same tables.
    """
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.database_url, echo=settings.sql_debug)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind: Engine | None = None) -> None:
    """Create the salt and wallet tables if they are missing."""
    Base.metadata.create_all(bind=bind or engine)


def dispose_engine() -> None:
    engine.dispose()
