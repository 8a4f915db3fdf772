"""Engine and session management."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from .models import Base
from .settings import BotsySettings

__all__ = ["BotsyDatabase", "init_engine", "normalize_database_url"]


def normalize_database_url(database_url: str) -> str:
    """Point bare Postgres URLs at the psycopg (v3) driver."""

    if database_url.startswith("postgres://"):
        return "postgresql+psycopg://" + database_url[len("postgres://") :]
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return database_url


def init_engine(settings: BotsySettings) -> Engine:
    """Create an SQLAlchemy engine with sensible defaults."""

    database_url = normalize_database_url(settings.database_url)
    engine_kwargs: dict = {"pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if make_url(database_url).database in (None, "", ":memory:"):
            from sqlalchemy.pool import StaticPool

            # Each in-memory connection is a separate database.
            engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["pool_size"] = 10
        engine_kwargs["max_overflow"] = 20
    return create_engine(database_url, **engine_kwargs)


@dataclass(slots=True)
class BotsyDatabase:
    """Session factory wrapper."""

    engine: Engine
    _session_factory: sessionmaker | None = None

    def __post_init__(self) -> None:
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Session factory not initialized")
        return self._session_factory()

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)
