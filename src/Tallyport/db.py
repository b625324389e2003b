"""Async engine, session factory and declarative base for the entry store.

The engine is created lazily from ``DATABASE_URL`` so tests can repoint it
before first use. SQLite goes through aiosqlite, Postgres through asyncpg.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from Tallyport.config import load_settings

log = structlog.get_logger()

_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def _normalize_url(url: str) -> str:
    """Map a bare ``postgresql://`` or ``sqlite://`` URL onto its async driver."""
    scheme, sep, rest = url.partition("://")
    return f"{_ASYNC_DRIVERS.get(scheme, scheme)}{sep}{rest}"


DATABASE_URL = _normalize_url(load_settings().database_url)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None
_tables_created = False


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite+aiosqlite://") and ":memory:" in url


def _engine_options(url: str) -> dict[str, Any]:
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        opts: dict[str, Any] = {"connect_args": {"timeout": 30}}
        # One shared connection, otherwise every checkout sees an empty database
        if _is_memory_sqlite(url) or os.environ.get("TALLYPORT_SQLITE_STATIC_POOL") == "1":
            opts["poolclass"] = StaticPool
        return opts
    if backend == "postgresql":
        return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}
    return {}


def get_engine() -> AsyncEngine:
    global _engine, _sessionmaker
    if _engine is not None:
        return _engine
    _engine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
    _sessionmaker = async_sessionmaker(_engine, expire_on_commit=False)
    url = make_url(DATABASE_URL)
    log.info(
        "db.engine.created",
        backend=url.get_backend_name(),
        driver=url.drivername,
        database=url.database or "",
    )
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    get_engine()
    assert _sessionmaker is not None
    return _sessionmaker


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _sessionmaker, _tables_created
    engine, _engine, _sessionmaker, _tables_created = _engine, None, None, False
    if engine is not None:
        await engine.dispose()


async def ensure_schema_created_if_needed() -> None:
    """Create tables for in-memory SQLite, where migrations never run."""
    global _tables_created
    if _tables_created or not _is_memory_sqlite(DATABASE_URL):
        return
    from Tallyport import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    _tables_created = True


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session that commits on exit and rolls back on error."""
    await ensure_schema_created_if_needed()
    async with get_sessionmaker()() as s:
        try:
            yield s
        except Exception:
            await s.rollback()
            log.error("db.session.rolled_back", exc_info=True)
            raise
        await s.commit()
