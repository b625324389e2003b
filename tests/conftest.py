import logging
import os
from collections.abc import AsyncIterator

import pytest
import structlog

# Must be set before Tallyport.db computes its URL
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from Tallyport import db as store  # noqa: E402
from Tallyport import models, repos  # noqa: E402
from Tallyport.content_types import default_schema  # noqa: E402
from Tallyport.importer import ImportUser  # noqa: E402
from Tallyport.importer_context import ImportContext  # noqa: E402
from Tallyport.media import StoreFileResolver  # noqa: E402
from Tallyport.metrics import reset_counters  # noqa: E402

store.DATABASE_URL = os.environ["DATABASE_URL"]


@pytest.fixture(autouse=True)
async def _fresh_db() -> AsyncIterator[None]:
    # Disposing drops the single StaticPool connection and every row with it
    await store.dispose_engine()
    async with store.get_engine().begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    reset_counters()
    yield
    await store.dispose_engine()


@pytest.fixture
async def db():
    """An open session; anything left uncommitted is rolled back."""
    async with store.get_sessionmaker()() as s:
        yield s
        await s.rollback()


@pytest.fixture
def user() -> ImportUser:
    return ImportUser(id=7, email="importer@example.org")


@pytest.fixture
def make_ctx(db, user):
    def _make(**overrides) -> ImportContext:
        kwargs = {
            "session": db,
            "user": user,
            "schema": default_schema(),
            "files": StoreFileResolver(),
            **overrides,
        }
        return ImportContext(**kwargs)

    return _make


@pytest.fixture
def seed():
    """Commit one entry and return its id."""

    async def _seed(slug: str, data: dict, **kwargs) -> int:
        async with store.session_scope() as s:
            return (await repos.create_entry(s, slug, data, **kwargs)).id

    return _seed


@pytest.fixture
def snapshot():
    """Every committed entry as sorted, comparable tuples."""

    async def _snapshot() -> list[tuple]:
        async with store.session_scope() as s:
            entries = [
                entry
                for slug in default_schema().slugs()
                for entry in await repos.find_many(s, slug)
            ]
        return sorted((e.id, e.content_type, e.data, e.published_at) for e in entries)

    return _snapshot


@pytest.fixture
def restore_logging():
    """Undo setup_logging: root handlers, level and structlog config."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()
