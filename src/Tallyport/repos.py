"""Entry queries by content type, filtering on JSON attribute values.

Every function takes the caller's session and only flushes; committing is
left to whoever owns the session.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from Tallyport import models

log = structlog.get_logger()

# Marks "leave published_at as it is" on update
UNSET: Any = object()


def _field_condition(key: str, value: Any) -> ColumnElement[bool]:
    if key == "id":
        return models.Entry.id == int(value)
    field = models.Entry.data[key]
    if value is None:
        return field.as_string().is_(None)
    if isinstance(value, bool):
        return field.as_boolean() == value
    if isinstance(value, int):
        return field.as_integer() == value
    if isinstance(value, float):
        return field.as_float() == value
    if isinstance(value, str):
        return field.as_string() == value
    raise TypeError(f"Cannot filter {key!r} on a value of type {type(value).__name__}")


def _where(slug: str, where: Mapping[str, Any] | None) -> list[ColumnElement[bool]]:
    conditions = [models.Entry.content_type == slug]
    for key, value in (where or {}).items():
        conditions.append(_field_condition(key, value))
    return conditions


async def find_many(
    s: AsyncSession,
    slug: str,
    where: Mapping[str, Any] | None = None,
    *,
    limit: int | None = None,
) -> list[models.Entry]:
    stmt = select(models.Entry).where(*_where(slug, where)).order_by(models.Entry.id)
    if limit is not None:
        stmt = stmt.limit(limit)
    q = await s.execute(stmt)
    return list(q.scalars().all())


async def find_first(
    s: AsyncSession, slug: str, where: Mapping[str, Any] | None = None
) -> models.Entry | None:
    rows = await find_many(s, slug, where, limit=1)
    return rows[0] if rows else None


async def find_ids(s: AsyncSession, slug: str) -> set[int]:
    q = await s.execute(select(models.Entry.id).where(models.Entry.content_type == slug))
    return set(q.scalars().all())


async def count_entries(s: AsyncSession, slug: str) -> int:
    q = await s.execute(
        select(func.count()).select_from(models.Entry).where(models.Entry.content_type == slug)
    )
    return int(q.scalar_one())


async def create_entry(
    s: AsyncSession,
    slug: str,
    data: Mapping[str, Any],
    *,
    published_at: datetime | None = None,
) -> models.Entry:
    """Insert a new entry.

    An ``id`` in ``data`` becomes the primary key unless an entry of any
    content type already holds it, in which case the database assigns one.
    """
    payload = dict(data)
    entry_id = payload.pop("id", None)
    obj = models.Entry(content_type=slug, data=payload, published_at=published_at)
    if entry_id is not None:
        entry_id = int(entry_id)
        if await s.get(models.Entry, entry_id) is None:
            obj.id = entry_id
        else:
            log.debug("repos.entry.id_taken", content_type=slug, requested_id=entry_id)
    s.add(obj)
    await s.flush()
    log.debug("repos.entry.created", content_type=slug, entry_id=obj.id)
    return obj


async def update_entry(
    s: AsyncSession,
    slug: str,
    where: Mapping[str, Any],
    data: Mapping[str, Any],
    *,
    published_at: Any = UNSET,
) -> models.Entry | None:
    """Merge ``data`` into the first entry matching ``where``.

    Returns None when nothing matches. Provided attributes overwrite the
    stored ones; attributes absent from ``data`` are kept.
    """
    obj = await find_first(s, slug, where)
    if obj is None:
        return None
    payload = {k: v for k, v in data.items() if k != "id"}
    obj.data = {**(obj.data or {}), **payload}
    if published_at is not UNSET:
        obj.published_at = published_at
    await s.flush()
    log.debug("repos.entry.updated", content_type=slug, entry_id=obj.id)
    return obj


