"""Upsert a single record: update the matching entry, or create one.

Two families live here and are deliberately kept apart:

* ``update_or_create`` is the schema-driven path. It matches on a caller-chosen
  identifier field and branches on the content type kind (single vs
  collection).
* ``create_or_update_candidate`` / ``create_or_update_nomination`` match on
  fixed natural keys (a candidate's email; a nomination's election,
  constituency, candidate and party).

Both resolve relation-like attributes first, so the store only ever sees ids.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from Tallyport import models, relations, repos
from Tallyport.content_types import CANDIDATE, NOMINATION
from Tallyport.importer_context import ImportContext
from Tallyport.metrics import inc_counter
from Tallyport.schema import ContentType

PRIMARY_KEY = "id"
PUBLISHED_FIELD = "published"
NOMINATION_KEY_FIELDS = ("election", "constituency", "candidate", "party")


def publication_timestamp(value: Any) -> datetime | None:
    """``"true"`` (any case) publishes now; anything else unpublishes."""
    if isinstance(value, str) and value.strip().lower() == "true":
        return datetime.now(timezone.utc)
    if value is True:
        return datetime.now(timezone.utc)
    return None


def _persistable(content_type: ContentType, data: Mapping[str, Any]) -> dict[str, Any]:
    names = content_type.attribute_names
    return {k: v for k, v in data.items() if k in names or k == PRIMARY_KEY}


def _publication_kwargs(data: Mapping[str, Any]) -> dict[str, Any]:
    if PUBLISHED_FIELD not in data:
        return {}
    return {"published_at": publication_timestamp(data[PUBLISHED_FIELD])}


async def _create(
    ctx: ImportContext, slug: str, data: Mapping[str, Any], **publication: Any
) -> models.Entry:
    entry = await repos.create_entry(ctx.session, slug, data, **publication)
    inc_counter("importer.records.created")
    ctx.log.debug("importer.entry.created", content_type=slug, entry_id=entry.id)
    return entry


async def _update(
    ctx: ImportContext,
    slug: str,
    where: Mapping[str, Any],
    data: Mapping[str, Any],
    **publication: Any,
) -> models.Entry | None:
    entry = await repos.update_entry(ctx.session, slug, where, data, **publication)
    if entry is not None:
        inc_counter("importer.records.updated")
        ctx.log.debug("importer.entry.updated", content_type=slug, entry_id=entry.id)
    return entry


async def _update_or_create_collection_type(
    ctx: ImportContext,
    slug: str,
    data: dict[str, Any],
    id_field: str,
    value: Any,
    publication: dict[str, Any],
) -> models.Entry:
    where = {id_field: value} if value not in (None, "") else None

    # Keep a stale primary key from clashing when matching on another field
    if id_field != PRIMARY_KEY:
        data.pop(PRIMARY_KEY, None)

    if where is None:
        return await _create(ctx, slug, data, **publication)
    entry = await _update(ctx, slug, where, data, **publication)
    if entry is None:
        entry = await _create(ctx, slug, data, **publication)
    return entry


async def _update_or_create_single_type(
    ctx: ImportContext, slug: str, data: dict[str, Any], publication: dict[str, Any]
) -> models.Entry:
    data.pop(PRIMARY_KEY, None)
    existing = await repos.find_first(ctx.session, slug)
    if existing is None:
        return await _create(ctx, slug, data, **publication)
    entry = await _update(ctx, slug, {PRIMARY_KEY: existing.id}, data, **publication)
    assert entry is not None
    return entry


async def update_or_create(
    ctx: ImportContext,
    slug: str,
    record: Mapping[str, Any],
    id_field: str = PRIMARY_KEY,
) -> models.Entry:
    """Update or create the entry of ``slug`` that ``record`` describes.

    Args:
        ctx: Batch context (session, user, schema, media resolver, depth)
        slug: Content type of the record
        record: Raw attribute values; not modified
        id_field: Attribute used to find an existing entry

    Returns:
        The created or updated entry
    """
    content_type = ctx.schema.get_model(slug)
    resolved = await relations.resolve_record(ctx, slug, record)
    publication = _publication_kwargs(resolved)
    data = _persistable(content_type, resolved)

    if content_type.is_single:
        return await _update_or_create_single_type(ctx, slug, data, publication)
    return await _update_or_create_collection_type(
        ctx, slug, data, id_field, resolved.get(id_field), publication
    )


async def _upsert_by_key(
    ctx: ImportContext,
    slug: str,
    where: dict[str, Any],
    record: Mapping[str, Any],
) -> models.Entry:
    content_type = ctx.schema.get_model(slug)
    published_at = publication_timestamp(record.get(PUBLISHED_FIELD))
    data = _persistable(content_type, record)
    data.pop(PRIMARY_KEY, None)

    entry = await _update(ctx, slug, where, data, published_at=published_at)
    if entry is None:
        entry = await _create(ctx, slug, data, published_at=published_at)
    return entry


async def create_or_update_candidate(
    ctx: ImportContext, record: Mapping[str, Any]
) -> models.Entry:
    resolved = await relations.resolve_record(ctx, CANDIDATE, record)
    return await _upsert_by_key(ctx, CANDIDATE, {"email": resolved["email"]}, resolved)


async def create_or_update_nomination(
    ctx: ImportContext, record: Mapping[str, Any]
) -> models.Entry:
    # ``candidate`` was attached by the nomination validator
    resolved = await relations.resolve_record(ctx, NOMINATION, record)
    where = {key: resolved.get(key) for key in NOMINATION_KEY_FIELDS}
    return await _upsert_by_key(ctx, NOMINATION, where, resolved)
