"""Resolve relation-like attribute values into entry ids.

Raw values come straight from the parsed row: an id, a nested object to
reconcile, a list of either, or None. Objects are upserted through
``reconcile.update_or_create``, which resolves their own relations in turn,
so the recursion follows the schema's nesting (bounded by the context's
``max_depth``).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from Tallyport import reconcile
from Tallyport.errors import ImporterError, UnsupportedRelationKindError
from Tallyport.importer_context import ImportContext
from Tallyport.schema import RELATIONAL_KINDS, Attribute, AttributeKind

AUDIT_ATTRIBUTES = frozenset({"createdBy", "updatedBy"})
COMPONENT_TAG = "__component"


def _is_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _to_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _single_or_many(ids: list[int], many: bool) -> list[int] | int | None:
    if many:
        return ids
    return ids[0] if ids else None


async def _upsert_ids(ctx: ImportContext, slug: str | None, items: list[Any]) -> list[int]:
    ids: list[int] = []
    for item in items:
        if _is_id(item):
            ids.append(item)
        elif isinstance(item, Mapping):
            if not slug:
                raise ImporterError("Nested object given for an attribute without a target")
            entry = await reconcile.update_or_create(ctx.nested(slug), slug, item)
            if entry is not None and entry.id is not None:
                ids.append(entry.id)
    return ids


async def _resolve_dynamic_zone(
    ctx: ImportContext, attribute: Attribute, raw_value: Any
) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for block in _to_list(raw_value):
        if not isinstance(block, Mapping) or not block.get(COMPONENT_TAG):
            raise ImporterError(f"Dynamic zone {attribute.name!r} item has no {COMPONENT_TAG}")
        tag = block[COMPONENT_TAG]
        if attribute.components and tag not in attribute.components:
            raise ImporterError(f"Component {tag!r} is not allowed in {attribute.name!r}")
        data = {k: v for k, v in block.items() if k != COMPONENT_TAG}
        entry = await reconcile.update_or_create(ctx.nested(tag), tag, data)
        blocks.append({"id": entry.id, COMPONENT_TAG: tag})
    return blocks


async def _resolve_media(
    ctx: ImportContext, attribute: Attribute, raw_value: Any
) -> list[int] | int | None:
    items = _to_list(raw_value)
    if not attribute.multiple:
        items = items[:1]
    allowed = attribute.allowed_types or ctx.default_allowed_file_types
    ids: list[int] = []
    for item in items:
        media = await ctx.files.find_or_import_file(
            ctx.session, item, ctx.user, allowed_file_types=allowed
        )
        if media is not None and media.id is not None:
            ids.append(media.id)
    return _single_or_many(ids, attribute.multiple)


async def resolve_relation(ctx: ImportContext, attribute: Attribute, raw_value: Any) -> Any:
    """Resolve one attribute value to None, an id, or a list of ids."""
    # An empty CSV cell carries no reference
    if raw_value is None or (isinstance(raw_value, str) and not raw_value.strip()):
        return None

    if attribute.name in AUDIT_ATTRIBUTES:
        return ctx.user_id

    kind = attribute.kind
    if kind is AttributeKind.DYNAMIC_ZONE:
        return await _resolve_dynamic_zone(ctx, attribute, raw_value)
    if kind is AttributeKind.COMPONENT:
        items = _to_list(raw_value)
        if not attribute.repeatable:
            items = items[:1]
        ids = await _upsert_ids(ctx, attribute.target, items)
        return _single_or_many(ids, attribute.repeatable)
    if kind is AttributeKind.MEDIA:
        return await _resolve_media(ctx, attribute, raw_value)
    if kind is AttributeKind.RELATION:
        many = isinstance(raw_value, (list, tuple))
        ids = await _upsert_ids(ctx, attribute.target, _to_list(raw_value))
        return _single_or_many(ids, many)

    raise UnsupportedRelationKindError(
        f"Could not update or create relation of type {kind.value}."
    )


async def resolve_record(
    ctx: ImportContext, slug: str, record: Mapping[str, Any]
) -> dict[str, Any]:
    """Return a copy of ``record`` with its relation-like attributes resolved.

    Attributes absent from the record are left absent, so an update never
    clears relations the row did not mention.
    """
    resolved = dict(record)
    for attribute in ctx.schema.get_model_attributes(slug, filter_types=RELATIONAL_KINDS):
        if attribute.name in resolved:
            resolved[attribute.name] = await resolve_relation(
                ctx, attribute, resolved[attribute.name]
            )
    return resolved
