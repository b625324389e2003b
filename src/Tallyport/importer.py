"""Bulk import of CSV/JSON rows into content-type entries.

A batch moves through Parsing -> Validating -> (rejected | Processing) ->
(committed | rolled back):

- Rows are parsed into records and the slug's import strategy is looked up;
  an unknown slug is rejected before the store is touched.
- The strategy validates the whole batch. Any failure rejects the batch and
  nothing is written.
- Records are reconciled one by one, in input order, inside a single session.
  The first record that raises (or yields nothing) rolls the whole batch back
  and stops the import.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from Tallyport import db
from Tallyport.config import Settings, load_settings
from Tallyport.content_types import default_schema
from Tallyport.errors import UnsupportedRelationKindError
from Tallyport.importer_context import ImportContext
from Tallyport.media import ANY_FILE_TYPE, FileResolver, StoreFileResolver
from Tallyport.metrics import inc_counter
from Tallyport.parsers import parse_input_data
from Tallyport.schema import SchemaRegistry
from Tallyport.strategies import StrategyRegistry, default_strategies
from Tallyport.validators import row_number

log = structlog.get_logger()

SLUG_NOT_SUPPORTED = "Slug not supported"
IMPORT_FAILED = "Error during import"


class ImportUser(BaseModel):
    id: int
    email: str | None = None


class ImportOptions(BaseModel):
    slug: str
    format: Literal["csv", "json"] = "csv"
    user: ImportUser
    # None means Settings.import_default_id_field
    id_field: str | None = None


class ImportFailure(BaseModel):
    error: str
    data: Any = None


class ImportResult(BaseModel):
    failures: list[str | ImportFailure] = Field(default_factory=list)


def _options(options: ImportOptions | Mapping[str, Any]) -> ImportOptions:
    if isinstance(options, ImportOptions):
        return options
    return ImportOptions.model_validate(options)


async def _sessionmaker(
    sessionmaker: async_sessionmaker[AsyncSession] | None,
) -> async_sessionmaker[AsyncSession]:
    if sessionmaker is not None:
        return sessionmaker
    await db.ensure_schema_created_if_needed()
    return db.get_sessionmaker()


def record_rollback(slug: str, row: int | None, reason: str) -> None:
    inc_counter("importer.rollback")
    log.warning("importer.rollback", slug=slug, row=row, reason=reason)


async def import_data(
    raw_data: Any,
    options: ImportOptions | Mapping[str, Any],
    *,
    strategies: StrategyRegistry | None = None,
    schema: SchemaRegistry | None = None,
    files: FileResolver | None = None,
    sessionmaker: async_sessionmaker[AsyncSession] | None = None,
    settings: Settings | None = None,
) -> ImportResult:
    """Import ``raw_data`` as entries of ``options.slug``.

    Args:
        raw_data: CSV text/lines or JSON text/objects
        options: slug, format, importing user and identifier field
        strategies: Import strategies by slug (defaults to the built-ins)
        schema: Content-type registry (defaults to the built-in schema)
        files: Media resolver (defaults to StoreFileResolver)
        sessionmaker: Session factory for the store (defaults to the app engine)
        settings: Settings override

    Returns:
        ImportResult whose failures list is empty on success

    Raises:
        UnsupportedRelationKindError: The schema routes a non-relational
            attribute into relation resolution. The batch is rolled back.
    """
    options = _options(options)
    settings = settings or load_settings()
    id_field = options.id_field or settings.import_default_id_field
    records = parse_input_data(options.format, raw_data, slug=options.slug)

    strategy = (strategies or default_strategies()).get(options.slug)
    if strategy is None:
        inc_counter("importer.unsupported_slug")
        log.warning("importer.slug.unsupported", slug=options.slug)
        return ImportResult(failures=[SLUG_NOT_SUPPORTED])

    sm = await _sessionmaker(sessionmaker)
    async with sm() as s:
        validation_failures = await strategy.validate(s, records)
        await s.rollback()
    if validation_failures:
        inc_counter("importer.validation_failed")
        log.info(
            "importer.validation.failed",
            slug=options.slug,
            records=len(records),
            failures=len(validation_failures),
        )
        return ImportResult(failures=list(validation_failures))

    failures: list[str | ImportFailure] = []
    async with sm() as s:
        ctx = ImportContext(
            session=s,
            user=options.user,
            schema=schema or default_schema(),
            files=files or StoreFileResolver(),
            max_depth=settings.import_max_relation_depth,
            default_allowed_file_types=frozenset(settings.import_media_default_allowed_types),
            log=log.bind(slug=options.slug, user_id=options.user.id),
        )
        for index, record in enumerate(records):
            entry = None
            try:
                entry = await strategy.reconcile(ctx, record, id_field=id_field)
            except UnsupportedRelationKindError as exc:
                await s.rollback()
                record_rollback(options.slug, row_number(index), str(exc))
                raise
            except Exception:
                ctx.log.error("importer.record.failed", row=row_number(index), exc_info=True)
            if entry is None:
                failures.append(IMPORT_FAILED)
                await s.rollback()
                record_rollback(options.slug, row_number(index), IMPORT_FAILED)
                return ImportResult(failures=failures)
        await s.commit()

    inc_counter("importer.committed")
    log.info("importer.committed", slug=options.slug, records=len(records))
    return ImportResult(failures=failures)


async def import_media(
    raw_data: Any,
    options: ImportOptions | Mapping[str, Any],
    *,
    files: FileResolver | None = None,
    sessionmaker: async_sessionmaker[AsyncSession] | None = None,
) -> ImportResult:
    """Register one upload per row, reporting failed rows individually.

    Unlike ``import_data`` this is not all-or-nothing: rows that resolve are
    committed and each failed row is returned with its error and data.
    """
    options = _options(options)
    records = parse_input_data(options.format, raw_data, slug=options.slug)
    files = files or StoreFileResolver()
    failures: list[str | ImportFailure] = []

    sm = await _sessionmaker(sessionmaker)
    async with sm() as s:
        for index, record in enumerate(records):
            try:
                # A failed row only rolls back its own savepoint
                async with s.begin_nested():
                    await files.find_or_import_file(
                        s, record, options.user, allowed_file_types=(ANY_FILE_TYPE,)
                    )
            except Exception as exc:
                inc_counter("importer.media.failed")
                log.error("importer.media.failed", row=row_number(index), exc_info=True)
                failures.append(ImportFailure(error=str(exc), data=record))
        await s.commit()

    return ImportResult(failures=failures)
