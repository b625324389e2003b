"""Per-slug import strategies.

Each strategy pairs a batch validator with a per-record reconcile function.
Supporting a new content type means registering another strategy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, MutableMapping, Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from Tallyport import models, reconcile, validators
from Tallyport.content_types import CANDIDATE, NOMINATION
from Tallyport.importer_context import ImportContext


class ImportStrategy(ABC):
    slug: str

    async def validate(
        self, s: AsyncSession, records: Sequence[MutableMapping[str, Any]]
    ) -> list[str]:
        return []

    @abstractmethod
    async def reconcile(
        self, ctx: ImportContext, record: MutableMapping[str, Any], *, id_field: str
    ) -> models.Entry | None:
        raise NotImplementedError


class CandidateImportStrategy(ImportStrategy):
    slug = CANDIDATE

    async def validate(self, s, records):
        return await validators.validate_candidates(s, records)

    async def reconcile(self, ctx, record, *, id_field):
        # Candidates always match on email
        return await reconcile.create_or_update_candidate(ctx, record)


class NominationImportStrategy(ImportStrategy):
    slug = NOMINATION

    async def validate(self, s, records):
        return await validators.validate_nominations(s, records)

    async def reconcile(self, ctx, record, *, id_field):
        return await reconcile.create_or_update_nomination(ctx, record)


class GenericImportStrategy(ImportStrategy):
    """Schema-driven import for any registered content type, without validation."""

    def __init__(self, slug: str):
        self.slug = slug

    async def reconcile(self, ctx, record, *, id_field):
        return await reconcile.update_or_create(ctx, self.slug, record, id_field)


class StrategyRegistry:
    def __init__(self, strategies: Iterable[ImportStrategy] = ()):
        self._strategies: dict[str, ImportStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: ImportStrategy) -> None:
        self._strategies[strategy.slug] = strategy

    def get(self, slug: str) -> ImportStrategy | None:
        return self._strategies.get(slug)

    def __contains__(self, slug: object) -> bool:
        return slug in self._strategies

    def slugs(self) -> list[str]:
        return sorted(self._strategies)


def default_strategies() -> StrategyRegistry:
    return StrategyRegistry([CandidateImportStrategy(), NominationImportStrategy()])
