"""Per-batch state threaded through relation resolution and reconciliation.

``ImportContext`` carries the handles every nested call needs (the batch's
session, the importing user, the schema registry, the media resolver and a
bound logger) together with the recursion depth, so none of the importer
modules reach for module-level state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from Tallyport.errors import RelationDepthExceededError
from Tallyport.media import ANY_FILE_TYPE, FileResolver
from Tallyport.schema import SchemaRegistry


@dataclass(frozen=True)
class ImportContext:
    session: AsyncSession
    user: Any
    schema: SchemaRegistry
    files: FileResolver
    max_depth: int = 16
    default_allowed_file_types: frozenset[str] = frozenset({ANY_FILE_TYPE})
    depth: int = 0
    # Slugs entered on the way down, for error messages
    path: tuple[str, ...] = ()
    log: Any = field(default_factory=structlog.get_logger)

    @property
    def user_id(self) -> Any:
        return getattr(self.user, "id", None)

    def nested(self, slug: str) -> "ImportContext":
        """Return a context one level deeper, entering ``slug``."""
        if self.depth + 1 > self.max_depth:
            chain = " -> ".join((*self.path, slug))
            raise RelationDepthExceededError(
                f"Nested relations exceed the maximum depth of {self.max_depth}: {chain}"
            )
        return replace(self, depth=self.depth + 1, path=(*self.path, slug))
