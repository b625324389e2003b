"""Exception hierarchy shared by the importer modules."""

from __future__ import annotations


class ImporterError(Exception):
    """Base exception for importer errors."""

    pass


class UnknownContentTypeError(ImporterError, KeyError):
    """Raised when a slug has no registered content type."""

    def __init__(self, slug: str):
        super().__init__(slug)
        self.slug = slug

    def __str__(self) -> str:
        return f"Unknown content type: {self.slug}"


class UnsupportedRelationKindError(ImporterError):
    """Raised when an attribute of a non-relational kind reaches the resolver.

    This is a schema defect, so the orchestrator lets it propagate instead of
    turning it into a per-record failure.
    """

    pass


class RelationDepthExceededError(ImporterError):
    """Raised when nested relations recurse deeper than the configured limit."""

    pass


class DisallowedFileTypeError(ImporterError):
    """Raised when a media reference does not match the attribute's allowed types."""

    pass


class UnsupportedFormatError(ImporterError, ValueError):
    """Raised when raw input is in a format the parsers do not handle."""

    pass
