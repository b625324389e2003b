"""Content-type schema descriptors and the registry the importer reads them from.

Definitions use the same shape as the JSON schema files::

    {
        "uid": "candidate",
        "kind": "collectionType",
        "attributes": {
            "email": {"type": "email"},
            "party": {"type": "relation", "target": "party"},
            "photo": {"type": "media", "allowedTypes": ["images"]},
            "links": {"type": "component", "component": "contact.link", "repeatable": true},
            "blocks": {"type": "dynamiczone", "components": ["blocks.quote"]}
        }
    }

Every attribute type other than relation/component/dynamiczone/media is
treated as a scalar and kept verbatim by the importer.
"""

from __future__ import annotations

import enum
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from Tallyport.errors import UnknownContentTypeError


class AttributeKind(str, enum.Enum):
    RELATION = "relation"
    COMPONENT = "component"
    DYNAMIC_ZONE = "dynamiczone"
    MEDIA = "media"
    SCALAR = "scalar"


RELATIONAL_KINDS: frozenset[AttributeKind] = frozenset(
    {
        AttributeKind.RELATION,
        AttributeKind.COMPONENT,
        AttributeKind.DYNAMIC_ZONE,
        AttributeKind.MEDIA,
    }
)


class ContentTypeKind(str, enum.Enum):
    SINGLE = "singleType"
    COLLECTION = "collectionType"


class Attribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: AttributeKind
    # Relation target slug, or component uid for component attributes
    target: str | None = None
    components: tuple[str, ...] = ()
    repeatable: bool = False
    multiple: bool = False
    # None falls back to the configured media default
    allowed_types: frozenset[str] | None = None
    scalar_type: str | None = None

    @classmethod
    def from_definition(cls, name: str, definition: Mapping[str, Any]) -> "Attribute":
        raw_type = str(definition.get("type", "string"))
        try:
            kind = AttributeKind(raw_type)
        except ValueError:
            kind = AttributeKind.SCALAR
        if kind is AttributeKind.SCALAR:
            return cls(name=name, kind=kind, scalar_type=raw_type)
        target = definition.get("target") or definition.get("component")
        allowed = definition.get("allowedTypes")
        return cls(
            name=name,
            kind=kind,
            target=target,
            components=tuple(definition.get("components") or ()),
            repeatable=bool(definition.get("repeatable", False)),
            multiple=bool(definition.get("multiple", False)),
            allowed_types=frozenset(allowed) if allowed else None,
        )


class ContentType(BaseModel):
    model_config = ConfigDict(frozen=True)

    uid: str
    kind: ContentTypeKind = ContentTypeKind.COLLECTION
    attributes: tuple[Attribute, ...] = Field(default_factory=tuple)

    @property
    def is_single(self) -> bool:
        return self.kind is ContentTypeKind.SINGLE

    @property
    def attribute_names(self) -> frozenset[str]:
        return frozenset(a.name for a in self.attributes)

    @classmethod
    def from_definition(cls, definition: Mapping[str, Any]) -> "ContentType":
        attrs = definition.get("attributes") or {}
        return cls(
            uid=definition["uid"],
            kind=ContentTypeKind(definition.get("kind", ContentTypeKind.COLLECTION.value)),
            attributes=tuple(Attribute.from_definition(n, d) for n, d in attrs.items()),
        )


class SchemaRegistry:
    """In-memory lookup of content types by slug."""

    def __init__(self, content_types: Iterable[ContentType] = ()):
        self._types: dict[str, ContentType] = {}
        for ct in content_types:
            self.register(ct)

    @classmethod
    def from_definitions(cls, definitions: Iterable[Mapping[str, Any]]) -> "SchemaRegistry":
        return cls(ContentType.from_definition(d) for d in definitions)

    def register(self, content_type: ContentType) -> None:
        self._types[content_type.uid] = content_type

    def __contains__(self, slug: object) -> bool:
        return slug in self._types

    def slugs(self) -> list[str]:
        return sorted(self._types)

    def get_model(self, slug: str) -> ContentType:
        try:
            return self._types[slug]
        except KeyError:
            raise UnknownContentTypeError(slug) from None

    def get_model_attributes(
        self, slug: str, filter_types: Iterable[AttributeKind] | None = None
    ) -> list[Attribute]:
        attributes = self.get_model(slug).attributes
        if filter_types is None:
            return list(attributes)
        wanted = frozenset(filter_types)
        return [a for a in attributes if a.kind in wanted]

    def load_file(self, path: Path | str) -> list[ContentType]:
        """Register content types from a JSON file.

        The file holds either a single definition or a list of them.
        """
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
        definitions = payload if isinstance(payload, list) else [payload]
        loaded = [ContentType.from_definition(d) for d in definitions]
        for ct in loaded:
            self.register(ct)
        return loaded
