import json

import pytest

from Tallyport.content_types import CANDIDATE, NOMINATION, SITE_SETTINGS, default_schema
from Tallyport.errors import UnknownContentTypeError
from Tallyport.schema import (
    RELATIONAL_KINDS,
    Attribute,
    AttributeKind,
    ContentType,
    SchemaRegistry,
)


def test_attribute_from_definition():
    photo = Attribute.from_definition("photo", {"type": "media", "allowedTypes": ["images"]})
    links = Attribute.from_definition(
        "links", {"type": "component", "component": "contact.link", "repeatable": True}
    )
    email = Attribute.from_definition("email", {"type": "email"})

    assert photo.kind is AttributeKind.MEDIA
    assert photo.allowed_types == frozenset({"images"})
    assert not photo.multiple
    assert links.target == "contact.link" and links.repeatable
    assert email.kind is AttributeKind.SCALAR and email.scalar_type == "email"
    assert email.allowed_types is None


def test_filtered_attributes_keep_declaration_order():
    schema = default_schema()

    names = [a.name for a in schema.get_model_attributes(CANDIDATE, RELATIONAL_KINDS)]

    assert names == ["party", "photo", "address", "links", "createdBy", "updatedBy"]
    assert len(schema.get_model_attributes(CANDIDATE)) == 9


def test_single_and_collection_types():
    schema = default_schema()

    assert schema.get_model(SITE_SETTINGS).is_single
    assert not schema.get_model(NOMINATION).is_single
    assert "manifesto" in schema.get_model(NOMINATION).attribute_names


def test_unknown_slug_raises():
    schema = default_schema()

    with pytest.raises(UnknownContentTypeError) as exc_info:
        schema.get_model("ballot")
    assert exc_info.value.slug == "ballot"
    assert "ballot" in str(exc_info.value)
    assert "ballot" not in schema


def test_load_file_registers_definitions(tmp_path):
    path = tmp_path / "types.json"
    path.write_text(
        json.dumps(
            [
                {
                    "uid": "poll",
                    "attributes": {
                        "question": {"type": "string"},
                        "election": {"type": "relation", "target": "election"},
                    },
                },
                {"uid": "banner", "kind": "singleType", "attributes": {}},
            ]
        )
    )
    schema = SchemaRegistry()

    loaded = schema.load_file(path)

    assert [ct.uid for ct in loaded] == ["poll", "banner"]
    assert schema.slugs() == ["banner", "poll"]
    assert schema.get_model("banner").is_single
    assert [a.name for a in schema.get_model_attributes("poll", {AttributeKind.RELATION})] == [
        "election"
    ]


def test_register_replaces_existing_type():
    schema = SchemaRegistry([ContentType(uid="poll")])
    schema.register(ContentType.from_definition({"uid": "poll", "attributes": {"q": {}}}))

    assert schema.get_model("poll").attribute_names == frozenset({"q"})
