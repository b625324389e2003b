"""Built-in content types for election data imports."""

from __future__ import annotations

from Tallyport.schema import SchemaRegistry

CANDIDATE = "candidate"
NOMINATION = "nomination"
PARTY = "party"
ELECTION = "election"
CONSTITUENCY = "constituency"
SITE_SETTINGS = "site-settings"
UPLOAD_FILE = "upload.file"
ADMIN_USER = "admin.user"

ADDRESS_COMPONENT = "contact.address"
LINK_COMPONENT = "contact.link"
QUOTE_BLOCK = "blocks.quote"
IMAGE_BLOCK = "blocks.image"

_AUDIT_ATTRIBUTES = {
    "createdBy": {"type": "relation", "target": ADMIN_USER},
    "updatedBy": {"type": "relation", "target": ADMIN_USER},
}

BUILTIN_DEFINITIONS: list[dict] = [
    {
        "uid": ADMIN_USER,
        "attributes": {"email": {"type": "email"}, "username": {"type": "string"}},
    },
    {
        "uid": UPLOAD_FILE,
        "attributes": {
            "name": {"type": "string"},
            "url": {"type": "string"},
            "ext": {"type": "string"},
            "mime": {"type": "string"},
        },
    },
    {
        "uid": PARTY,
        "attributes": {
            "name": {"type": "string"},
            "abbreviation": {"type": "string"},
            "logo": {"type": "media", "allowedTypes": ["images"]},
        },
    },
    {
        "uid": ELECTION,
        "attributes": {"name": {"type": "string"}, "date": {"type": "date"}},
    },
    {
        "uid": CONSTITUENCY,
        "attributes": {
            "name": {"type": "string"},
            "parent": {"type": "relation", "target": CONSTITUENCY},
        },
    },
    {
        "uid": CANDIDATE,
        "attributes": {
            "firstName": {"type": "string"},
            "lastName": {"type": "string"},
            "email": {"type": "email"},
            "party": {"type": "relation", "target": PARTY},
            "photo": {"type": "media", "allowedTypes": ["images"]},
            "address": {"type": "component", "component": ADDRESS_COMPONENT},
            "links": {"type": "component", "component": LINK_COMPONENT, "repeatable": True},
            **_AUDIT_ATTRIBUTES,
        },
    },
    {
        "uid": NOMINATION,
        "attributes": {
            "election": {"type": "relation", "target": ELECTION},
            "constituency": {"type": "relation", "target": CONSTITUENCY},
            "candidate": {"type": "relation", "target": CANDIDATE},
            "party": {"type": "relation", "target": PARTY},
            "electionSymbol": {"type": "string"},
            "manifesto": {"type": "dynamiczone", "components": [QUOTE_BLOCK, IMAGE_BLOCK]},
            **_AUDIT_ATTRIBUTES,
        },
    },
    {
        "uid": SITE_SETTINGS,
        "kind": "singleType",
        "attributes": {
            "title": {"type": "string"},
            "logo": {"type": "media", "allowedTypes": ["images"]},
            "contact": {"type": "component", "component": ADDRESS_COMPONENT},
        },
    },
    {
        "uid": ADDRESS_COMPONENT,
        "attributes": {
            "street": {"type": "string"},
            "city": {"type": "string"},
            "postalCode": {"type": "string"},
        },
    },
    {
        "uid": LINK_COMPONENT,
        "attributes": {"label": {"type": "string"}, "url": {"type": "string"}},
    },
    {
        "uid": QUOTE_BLOCK,
        "attributes": {"text": {"type": "text"}, "author": {"type": "string"}},
    },
    {
        "uid": IMAGE_BLOCK,
        "attributes": {
            "caption": {"type": "string"},
            "image": {"type": "media", "allowedTypes": ["images"]},
        },
    },
]


def default_schema() -> SchemaRegistry:
    return SchemaRegistry.from_definitions(BUILTIN_DEFINITIONS)
