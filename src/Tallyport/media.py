"""Media reference resolution.

A media reference in an import row is an upload id, a URL/file name string,
or an object with any of ``id``, ``url`` and ``name``. ``StoreFileResolver``
finds the matching ``upload.file`` entry or registers a new one from the
reference's metadata; fetching the bytes behind a URL is left to the upload
pipeline.
"""

from __future__ import annotations

import mimetypes
import posixpath
from collections.abc import Iterable, Mapping
from typing import Any, Protocol
from urllib.parse import urlparse

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from Tallyport import models, repos
from Tallyport.content_types import UPLOAD_FILE
from Tallyport.errors import DisallowedFileTypeError, ImporterError

log = structlog.get_logger()

ANY_FILE_TYPE = "any"


class FileResolver(Protocol):
    async def find_or_import_file(
        self,
        s: AsyncSession,
        file_ref: Any,
        user: Any,
        *,
        allowed_file_types: Iterable[str],
    ) -> models.Entry: ...


def file_category(mime: str | None) -> str:
    """Map a MIME type onto the upload categories used by ``allowedTypes``."""
    major = (mime or "").split("/", 1)[0]
    return {"image": "images", "video": "videos", "audio": "audios"}.get(major, "files")


def is_file_type_allowed(mime: str | None, allowed_file_types: Iterable[str]) -> bool:
    allowed = set(allowed_file_types)
    return ANY_FILE_TYPE in allowed or file_category(mime) in allowed


def _describe(file_ref: Any) -> dict[str, Any]:
    if isinstance(file_ref, Mapping):
        return {k: file_ref[k] for k in ("id", "url", "name") if file_ref.get(k) is not None}
    if isinstance(file_ref, int):
        return {"id": file_ref}
    if isinstance(file_ref, str):
        text = file_ref.strip()
        if "/" in text:
            return {"url": text}
        return {"name": text}
    raise ImporterError(f"Unsupported media reference: {file_ref!r}")


def _file_metadata(url: str | None, name: str | None) -> dict[str, Any]:
    path = urlparse(url).path if url else ""
    name = name or posixpath.basename(path) or "file"
    ext = posixpath.splitext(name)[1] or posixpath.splitext(path)[1]
    mime, _ = mimetypes.guess_type(name if posixpath.splitext(name)[1] else path)
    return {"name": name, "url": url, "ext": ext.lower(), "mime": mime}


class StoreFileResolver:
    """Resolve media references against ``upload.file`` entries."""

    async def find_or_import_file(
        self,
        s: AsyncSession,
        file_ref: Any,
        user: Any,
        *,
        allowed_file_types: Iterable[str] = (ANY_FILE_TYPE,),
    ) -> models.Entry:
        allowed = tuple(allowed_file_types)
        ref = _describe(file_ref)

        entry = await self._find(s, ref)
        if entry is None and "id" in ref:
            raise ImporterError(f"File {ref['id']} not found")

        mime = (entry.data or {}).get("mime") if entry is not None else None
        if entry is None:
            meta = _file_metadata(ref.get("url"), ref.get("name"))
            mime = meta["mime"]
        if not is_file_type_allowed(mime, allowed):
            raise DisallowedFileTypeError(
                f"File type {file_category(mime)!r} of {file_ref!r} is not one of {sorted(allowed)}"
            )
        if entry is not None:
            return entry

        entry = await repos.create_entry(s, UPLOAD_FILE, meta)
        log.info(
            "media.file.registered",
            file_id=entry.id,
            name=meta["name"],
            user_id=getattr(user, "id", None),
        )
        return entry

    async def _find(self, s: AsyncSession, ref: Mapping[str, Any]) -> models.Entry | None:
        if "id" in ref:
            return await repos.find_first(s, UPLOAD_FILE, {"id": ref["id"]})
        for key in ("url", "name"):
            if ref.get(key):
                entry = await repos.find_first(s, UPLOAD_FILE, {key: ref[key]})
                if entry is not None:
                    return entry
        return None
