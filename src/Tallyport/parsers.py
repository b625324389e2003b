"""Turn raw CSV/JSON input into a list of record mappings."""

from __future__ import annotations

import csv
import io
import json
import re
from collections.abc import Iterable
from typing import Any, Literal

import structlog

from Tallyport.errors import UnsupportedFormatError

log = structlog.get_logger()

InputFormat = Literal["csv", "json"]

_INT_RE = re.compile(r"^-?(0|[1-9]\d*)$")


def coerce_cell(value: str | None) -> Any:
    """Convert one CSV cell into the value the importer works with.

    Integers become ``int`` (ids arrive this way), cells holding a JSON object
    or array are decoded so nested relations can be expressed in CSV, and
    everything else stays a string. Leading-zero numbers such as postal codes
    are left alone.
    """
    if value is None:
        return None
    text = value.strip()
    if _INT_RE.match(text):
        return int(text)
    if text[:1] in ("{", "["):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return value
    return value


def _csv_lines(raw_data: Any) -> Iterable[str]:
    if isinstance(raw_data, bytes):
        raw_data = raw_data.decode("utf-8-sig")
    if isinstance(raw_data, str):
        return io.StringIO(raw_data.lstrip("\ufeff"), newline="")
    return raw_data


def parse_csv(raw_data: Any) -> list[dict[str, Any]]:
    reader = csv.DictReader(_csv_lines(raw_data))
    records: list[dict[str, Any]] = []
    for row in reader:
        records.append(
            {
                key.strip(): coerce_cell(value)
                for key, value in row.items()
                # Surplus cells land under a None key
                if key is not None
            }
        )
    return records


def parse_json(raw_data: Any) -> list[dict[str, Any]]:
    if isinstance(raw_data, (str, bytes)):
        try:
            raw_data = json.loads(raw_data)
        except json.JSONDecodeError as exc:
            raise UnsupportedFormatError(f"Invalid JSON input: {exc}") from exc
    rows = raw_data if isinstance(raw_data, list) else [raw_data]
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise UnsupportedFormatError(
                f"JSON item {i} is a {type(row).__name__}, expected an object"
            )
    return [dict(row) for row in rows]


def parse_input_data(
    format: str, raw_data: Any, *, slug: str | None = None
) -> list[dict[str, Any]]:
    """Parse ``raw_data`` according to ``format`` ("csv" or "json")."""
    if format == "csv":
        records = parse_csv(raw_data)
    elif format == "json":
        records = parse_json(raw_data)
    else:
        raise UnsupportedFormatError(f"Unsupported import format: {format!r}")
    log.debug("parsers.parsed", format=format, slug=slug, records=len(records))
    return records
