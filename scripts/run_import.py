#!/usr/bin/env python3
"""
Import a CSV or JSON file into entries of one content type.

Usage:
  python scripts/run_import.py --slug candidate --user-id 1 candidates.csv
  python scripts/run_import.py --slug nomination --format json --user-id 1 nominations.json
  python scripts/run_import.py --slug upload.file --media --user-id 1 files.csv

The format defaults to the file extension. Failures are printed as JSON and
the exit code is 1 when any row failed.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog

# Ensure src is on the import path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from Tallyport.config import load_settings  # noqa: E402
from Tallyport.content_types import default_schema  # noqa: E402
from Tallyport.errors import ImporterError  # noqa: E402
from Tallyport.importer import ImportOptions, import_data, import_media  # noqa: E402
from Tallyport.logging import redact_settings, setup_logging  # noqa: E402
from Tallyport.strategies import GenericImportStrategy, default_strategies  # noqa: E402

log = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Import CSV/JSON rows into content-type entries")
    ap.add_argument("path", type=Path, help="CSV or JSON file to import")
    ap.add_argument("--slug", required=True, help="Content type to import into")
    ap.add_argument("--format", choices=("csv", "json"), help="Input format (default: by extension)")
    ap.add_argument("--user-id", type=int, required=True, help="Id of the importing user")
    ap.add_argument("--id-field", help="Attribute used to match existing entries")
    ap.add_argument(
        "--schema",
        type=Path,
        action="append",
        default=[],
        help="Extra JSON content-type definitions (repeatable)",
    )
    ap.add_argument(
        "--generic",
        action="store_true",
        help="Allow schema-driven import for slugs without a dedicated strategy",
    )
    ap.add_argument("--media", action="store_true", help="Rows describe media files")
    return ap


async def _run(args: argparse.Namespace) -> list:
    fmt = args.format or ("json" if args.path.suffix.lower() == ".json" else "csv")
    raw = args.path.read_text(encoding="utf-8")
    options = ImportOptions(
        slug=args.slug, format=fmt, user={"id": args.user_id}, id_field=args.id_field
    )
    if args.media:
        result = await import_media(raw, options)
        return result.failures

    schema = default_schema()
    for schema_path in args.schema:
        schema.load_file(schema_path)
    strategies = default_strategies()
    if args.generic and args.slug not in strategies:
        strategies.register(GenericImportStrategy(args.slug))
    result = await import_data(raw, options, strategies=strategies, schema=schema)
    return result.failures


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(settings)
    log.debug("run_import.settings", **redact_settings(settings))

    if not args.path.exists():
        print(f"Error: file not found: {args.path}")
        return 2

    try:
        failures = asyncio.run(_run(args))
    except ImporterError as exc:
        print(f"ImporterError: {exc}")
        return 1

    print(
        json.dumps(
            {"failures": [f if isinstance(f, str) else f.model_dump() for f in failures]},
            indent=2,
            default=str,
        )
    )
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
