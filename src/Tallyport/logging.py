"""structlog on top of stdlib logging.

Importer modules call ``structlog.get_logger()`` and emit dotted event names
(``importer.rollback``, ``media.file.registered``). ``setup_logging`` routes
those, together with records from third-party stdlib loggers, through one
JSON formatter to the console and, optionally, a rotating file.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from structlog.contextvars import merge_contextvars

from Tallyport.config import Settings

DISABLED = "NONE"
REDACTED = "[REDACTED]"
_SECRET_SUFFIXES = ("_password", "_token", "_secret")


def _level(name: str | None, fallback: int) -> int:
    value = logging.getLevelName((name or "").upper())
    return value if isinstance(value, int) else fallback


def _json_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[merge_contextvars, structlog.stdlib.add_log_level],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
    )


def _handlers(settings: Settings, root_level: int) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if settings.logging_console.upper() != DISABLED:
        console = logging.StreamHandler()
        console.setLevel(_level(settings.logging_console, root_level))
        handlers.append(console)
    if settings.logging_file.upper() != DISABLED:
        path = Path(settings.logging_file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            path,
            maxBytes=settings.logging_max_bytes,
            backupCount=settings.logging_backup_count,
            encoding="utf-8",
        )
        rotating.setLevel(_level(settings.logging_file, root_level))
        handlers.append(rotating)
    return handlers


def setup_logging(settings: Settings | None = None) -> None:
    """Configure the console and optional JSONL file handlers from settings."""
    settings = settings or Settings()
    root_level = _level(settings.logging_level, logging.INFO)

    formatter = _json_formatter()
    handlers = _handlers(settings, root_level)
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    # Statement echo stays off unless explicitly requested
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def redact_settings(settings: Settings) -> dict:
    """Settings as a dict with secrets and URL credentials masked."""
    data = settings.model_dump()
    for key in data:
        if key.endswith(_SECRET_SUFFIXES):
            data[key] = REDACTED
    url = data.get("database_url") or ""
    scheme, sep, rest = url.partition("://")
    if sep and "@" in rest:
        data["database_url"] = f"{scheme}://{REDACTED}@{rest.rsplit('@', 1)[1]}"
    return data
