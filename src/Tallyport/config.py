"""Settings for Tallyport.

Values come from, highest precedence first: explicit keyword arguments,
``.env``, the process environment, ``config.toml`` in the working directory,
then the secrets directory. Environment variables use the field names
(``DATABASE_URL``, ``IMPORT_MAX_RELATION_DEPTH``, ...).

``config.toml`` layout::

    [app]
    env = "dev"

    [database]
    url = "sqlite+aiosqlite:///./tallyport.sqlite3"

    [import]
    default_id_field = "id"
    max_relation_depth = 16
    media_default_allowed_types = ["any"]

    [logging]
    level = "INFO"
    console = true          # or a level name, or "NONE"
    to_file = "NONE"
    file_path = "logs/tallyport.jsonl"
"""

from pathlib import Path
from typing import Any

import tomllib
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path("config.toml")

# (table, key) -> Settings field
_TOML_FIELDS: dict[tuple[str, str], str] = {
    ("app", "env"): "env",
    ("database", "url"): "database_url",
    ("import", "default_id_field"): "import_default_id_field",
    ("import", "max_relation_depth"): "import_max_relation_depth",
    ("import", "media_default_allowed_types"): "import_media_default_allowed_types",
    ("logging", "level"): "logging_level",
    ("logging", "file_path"): "logging_file_path",
    ("logging", "max_bytes"): "logging_max_bytes",
    ("logging", "backup_count"): "logging_backup_count",
}


def _handler_level(value: Any, enabled: str) -> str | None:
    """Normalize a handler switch: a level name, or a bool meaning on/off."""
    if isinstance(value, bool):
        return enabled if value else "NONE"
    if isinstance(value, str):
        return value.upper()
    return None


def _toml_settings_source() -> dict[str, Any]:
    if not CONFIG_FILE.exists():
        return {}
    with CONFIG_FILE.open("rb") as f:
        doc = tomllib.load(f)

    values: dict[str, Any] = {}
    for (table, key), field_name in _TOML_FIELDS.items():
        section = doc.get(table) or {}
        if key in section:
            values[field_name] = section[key]

    logging_cfg = doc.get("logging") or {}
    overall = str(values.get("logging_level", "INFO")).upper()
    console = _handler_level(logging_cfg.get("console"), overall)
    if console is not None:
        values["logging_console"] = console
    to_file = _handler_level(logging_cfg.get("to_file"), overall)
    if to_file is not None:
        values["logging_file"] = to_file
    return values


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite+aiosqlite:///./tallyport.sqlite3"
    database_password: SecretStr | None = None

    # Identifier attribute used by schema-driven upserts when the caller names none
    import_default_id_field: str = "id"
    # Bounds recursion through self-referencing content types
    import_max_relation_depth: int = Field(default=16, ge=1)
    # Upload categories a media attribute accepts when it declares no allowedTypes
    import_media_default_allowed_types: list[str] = Field(default_factory=lambda: ["any"])

    logging_level: str = "INFO"
    logging_console: str = "INFO"
    logging_file: str = "NONE"
    logging_file_path: str = "logs/tallyport.jsonl"
    logging_max_bytes: int = 5_000_000
    logging_backup_count: int = 5

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            dotenv_settings,
            env_settings,
            _toml_settings_source,
            file_secret_settings,
        )


def load_settings() -> Settings:
    return Settings()
