"""Configuration helpers for the editor storage adapter."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

__all__ = [
    "DATABASE_PATH_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
    "DEFAULT_DATABASE_PATH",
    "DEFAULT_TABLE_PREFIX",
    "MEMORY_DATABASE",
    "StorageConfig",
    "TABLE_PREFIX_ENV_VAR",
    "configure",
    "get_config",
    "validate_table_prefix",
]

DATABASE_PATH_ENV_VAR: Final[str] = "H5P_EDITOR_DATABASE_PATH"
"""Environment variable that overrides the SQLite database location."""

TABLE_PREFIX_ENV_VAR: Final[str] = "H5P_EDITOR_TABLE_PREFIX"
"""Environment variable that overrides the table name prefix."""

DATABASE_URL_ENV_VAR: Final[str] = "H5P_EDITOR_DATABASE_URL"
"""Environment variable selecting a SQLAlchemy database URL."""

DEFAULT_DATABASE_PATH: Final[Path] = Path.home() / ".h5p-editor" / "editor.sqlite3"
"""Default filesystem path of the SQLite database."""

MEMORY_DATABASE: Final[str] = ":memory:"
"""Database path selecting a private in-memory SQLite database."""

DEFAULT_TABLE_PREFIX: Final[str] = "wp_"
"""Prefix prepended to every table name, matching a stock WordPress install."""

_PREFIX_PATTERN = re.compile(r"^[A-Za-z0-9_]*$")


def validate_table_prefix(prefix: str) -> str:
    """Return *prefix* when it is safe to interpolate into SQL identifiers."""

    if not _PREFIX_PATTERN.match(prefix):
        raise ValueError(f"Invalid table prefix: {prefix!r}")
    return prefix


def _coerce_database_path(value: str | Path) -> Path | str:
    if isinstance(value, str) and value.strip() == MEMORY_DATABASE:
        return MEMORY_DATABASE
    if isinstance(value, Path):
        candidate = value
    else:
        text = str(value).strip()
        if not text:
            raise ValueError("Database path overrides cannot be empty")
        candidate = Path(text)
    return candidate.expanduser().resolve()


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Runtime configuration for the editor storage adapter."""

    database_path: Path | str
    table_prefix: str = DEFAULT_TABLE_PREFIX
    database_url: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "database_path", _coerce_database_path(self.database_path)
        )
        validate_table_prefix(self.table_prefix)
        if self.database_url is not None and not self.database_url.strip():
            object.__setattr__(self, "database_url", None)


_CONFIG: StorageConfig | None = None


def get_config() -> StorageConfig:
    """Return the cached :class:`StorageConfig` instance."""

    global _CONFIG
    if _CONFIG is None:
        _CONFIG = _build_config()
    return _CONFIG


def configure(
    *,
    database_path: str | Path | None = None,
    table_prefix: str | None = None,
    database_url: str | None = None,
) -> StorageConfig:
    """Rebuild the global configuration with optional overrides."""

    global _CONFIG
    _CONFIG = _build_config(
        database_path=database_path,
        table_prefix=table_prefix,
        database_url=database_url,
    )
    return _CONFIG


def _build_config(
    *,
    database_path: str | Path | None = None,
    table_prefix: str | None = None,
    database_url: str | None = None,
) -> StorageConfig:
    if database_path is None:
        database_path = os.environ.get(DATABASE_PATH_ENV_VAR) or DEFAULT_DATABASE_PATH
    if table_prefix is None:
        table_prefix = os.environ.get(TABLE_PREFIX_ENV_VAR, DEFAULT_TABLE_PREFIX)
    if database_url is None:
        database_url = os.environ.get(DATABASE_URL_ENV_VAR)

    return StorageConfig(
        database_path=database_path,
        table_prefix=table_prefix,
        database_url=database_url,
    )
