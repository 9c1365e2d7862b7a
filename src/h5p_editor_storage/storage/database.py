"""Low level SQLite helpers for the editor storage package."""

from __future__ import annotations

import itertools
import sqlite3
from pathlib import Path

from ..config import (
    DEFAULT_DATABASE_PATH,
    DEFAULT_TABLE_PREFIX,
    MEMORY_DATABASE,
    validate_table_prefix,
)

__all__ = [
    "LIBRARIES_TABLE",
    "LIBRARY_LANGUAGES_TABLE",
    "SCHEMA_TEMPLATE",
    "SQLiteStorage",
    "TEMPORARY_FILES_TABLE",
]

LIBRARIES_TABLE = "h5p_libraries"
LIBRARY_LANGUAGES_TABLE = "h5p_libraries_languages"
TEMPORARY_FILES_TABLE = "h5p_tmpfiles"

SCHEMA_TEMPLATE = """
CREATE TABLE IF NOT EXISTS {prefix}h5p_libraries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    title TEXT NOT NULL,
    major_version INTEGER NOT NULL,
    minor_version INTEGER NOT NULL,
    patch_version INTEGER NOT NULL DEFAULT 0,
    runnable INTEGER NOT NULL DEFAULT 0,
    restricted INTEGER NOT NULL DEFAULT 0,
    tutorial_url TEXT NOT NULL DEFAULT '',
    semantics TEXT,
    UNIQUE (name, major_version, minor_version)
);

CREATE TABLE IF NOT EXISTS {prefix}h5p_libraries_languages (
    library_id INTEGER NOT NULL
        REFERENCES {prefix}h5p_libraries(id) ON DELETE CASCADE,
    language_code TEXT NOT NULL,
    translation TEXT NOT NULL,
    PRIMARY KEY (library_id, language_code)
);

CREATE TABLE IF NOT EXISTS {prefix}h5p_tmpfiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL,
    created_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_{prefix}h5p_libraries_name_version
    ON {prefix}h5p_libraries(name, major_version, minor_version);
CREATE INDEX IF NOT EXISTS idx_{prefix}h5p_libraries_title
    ON {prefix}h5p_libraries(title);
CREATE INDEX IF NOT EXISTS idx_{prefix}h5p_tmpfiles_path
    ON {prefix}h5p_tmpfiles(path);
"""

_MEMORY_DATABASE_IDS = itertools.count(1)


class SQLiteStorage:
    """Encapsulate access to the SQLite database holding editor tables."""

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        table_prefix: str | None = None,
    ) -> None:
        raw_path = path or DEFAULT_DATABASE_PATH
        prefix = DEFAULT_TABLE_PREFIX if table_prefix is None else table_prefix
        self._table_prefix = validate_table_prefix(prefix)
        self._keepalive: sqlite3.Connection | None = None

        if str(raw_path) == MEMORY_DATABASE:
            # Named shared-cache database; lives as long as one connection does.
            memory_name = f"h5p_editor_{id(self)}_{next(_MEMORY_DATABASE_IDS)}"
            self._database = f"file:{memory_name}?mode=memory&cache=shared"
            self._uri = True
            self._path: Path | None = None
            self._keepalive = self.connect()
        else:
            actual_path = Path(raw_path).expanduser()
            actual_path.parent.mkdir(parents=True, exist_ok=True)
            self._database = str(actual_path)
            self._uri = False
            self._path = actual_path

        self._initialize_schema()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def path(self) -> Path | None:
        """Return the filesystem location for the database if persisted."""

        return self._path

    @property
    def table_prefix(self) -> str:
        return self._table_prefix

    def table(self, name: str) -> str:
        """Return the prefixed table name for *name*."""

        return f"{self._table_prefix}{name}"

    def connect(self) -> sqlite3.Connection:
        """Return a new SQLite connection with required pragmas applied."""

        connection = sqlite3.connect(self._database, uri=self._uri)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def close(self) -> None:
        """Release the connection keeping an in-memory database alive."""

        if self._keepalive is not None:
            self._keepalive.close()
            self._keepalive = None

    def __enter__(self) -> SQLiteStorage:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _initialize_schema(self) -> None:
        """Ensure the schema is created for the target database."""

        connection = self.connect()
        try:
            with connection:
                connection.executescript(
                    SCHEMA_TEMPLATE.format(prefix=self._table_prefix)
                )
        finally:
            connection.close()
