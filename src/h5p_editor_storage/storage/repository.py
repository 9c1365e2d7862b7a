"""Repository classes wrapping raw SQLite access for libraries and files."""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from contextlib import closing, contextmanager
from dataclasses import dataclass
from sqlite3 import Connection
from typing import Any, Protocol, runtime_checkable

from .database import (
    LIBRARIES_TABLE,
    LIBRARY_LANGUAGES_TABLE,
    TEMPORARY_FILES_TABLE,
    SQLiteStorage,
)

__all__ = [
    "LibraryInfo",
    "LibraryRef",
    "LibraryRepository",
    "LibraryRow",
    "SQLiteLibraryRepository",
    "coerce_flag",
]


def coerce_flag(value: Any) -> bool:
    """Interpret a stored boolean column that may come back as text."""

    if isinstance(value, str):
        return value.strip() == "1"
    return value == 1


@dataclass(frozen=True, slots=True)
class LibraryRef:
    """Machine name and major/minor version identifying a library."""

    name: str
    major_version: int
    minor_version: int

    def is_newer_than(self, other: LibraryRef) -> bool:
        """Return ``True`` when this version is strictly above *other*."""

        return (self.major_version, self.minor_version) > (
            other.major_version,
            other.minor_version,
        )


@dataclass(slots=True)
class LibraryInfo:
    """Library metadata handed to the editor.

    Requests for specific libraries are expressed as instances carrying only
    the identity fields; the detail fields are filled in by the storage.
    """

    name: str
    major_version: int
    minor_version: int
    title: str | None = None
    runnable: bool | None = None
    restricted: bool | None = None
    tutorial_url: str | None = None
    is_old: bool = False

    @property
    def ref(self) -> LibraryRef:
        return LibraryRef(self.name, self.major_version, self.minor_version)

    def as_editor_payload(self) -> dict[str, Any]:
        """Return the camelCase mapping consumed by the editor front end."""

        payload: dict[str, Any] = {
            "name": self.name,
            "title": self.title,
            "majorVersion": self.major_version,
            "minorVersion": self.minor_version,
            "tutorialUrl": self.tutorial_url,
            "runnable": self.runnable,
            "restricted": self.restricted,
        }
        if self.is_old:
            payload["isOld"] = True
        return payload


@dataclass(frozen=True, slots=True)
class LibraryRow:
    """Snapshot of a library row as stored in the database."""

    id: int
    name: str
    title: str
    major_version: int
    minor_version: int
    runnable: bool
    restricted: Any
    tutorial_url: str

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> LibraryRow:
        return cls(
            id=int(row["id"]),
            name=row["name"],
            title=row["title"],
            major_version=int(row["major_version"]),
            minor_version=int(row["minor_version"]),
            runnable=coerce_flag(row["runnable"]),
            restricted=row["restricted"],
            tutorial_url=row["tutorial_url"] or "",
        )


@runtime_checkable
class LibraryRepository(Protocol):
    """Parameterised queries required by the editor storage."""

    def fetch_translation(
        self, name: str, major_version: int, minor_version: int, language_code: str
    ) -> str | None: ...

    def delete_temporary_file(self, path: str) -> int: ...

    def fetch_library_details(
        self, name: str, major_version: int, minor_version: int
    ) -> LibraryRow | None: ...

    def fetch_runnable_libraries(self) -> list[LibraryRow]: ...

    def save_library(
        self,
        name: str,
        major_version: int,
        minor_version: int,
        *,
        title: str,
        runnable: bool = True,
        restricted: bool = False,
        tutorial_url: str = "",
        semantics: str | None = None,
    ) -> int: ...

    def save_translation(
        self, library_id: int, language_code: str, translation: str
    ) -> None: ...

    def add_temporary_file(self, path: str, created_at: int | None = None) -> int: ...

    def list_temporary_files(self) -> list[str]: ...


_LIBRARY_COLUMNS = (
    "id, name, title, major_version, minor_version, runnable, restricted, tutorial_url"
)


class SQLiteLibraryRepository:
    """Implement :class:`LibraryRepository` on top of :class:`SQLiteStorage`."""

    def __init__(self, storage: SQLiteStorage | None = None) -> None:
        self._storage = storage or SQLiteStorage()
        self._libraries = self._storage.table(LIBRARIES_TABLE)
        self._languages = self._storage.table(LIBRARY_LANGUAGES_TABLE)
        self._tmpfiles = self._storage.table(TEMPORARY_FILES_TABLE)

    @property
    def storage(self) -> SQLiteStorage:
        """Return the underlying storage engine."""

        return self._storage

    # ------------------------------------------------------------------
    # Queries used by the editor
    # ------------------------------------------------------------------
    def fetch_translation(
        self, name: str, major_version: int, minor_version: int, language_code: str
    ) -> str | None:
        """Return the translation JSON for a library and language if stored."""

        with self._connection() as connection:
            row = connection.execute(
                f"""
                SELECT hlt.translation
                  FROM {self._languages} hlt
                  JOIN {self._libraries} hl ON hl.id = hlt.library_id
                 WHERE hl.name = ?
                   AND hl.major_version = ?
                   AND hl.minor_version = ?
                   AND hlt.language_code = ?
                """,
                (name, int(major_version), int(minor_version), language_code),
            ).fetchone()
        if row is None:
            return None
        return row["translation"]

    def delete_temporary_file(self, path: str) -> int:
        """Delete the temporary-file rows for *path* and return the count."""

        with self._connection() as connection:
            cursor = connection.execute(
                f"DELETE FROM {self._tmpfiles} WHERE path = ?",
                (path,),
            )
            return cursor.rowcount

    def fetch_library_details(
        self, name: str, major_version: int, minor_version: int
    ) -> LibraryRow | None:
        """Return the library with semantics matching the exact version."""

        with self._connection() as connection:
            row = connection.execute(
                f"""
                SELECT {_LIBRARY_COLUMNS}
                  FROM {self._libraries}
                 WHERE name = ?
                   AND major_version = ?
                   AND minor_version = ?
                   AND semantics IS NOT NULL
                """,
                (name, int(major_version), int(minor_version)),
            ).fetchone()
        if row is None:
            return None
        return LibraryRow.from_mapping(row)

    def fetch_runnable_libraries(self) -> list[LibraryRow]:
        """Return runnable libraries with semantics ordered by title."""

        with self._connection() as connection:
            rows = connection.execute(
                f"""
                SELECT {_LIBRARY_COLUMNS}
                  FROM {self._libraries}
                 WHERE runnable = 1
                   AND semantics IS NOT NULL
                 ORDER BY title
                """
            ).fetchall()
        return [LibraryRow.from_mapping(row) for row in rows]

    # ------------------------------------------------------------------
    # Maintenance operations
    # ------------------------------------------------------------------
    def save_library(
        self,
        name: str,
        major_version: int,
        minor_version: int,
        *,
        title: str,
        runnable: bool = True,
        restricted: bool = False,
        tutorial_url: str = "",
        semantics: str | None = None,
    ) -> int:
        """Insert or update a library row and return its identifier."""

        with self._connection() as connection:
            connection.execute(
                f"""
                INSERT INTO {self._libraries}(
                    name, title, major_version, minor_version,
                    runnable, restricted, tutorial_url, semantics
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(name, major_version, minor_version) DO UPDATE SET
                    title = excluded.title,
                    runnable = excluded.runnable,
                    restricted = excluded.restricted,
                    tutorial_url = excluded.tutorial_url,
                    semantics = excluded.semantics
                """,
                (
                    name,
                    title,
                    int(major_version),
                    int(minor_version),
                    int(bool(runnable)),
                    int(bool(restricted)),
                    tutorial_url,
                    semantics,
                ),
            )
            row = connection.execute(
                f"""
                SELECT id FROM {self._libraries}
                 WHERE name = ? AND major_version = ? AND minor_version = ?
                """,
                (name, int(major_version), int(minor_version)),
            ).fetchone()
        return int(row["id"])

    def save_translation(
        self, library_id: int, language_code: str, translation: str
    ) -> None:
        """Store *translation* for the library, replacing any previous value."""

        with self._connection() as connection:
            connection.execute(
                f"""
                INSERT OR REPLACE INTO {self._languages}(
                    library_id, language_code, translation
                )
                VALUES(?, ?, ?)
                """,
                (library_id, language_code, translation),
            )

    def add_temporary_file(self, path: str, created_at: int | None = None) -> int:
        """Record *path* as a pending temporary upload."""

        timestamp = int(time.time()) if created_at is None else int(created_at)
        with self._connection() as connection:
            cursor = connection.execute(
                f"INSERT INTO {self._tmpfiles}(path, created_at) VALUES(?, ?)",
                (path, timestamp),
            )
            return int(cursor.lastrowid)

    def list_temporary_files(self) -> list[str]:
        """Return the paths of all pending temporary uploads."""

        with self._connection() as connection:
            rows = connection.execute(
                f"SELECT path FROM {self._tmpfiles} ORDER BY id"
            ).fetchall()
        return [row["path"] for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _connection(self) -> Iterator[Connection]:
        with closing(self._storage.connect()) as connection:
            with connection:
                yield connection
