"""SQLAlchemy implementation of :class:`LibraryRepository`."""

from __future__ import annotations

import time

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.engine import Engine

from ..storage.repository import LibraryRow
from .models import EditorTables, create_session_factory

__all__ = ["SQLAlchemyLibraryRepository"]


class SQLAlchemyLibraryRepository:
    """Run the editor queries through a SQLAlchemy engine.

    Suitable for MySQL/MariaDB or PostgreSQL hosts; statements are built with
    the SQLAlchemy expression language so every value is a bound parameter.
    """

    def __init__(self, engine: Engine, tables: EditorTables) -> None:
        self._engine = engine
        self._tables = tables
        self._session_factory = create_session_factory(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def tables(self) -> EditorTables:
        return self._tables

    def fetch_translation(
        self, name: str, major_version: int, minor_version: int, language_code: str
    ) -> str | None:
        libraries = self._tables.libraries
        languages = self._tables.library_languages
        statement = (
            select(languages.c.translation)
            .join(libraries, libraries.c.id == languages.c.library_id)
            .where(
                libraries.c.name == name,
                libraries.c.major_version == int(major_version),
                libraries.c.minor_version == int(minor_version),
                languages.c.language_code == language_code,
            )
        )
        with self._session_factory() as session:
            return session.execute(statement).scalars().first()

    def delete_temporary_file(self, path: str) -> int:
        tmpfiles = self._tables.temporary_files
        with self._session_factory.begin() as session:
            result = session.execute(delete(tmpfiles).where(tmpfiles.c.path == path))
            return result.rowcount

    def fetch_library_details(
        self, name: str, major_version: int, minor_version: int
    ) -> LibraryRow | None:
        libraries = self._tables.libraries
        statement = select(*self._library_columns()).where(
            libraries.c.name == name,
            libraries.c.major_version == int(major_version),
            libraries.c.minor_version == int(minor_version),
            libraries.c.semantics.is_not(None),
        )
        with self._session_factory() as session:
            row = session.execute(statement).mappings().first()
        if row is None:
            return None
        return LibraryRow.from_mapping(row)

    def fetch_runnable_libraries(self) -> list[LibraryRow]:
        libraries = self._tables.libraries
        statement = (
            select(*self._library_columns())
            .where(libraries.c.runnable == 1, libraries.c.semantics.is_not(None))
            .order_by(libraries.c.title)
        )
        with self._session_factory() as session:
            rows = session.execute(statement).mappings().all()
        return [LibraryRow.from_mapping(row) for row in rows]

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
        libraries = self._tables.libraries
        identity = and_(
            libraries.c.name == name,
            libraries.c.major_version == int(major_version),
            libraries.c.minor_version == int(minor_version),
        )
        values = {
            "title": title,
            "runnable": int(bool(runnable)),
            "restricted": int(bool(restricted)),
            "tutorial_url": tutorial_url,
            "semantics": semantics,
        }
        with self._session_factory.begin() as session:
            existing = session.execute(
                select(libraries.c.id).where(identity)
            ).scalar_one_or_none()
            if existing is not None:
                session.execute(update(libraries).where(identity).values(**values))
                return int(existing)

            result = session.execute(
                insert(libraries).values(
                    name=name,
                    major_version=int(major_version),
                    minor_version=int(minor_version),
                    **values,
                )
            )
            return int(result.inserted_primary_key[0])

    def save_translation(
        self, library_id: int, language_code: str, translation: str
    ) -> None:
        languages = self._tables.library_languages
        identity = and_(
            languages.c.library_id == library_id,
            languages.c.language_code == language_code,
        )
        with self._session_factory.begin() as session:
            session.execute(delete(languages).where(identity))
            session.execute(
                insert(languages).values(
                    library_id=library_id,
                    language_code=language_code,
                    translation=translation,
                )
            )

    def add_temporary_file(self, path: str, created_at: int | None = None) -> int:
        tmpfiles = self._tables.temporary_files
        timestamp = int(time.time()) if created_at is None else int(created_at)
        with self._session_factory.begin() as session:
            result = session.execute(
                insert(tmpfiles).values(path=path, created_at=timestamp)
            )
            return int(result.inserted_primary_key[0])

    def list_temporary_files(self) -> list[str]:
        tmpfiles = self._tables.temporary_files
        with self._session_factory() as session:
            return list(
                session.execute(
                    select(tmpfiles.c.path).order_by(tmpfiles.c.id)
                ).scalars()
            )

    def _library_columns(self):
        libraries = self._tables.libraries
        return (
            libraries.c.id,
            libraries.c.name,
            libraries.c.title,
            libraries.c.major_version,
            libraries.c.minor_version,
            libraries.c.runnable,
            libraries.c.restricted,
            libraries.c.tutorial_url,
        )
