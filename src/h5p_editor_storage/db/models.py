"""SQLAlchemy table definitions for the editor storage schema.

Content platforms prefix their table names per installation, so the tables
are built on demand by :func:`build_tables` instead of being declared once:

* ``{prefix}h5p_libraries`` – installed content type libraries.
* ``{prefix}h5p_libraries_languages`` – editor translations per library.
* ``{prefix}h5p_tmpfiles`` – uploads not yet attached to saved content.

Alongside the tables the module provides helpers for instantiating an engine
and constructing sessions, so tests and runtime code can bootstrap a database
without duplicating configuration boilerplate.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import DEFAULT_TABLE_PREFIX, validate_table_prefix
from ..storage.database import (
    LIBRARIES_TABLE,
    LIBRARY_LANGUAGES_TABLE,
    TEMPORARY_FILES_TABLE,
)

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"
"""Default connection string used for in-memory testing and local usage."""


@dataclass(frozen=True, slots=True)
class EditorTables:
    """Prefixed tables used by :class:`SQLAlchemyLibraryRepository`."""

    metadata: MetaData
    libraries: Table
    library_languages: Table
    temporary_files: Table


def build_tables(
    prefix: str = DEFAULT_TABLE_PREFIX, metadata: MetaData | None = None
) -> EditorTables:
    """Return the editor tables registered on *metadata* under *prefix*."""

    validate_table_prefix(prefix)
    target = metadata if metadata is not None else MetaData()
    libraries_name = f"{prefix}{LIBRARIES_TABLE}"

    libraries = Table(
        libraries_name,
        target,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("name", String(127), nullable=False),
        Column("title", String(255), nullable=False),
        Column("major_version", Integer, nullable=False),
        Column("minor_version", Integer, nullable=False),
        Column("patch_version", Integer, nullable=False, default=0),
        Column("runnable", Integer, nullable=False, default=0),
        Column("restricted", Integer, nullable=False, default=0),
        Column("tutorial_url", String(1023), nullable=False, default=""),
        Column("semantics", Text(), nullable=True),
        UniqueConstraint(
            "name",
            "major_version",
            "minor_version",
            name=f"uq_{prefix}h5p_library_version",
        ),
        Index(f"idx_{prefix}h5p_libraries_title", "title"),
    )
    library_languages = Table(
        f"{prefix}{LIBRARY_LANGUAGES_TABLE}",
        target,
        Column(
            "library_id",
            ForeignKey(f"{libraries_name}.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        Column("language_code", String(31), primary_key=True),
        Column("translation", Text(), nullable=False),
    )
    temporary_files = Table(
        f"{prefix}{TEMPORARY_FILES_TABLE}",
        target,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("path", String(255), nullable=False, index=True),
        Column("created_at", Integer, nullable=False),
    )
    return EditorTables(
        metadata=target,
        libraries=libraries,
        library_languages=library_languages,
        temporary_files=temporary_files,
    )


def _configure_sqlite_pragma(engine: Engine) -> None:
    """Ensure SQLite engines enforce foreign key constraints."""

    if engine.url.get_backend_name() != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()


def get_engine(url: str | None = None, **kwargs: Any) -> Engine:
    """Return a configured SQLAlchemy engine.

    Parameters
    ----------
    url:
        Optional database URL. Defaults to an in-memory SQLite database.
    **kwargs:
        Additional keyword arguments forwarded to :func:`sqlalchemy.create_engine`.
    """

    engine = create_engine(url or DEFAULT_DATABASE_URL, **kwargs)
    _configure_sqlite_pragma(engine)
    return engine


def create_session_factory(
    engine: Engine,
    *,
    expire_on_commit: bool = False,
    autoflush: bool = False,
) -> sessionmaker[Session]:
    """Return a ``sessionmaker`` bound to *engine*."""

    return sessionmaker(
        bind=engine,
        expire_on_commit=expire_on_commit,
        autoflush=autoflush,
    )


def create_schema(engine: Engine, tables: EditorTables) -> None:
    """Create the editor tables on *engine* when missing."""

    tables.metadata.create_all(engine)


__all__ = [
    "DEFAULT_DATABASE_URL",
    "EditorTables",
    "build_tables",
    "create_schema",
    "create_session_factory",
    "get_engine",
]
