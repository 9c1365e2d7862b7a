"""SQLAlchemy tables and repository for the editor storage schema."""

from .models import (
    DEFAULT_DATABASE_URL,
    EditorTables,
    build_tables,
    create_schema,
    create_session_factory,
    get_engine,
)
from .repository import SQLAlchemyLibraryRepository

__all__ = [
    "DEFAULT_DATABASE_URL",
    "EditorTables",
    "SQLAlchemyLibraryRepository",
    "build_tables",
    "create_schema",
    "create_session_factory",
    "get_engine",
]
