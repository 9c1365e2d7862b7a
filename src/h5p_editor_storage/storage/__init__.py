"""Persistence utilities backing the content editor."""

from .database import SQLiteStorage
from .repository import (
    LibraryInfo,
    LibraryRef,
    LibraryRepository,
    LibraryRow,
    SQLiteLibraryRepository,
)
from .service import EditorStorage, create_editor_storage

__all__ = [
    "EditorStorage",
    "LibraryInfo",
    "LibraryRef",
    "LibraryRepository",
    "LibraryRow",
    "SQLiteLibraryRepository",
    "SQLiteStorage",
    "create_editor_storage",
]
