"""Pytest configuration helpers for h5p_editor_storage tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the source directory is importable without requiring an editable install.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


@pytest.fixture(autouse=True)
def reset_storage_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure each test runs with configuration derived from a clean environment."""

    from h5p_editor_storage.config import (
        DATABASE_PATH_ENV_VAR,
        DATABASE_URL_ENV_VAR,
        TABLE_PREFIX_ENV_VAR,
        configure,
    )

    for name in (DATABASE_PATH_ENV_VAR, DATABASE_URL_ENV_VAR, TABLE_PREFIX_ENV_VAR):
        monkeypatch.delenv(name, raising=False)
    configure()
    yield
    configure()


@pytest.fixture(params=["sqlite", "sqlalchemy"])
def repository(request: pytest.FixtureRequest, tmp_path: Path):
    """Yield an empty library repository for each supported backend."""

    if request.param == "sqlite":
        from h5p_editor_storage.storage import SQLiteLibraryRepository, SQLiteStorage

        storage = SQLiteStorage(tmp_path / "editor.sqlite3", table_prefix="wp_")
        yield SQLiteLibraryRepository(storage)
        return

    from h5p_editor_storage.db import (
        SQLAlchemyLibraryRepository,
        build_tables,
        create_schema,
        get_engine,
    )

    engine = get_engine(f"sqlite+pysqlite:///{tmp_path / 'editor-orm.sqlite3'}")
    tables = build_tables("wp_")
    create_schema(engine, tables)
    try:
        yield SQLAlchemyLibraryRepository(engine, tables)
    finally:
        engine.dispose()
