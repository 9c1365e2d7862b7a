"""Tests for :class:`EditorStorage` against both repository backends."""

from __future__ import annotations

from pathlib import Path

import pytest

from h5p_editor_storage.asset_hooks import AssetFile, AssetHookRegistry
from h5p_editor_storage.auth import (
    MANAGE_LIBRARIES_CAPABILITY,
    UserContext,
    anonymous_user,
    capability_check,
)
from h5p_editor_storage.config import StorageConfig
from h5p_editor_storage.db import SQLAlchemyLibraryRepository
from h5p_editor_storage.storage import (
    EditorStorage,
    LibraryInfo,
    LibraryRef,
    LibraryRow,
    SQLiteLibraryRepository,
    create_editor_storage,
)

SEMANTICS = "[]"


class CountingCheck:
    """Capability check recording how often it was evaluated."""

    def __init__(self, result: bool) -> None:
        self.result = result
        self.calls = 0

    def __call__(self) -> bool:
        self.calls += 1
        return self.result


class RecordingAlterer:
    def __init__(self) -> None:
        self.calls: list[tuple[object, object, str]] = []

    def alter_assets(self, files, libraries, channel) -> None:
        self.calls.append((files, libraries, channel))
        files.reverse()
        files.append(AssetFile(path="custom/editor.css", version="?ver=2"))


def _storage(repository, *, privileged: bool = False, alterer=None) -> EditorStorage:
    return EditorStorage(
        repository,
        asset_alterer=alterer or AssetHookRegistry(),
        has_library_management_capability=lambda: privileged,
    )


def _seed_catalog(repository) -> None:
    repository.save_library("A", 1, 0, title="Alpha", semantics=SEMANTICS)
    repository.save_library("A", 1, 1, title="Alpha", semantics=SEMANTICS)
    repository.save_library("B", 1, 0, title="Beta", semantics=SEMANTICS)


def _flags(libraries: list[LibraryInfo]) -> dict[tuple[str, int, int], bool]:
    return {
        (library.name, library.major_version, library.minor_version): library.is_old
        for library in libraries
    }


# ----------------------------------------------------------------------
# Translations and temporary files
# ----------------------------------------------------------------------
def test_get_translation_returns_stored_json(repository) -> None:
    library_id = repository.save_library(
        "H5P.DragText", 1, 8, title="Drag Text", semantics=SEMANTICS
    )
    repository.save_translation(library_id, "es", '{"semantics":[{"label":"Texto"}]}')
    storage = _storage(repository)

    assert storage.get_translation("H5P.DragText", 1, 8, "es") == (
        '{"semantics":[{"label":"Texto"}]}'
    )


def test_get_translation_has_no_language_fallback(repository) -> None:
    library_id = repository.save_library("H5P.DragText", 1, 8, title="Drag Text")
    repository.save_translation(library_id, "en", "{}")
    storage = _storage(repository)

    assert storage.get_translation("H5P.DragText", 1, 8, "en-GB") is None
    assert storage.get_translation("H5P.Missing", 1, 0, "en") is None


def test_mark_file_permanent_removes_only_matching_row(repository) -> None:
    repository.add_temporary_file("content/3/images/keep.png")
    repository.add_temporary_file("content/3/images/other.png")
    storage = _storage(repository)

    storage.mark_file_permanent("content/3/images/keep.png")
    storage.mark_file_permanent("content/3/images/keep.png")
    storage.mark_file_permanent("never/uploaded.png")

    assert repository.list_temporary_files() == ["content/3/images/other.png"]


# ----------------------------------------------------------------------
# Catalog mode
# ----------------------------------------------------------------------
def test_catalog_flags_all_but_newest_version(repository) -> None:
    _seed_catalog(repository)

    libraries = _storage(repository).list_libraries()

    assert _flags(libraries) == {
        ("A", 1, 0): True,
        ("A", 1, 1): False,
        ("B", 1, 0): False,
    }
    assert all(library.runnable is True for library in libraries)


def test_catalog_handles_newer_version_seen_first(repository) -> None:
    repository.save_library("A", 2, 0, title="Alpha", semantics=SEMANTICS)
    repository.save_library("A", 1, 9, title="Alpha", semantics=SEMANTICS)
    repository.save_library("A", 1, 10, title="Alpha", semantics=SEMANTICS)

    libraries = _storage(repository).list_libraries()

    assert len(libraries) == 3
    assert [lib.ref for lib in libraries if not lib.is_old] == [LibraryRef("A", 2, 0)]


def test_catalog_keeps_one_current_version_per_name(repository) -> None:
    for major, minor in [(1, 0), (1, 3), (2, 1), (1, 7), (2, 0)]:
        repository.save_library("C", major, minor, title="Chart", semantics=SEMANTICS)
    repository.save_library("D", 1, 0, title="Dialog", semantics=SEMANTICS)

    libraries = _storage(repository).list_libraries()
    current = [lib.ref for lib in libraries if not lib.is_old]

    assert sorted(current, key=lambda ref: ref.name) == [
        LibraryRef("C", 2, 1),
        LibraryRef("D", 1, 0),
    ]


def test_catalog_skips_non_runnable_and_missing_semantics(repository) -> None:
    _seed_catalog(repository)
    repository.save_library("Dep", 1, 0, title="Dependency", runnable=False, semantics=SEMANTICS)
    repository.save_library("Bare", 1, 0, title="Bare")

    names = {library.name for library in _storage(repository).list_libraries()}

    assert names == {"A", "B"}


def test_catalog_is_ordered_by_title(repository) -> None:
    repository.save_library("Z", 1, 0, title="Zebra", semantics=SEMANTICS)
    repository.save_library("M", 1, 0, title="Mango", semantics=SEMANTICS)
    repository.save_library("A", 1, 0, title="Apple", semantics=SEMANTICS)

    titles = [library.title for library in _storage(repository).list_libraries()]

    assert titles == ["Apple", "Mango", "Zebra"]


@pytest.mark.parametrize(("privileged", "expected"), [(True, False), (False, True)])
def test_catalog_restricted_flag_depends_on_privilege(
    repository, privileged: bool, expected: bool
) -> None:
    repository.save_library("R", 1, 0, title="Restricted", restricted=True, semantics=SEMANTICS)
    repository.save_library("O", 1, 0, title="Open", semantics=SEMANTICS)

    libraries = _storage(repository, privileged=privileged).list_libraries()
    restricted = {library.name: library.restricted for library in libraries}

    assert restricted == {"R": expected, "O": False}


def test_capability_checked_once_per_call(repository) -> None:
    _seed_catalog(repository)
    check = CountingCheck(result=False)
    storage = EditorStorage(
        repository,
        asset_alterer=AssetHookRegistry(),
        has_library_management_capability=check,
    )

    storage.list_libraries()
    assert check.calls == 1

    storage.list_libraries([LibraryInfo("A", 1, 0), LibraryInfo("B", 1, 0)])
    assert check.calls == 2


# ----------------------------------------------------------------------
# Filtered mode
# ----------------------------------------------------------------------
def test_requested_libraries_are_filled_in_order(repository) -> None:
    repository.save_library(
        "H5P.Image",
        1,
        1,
        title="Image",
        runnable=False,
        restricted=True,
        tutorial_url="https://example.org/image",
        semantics=SEMANTICS,
    )
    repository.save_library("H5P.Text", 1, 1, title="Text", semantics=SEMANTICS)
    text = LibraryInfo("H5P.Text", 1, 1)
    image = LibraryInfo("H5P.Image", 1, 1)
    missing = LibraryInfo("H5P.Video", 1, 5)

    result = _storage(repository).list_libraries([text, missing, image])

    assert result == [text, image]
    assert result[0] is text
    assert result[1] is image
    assert image.title == "Image"
    assert image.runnable is False
    assert image.restricted is True
    assert image.tutorial_url == "https://example.org/image"
    assert text.runnable is True
    assert text.restricted is False
    assert missing.title is None


def test_requested_library_without_semantics_is_omitted(repository) -> None:
    repository.save_library("H5P.Bare", 1, 0, title="Bare")

    assert _storage(repository).list_libraries([LibraryInfo("H5P.Bare", 1, 0)]) == []


def test_requested_libraries_ignore_restriction_for_privileged(repository) -> None:
    repository.save_library("R", 1, 0, title="Restricted", restricted=True, semantics=SEMANTICS)
    request = LibraryInfo("R", 1, 0)

    _storage(repository, privileged=True).list_libraries([request])

    assert request.restricted is False


def test_empty_request_list_returns_empty(repository) -> None:
    _seed_catalog(repository)

    assert _storage(repository).list_libraries([]) == []


# ----------------------------------------------------------------------
# Asset alteration
# ----------------------------------------------------------------------
def test_alter_library_files_forwards_same_lists(repository) -> None:
    alterer = RecordingAlterer()
    storage = _storage(repository, alterer=alterer)
    files = [
        AssetFile(path="libraries/H5P.Text-1.1/text.js", version="?ver=1.1.3"),
        AssetFile(path="libraries/H5P.Text-1.1/text.css", version="?ver=1.1.3"),
    ]
    libraries = [LibraryRef("H5P.Text", 1, 1)]

    storage.alter_library_files(files, libraries)

    assert len(alterer.calls) == 1
    forwarded_files, forwarded_libraries, channel = alterer.calls[0]
    assert forwarded_files is files
    assert forwarded_libraries is libraries
    assert channel == "editor"
    assert [asset.path for asset in files] == [
        "libraries/H5P.Text-1.1/text.css",
        "libraries/H5P.Text-1.1/text.js",
        "custom/editor.css",
    ]


def test_alter_library_files_without_hooks_leaves_files(repository) -> None:
    files = [AssetFile(path="a.js", version="?ver=1")]

    _storage(repository).alter_library_files(files, [])

    assert files == [AssetFile(path="a.js", version="?ver=1")]


# ----------------------------------------------------------------------
# Factory
# ----------------------------------------------------------------------
def test_create_editor_storage_uses_sqlite_by_default(tmp_path: Path) -> None:
    config = StorageConfig(database_path=tmp_path / "editor.sqlite3", table_prefix="x_")
    admin = UserContext.with_capabilities(1, [MANAGE_LIBRARIES_CAPABILITY])

    storage = create_editor_storage(
        asset_alterer=AssetHookRegistry(),
        has_library_management_capability=capability_check(admin),
        config=config,
    )

    assert isinstance(storage.repository, SQLiteLibraryRepository)
    assert storage.repository.storage.table("h5p_tmpfiles") == "x_h5p_tmpfiles"
    storage.repository.save_library("R", 1, 0, title="R", restricted=True, semantics="[]")
    assert storage.list_libraries()[0].restricted is False


def test_create_editor_storage_uses_database_url(tmp_path: Path) -> None:
    config = StorageConfig(
        database_path=tmp_path / "unused.sqlite3",
        database_url=f"sqlite+pysqlite:///{tmp_path / 'orm.sqlite3'}",
    )

    storage = create_editor_storage(
        asset_alterer=AssetHookRegistry(),
        has_library_management_capability=capability_check(anonymous_user()),
        config=config,
    )

    assert isinstance(storage.repository, SQLAlchemyLibraryRepository)
    assert storage.repository.tables.libraries.name == "wp_h5p_libraries"
    storage.repository.save_library("R", 1, 0, title="R", restricted=True, semantics="[]")
    assert storage.list_libraries()[0].restricted is True
    assert not (tmp_path / "unused.sqlite3").exists()


def test_create_editor_storage_with_memory_database(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    config = StorageConfig(database_path=":memory:")

    storage = create_editor_storage(
        asset_alterer=AssetHookRegistry(),
        has_library_management_capability=capability_check(anonymous_user()),
        config=config,
    )

    sqlite_storage = storage.repository.storage
    try:
        assert sqlite_storage.path is None
        assert list(tmp_path.iterdir()) == []
        storage.repository.save_library("A", 1, 0, title="Alpha", semantics="[]")
        assert [library.name for library in storage.list_libraries()] == ["A"]
    finally:
        sqlite_storage.close()


# ----------------------------------------------------------------------
# Text-valued restriction flags
# ----------------------------------------------------------------------
class TextFlagRepository:
    """Repository returning restriction flags as text, as MySQL drivers do."""

    def __init__(self) -> None:
        self.rows = [
            LibraryRow(1, "Locked", "Locked", 1, 0, True, "1", ""),
            LibraryRow(2, "Open", "Open", 1, 0, True, "0", ""),
        ]

    def fetch_library_details(self, name, major_version, minor_version):
        for row in self.rows:
            if (row.name, row.major_version, row.minor_version) == (
                name,
                major_version,
                minor_version,
            ):
                return row
        return None

    def fetch_runnable_libraries(self):
        return list(self.rows)


@pytest.mark.parametrize(
    ("privileged", "expected"),
    [(False, {"Locked": True, "Open": False}), (True, {"Locked": False, "Open": False})],
)
def test_text_restriction_flags(privileged: bool, expected: dict[str, bool]) -> None:
    storage = _storage(TextFlagRepository(), privileged=privileged)

    catalog = storage.list_libraries()
    requested = storage.list_libraries(
        [LibraryInfo("Open", 1, 0), LibraryInfo("Locked", 1, 0)]
    )

    assert {library.name: library.restricted for library in catalog} == expected
    assert {library.name: library.restricted for library in requested} == expected
    assert all(library.restricted in (True, False) for library in catalog + requested)
