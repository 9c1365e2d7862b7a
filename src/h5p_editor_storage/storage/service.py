"""Editor-facing storage service for libraries, translations and uploads."""

from __future__ import annotations

import logging
from collections.abc import MutableSequence, Sequence

from ..asset_hooks import EDITOR_CHANNEL, AssetAlterer, AssetFile
from ..auth import CapabilityCheck
from ..config import StorageConfig, get_config
from .database import SQLiteStorage
from .repository import (
    LibraryInfo,
    LibraryRef,
    LibraryRepository,
    LibraryRow,
    SQLiteLibraryRepository,
    coerce_flag,
)

__all__ = ["EditorStorage", "create_editor_storage"]

logger = logging.getLogger(__name__)


class EditorStorage:
    """Answer the editor's questions about content types and uploaded files.

    Parameters
    ----------
    repository:
        Backend executing the parameterised queries.
    asset_alterer:
        Collaborator allowed to change which scripts and styles are attached
        to content types, usually an
        :class:`~h5p_editor_storage.asset_hooks.AssetHookRegistry`.
    has_library_management_capability:
        Predicate telling whether the current user may see restricted
        content types. It is evaluated once per :meth:`list_libraries` call.
    """

    def __init__(
        self,
        repository: LibraryRepository,
        *,
        asset_alterer: AssetAlterer,
        has_library_management_capability: CapabilityCheck,
    ) -> None:
        self._repository = repository
        self._asset_alterer = asset_alterer
        self._has_library_management_capability = has_library_management_capability

    @property
    def repository(self) -> LibraryRepository:
        return self._repository

    def get_translation(
        self, name: str, major_version: int, minor_version: int, language_code: str
    ) -> str | None:
        """Return the editor translation JSON for a library.

        Only an exact match on name, version and language is returned; there
        is no fallback to another language.
        """

        translation = self._repository.fetch_translation(
            name, major_version, minor_version, language_code
        )
        if translation is None:
            logger.debug(
                "No %s translation for %s %d.%d",
                language_code,
                name,
                major_version,
                minor_version,
            )
        return translation

    def mark_file_permanent(self, file_id: str) -> None:
        """Keep an uploaded file by removing it from the temporary-files list."""

        removed = self._repository.delete_temporary_file(file_id)
        logger.debug("Marked %s permanent (%d pending rows removed)", file_id, removed)

    def list_libraries(
        self, requested: Sequence[LibraryInfo] | None = None
    ) -> list[LibraryInfo]:
        """Return the content types available in the editor.

        When *requested* is given, details are loaded for those libraries only
        and libraries that are missing are left out. The request objects are
        filled in and returned in their original order.

        Without *requested* every runnable library is listed ordered by title.
        All versions are returned; every one except the newest version of
        each library is flagged with ``is_old``.
        """

        privileged = bool(self._has_library_management_capability())

        if requested is not None:
            return self._load_requested(requested, privileged)
        return self._load_catalog(privileged)

    def alter_library_files(
        self,
        files: MutableSequence[AssetFile],
        libraries: Sequence[LibraryRef],
    ) -> None:
        """Let hooks add, remove or reorder the asset *files* in place."""

        self._asset_alterer.alter_assets(files, libraries, EDITOR_CHANNEL)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _load_requested(
        self, requested: Sequence[LibraryInfo], privileged: bool
    ) -> list[LibraryInfo]:
        found: list[LibraryInfo] = []
        for library in requested:
            details = self._repository.fetch_library_details(
                library.name, library.major_version, library.minor_version
            )
            if details is None:
                logger.debug(
                    "Requested library %s %d.%d is unavailable",
                    library.name,
                    library.major_version,
                    library.minor_version,
                )
                continue

            library.tutorial_url = details.tutorial_url
            library.title = details.title
            library.runnable = details.runnable
            library.restricted = _restricted(details, privileged)
            found.append(library)
        return found

    def _load_catalog(self, privileged: bool) -> list[LibraryInfo]:
        libraries: list[LibraryInfo] = []
        newest: dict[str, LibraryInfo] = {}

        for row in self._repository.fetch_runnable_libraries():
            library = LibraryInfo(
                name=row.name,
                major_version=row.major_version,
                minor_version=row.minor_version,
                title=row.title,
                runnable=True,
                restricted=_restricted(row, privileged),
                tutorial_url=row.tutorial_url,
            )

            current = newest.get(library.name)
            if current is None:
                newest[library.name] = library
            elif library.ref.is_newer_than(current.ref):
                current.is_old = True
                newest[library.name] = library
            else:
                library.is_old = True

            libraries.append(library)
        return libraries


def _restricted(row: LibraryRow, privileged: bool) -> bool:
    if privileged:
        return False
    return coerce_flag(row.restricted)


def create_editor_storage(
    *,
    asset_alterer: AssetAlterer,
    has_library_management_capability: CapabilityCheck,
    config: StorageConfig | None = None,
) -> EditorStorage:
    """Build an :class:`EditorStorage` for the configured database."""

    settings = config or get_config()

    repository: LibraryRepository
    if settings.database_url:
        from ..db import (
            SQLAlchemyLibraryRepository,
            build_tables,
            create_schema,
            get_engine,
        )

        engine = get_engine(settings.database_url)
        tables = build_tables(settings.table_prefix)
        create_schema(engine, tables)
        repository = SQLAlchemyLibraryRepository(engine, tables)
        logger.debug("Using SQLAlchemy storage at %s", engine.url)
    else:
        storage = SQLiteStorage(
            settings.database_path, table_prefix=settings.table_prefix
        )
        repository = SQLiteLibraryRepository(storage)
        logger.debug("Using SQLite storage at %s", storage.path)

    return EditorStorage(
        repository,
        asset_alterer=asset_alterer,
        has_library_management_capability=has_library_management_capability,
    )
