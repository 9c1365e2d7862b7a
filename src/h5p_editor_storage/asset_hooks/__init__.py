"""Asset alteration hooks and their registry.

Other plugins can adjust which scripts and styles are attached to content
types by registering hooks here. The editor storage forwards the list of
asset files to :meth:`AssetHookRegistry.alter_assets` on the ``"editor"``
channel; hooks mutate the list in place.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, MutableSequence, Sequence
from dataclasses import dataclass
from importlib import metadata
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..storage.repository import LibraryRef

__all__ = [
    "ASSET_HOOKS_ENTRY_POINT_GROUP",
    "AssetAlterer",
    "AssetFile",
    "AssetHook",
    "AssetHookRegistry",
    "EDITOR_CHANNEL",
]

logger = logging.getLogger(__name__)

ASSET_HOOKS_ENTRY_POINT_GROUP = "h5p_editor_storage.asset_hooks"
"""Entry point group used to discover third-party asset hooks."""

EDITOR_CHANNEL = "editor"
"""Channel name used when assets are altered for the editor."""


@dataclass(slots=True)
class AssetFile:
    """Script or stylesheet attached to a content type."""

    path: str
    version: str


AssetHook = Callable[[MutableSequence[AssetFile], Sequence["LibraryRef"], str], Any]
"""Callable receiving ``(files, libraries, channel)`` and mutating *files*."""


@runtime_checkable
class AssetAlterer(Protocol):
    """Protocol implemented by objects able to alter asset lists."""

    def alter_assets(
        self,
        files: MutableSequence[AssetFile],
        libraries: Sequence[LibraryRef],
        channel: str,
    ) -> None:
        """Mutate *files* in place for the given *channel*."""


class AssetHookRegistry:
    """Ordered collection of asset hooks implementing :class:`AssetAlterer`."""

    def __init__(self) -> None:
        self._hooks: list[tuple[AssetHook, str | None]] = []
        self._entry_points_loaded = False

    def register(self, hook: AssetHook, *, channel: str | None = None) -> AssetHook:
        """Register *hook* for *channel*, or for every channel when ``None``."""

        if not callable(hook):
            message = f"Asset hooks must be callable; received {type(hook)!r}"
            raise TypeError(message)

        if not any(existing is hook for existing, _ in self._hooks):
            self._hooks.append((hook, channel))
            logger.debug("Registered asset hook %r for channel %s", hook, channel)

        return hook

    def unregister(self, hook: AssetHook) -> None:
        """Remove *hook* from the registry when present."""

        self._hooks = [entry for entry in self._hooks if entry[0] is not hook]

    def clear(self) -> None:
        """Remove all hooks and reset discovery state."""

        self._hooks.clear()
        self._entry_points_loaded = False

    def hooks_for(self, channel: str) -> tuple[AssetHook, ...]:
        """Return the hooks that apply to *channel* in registration order."""

        return tuple(
            hook
            for hook, hook_channel in self._hooks
            if hook_channel is None or hook_channel == channel
        )

    def discover(self, force: bool = False) -> None:
        """Register hooks exposed via :mod:`importlib.metadata` entry points."""

        if self._entry_points_loaded and not force:
            return

        if force:
            self.clear()

        for entry_point in metadata.entry_points(group=ASSET_HOOKS_ENTRY_POINT_GROUP):
            try:
                hook = entry_point.load()
            except Exception:
                logger.exception("Failed to load asset hook %s", entry_point.name)
                continue

            try:
                self.register(hook)
            except TypeError:
                logger.exception(
                    "Entry point %s returned an incompatible hook: %r",
                    entry_point.name,
                    hook,
                )

        self._entry_points_loaded = True

    def alter_assets(
        self,
        files: MutableSequence[AssetFile],
        libraries: Sequence[LibraryRef],
        channel: str,
    ) -> None:
        """Run every hook registered for *channel* against *files*."""

        for hook in self.hooks_for(channel):
            hook(files, libraries, channel)
