"""Watch channel for collection manifest files."""

import logging
from pathlib import Path
from typing import Iterable, Optional

from .channel import WatchChannel
from .fs_watcher import PathFilter
from .globs import GlobMatcher
from .models import CollectionDescriptor, LifecycleEvent

logger = logging.getLogger(__name__)


class ManifestWatchChannel(WatchChannel):
    """
    Watches every file matching the manifest globs.

    An edit to a manifest is always reported as unlink followed by add,
    since the edit may rename the collection. A manifest that no longer
    parses leaves its collection removed.
    """

    name = "manifest"

    def _matcher(self) -> GlobMatcher:
        return GlobMatcher(self.registry.manifest_glob_patterns(), self.config.cwd)

    def watch_roots(self) -> Iterable[Path]:
        return self._matcher().roots()

    def path_filter(self) -> Optional[PathFilter]:
        return self._matcher().matches

    def _bound_collection(self, filename: Path) -> Optional[CollectionDescriptor]:
        collection = self.registry.resolve_path_to_collection(filename)
        if collection is None or collection.path != filename:
            return None
        return collection

    async def on_add(self, filename: Path) -> None:
        if self._bound_collection(filename) is not None:
            # Renamed over an existing manifest (atomic save).
            await self.on_change(filename)
            return

        collection = self.registry.register_from_manifest(filename)
        if collection is None:
            return
        await self.emit(LifecycleEvent.added(collection))

    async def on_change(self, filename: Path) -> None:
        collection = self._bound_collection(filename)
        if collection is None:
            logger.debug(f"Ignoring change of unregistered manifest {filename}")
            return

        # The name may have changed, so the old identity always goes first.
        self.registry.unregister(collection)
        await self.emit(LifecycleEvent.removed(collection))

        await self.reinitialize()

        reloaded = self.registry.register_from_manifest(collection.path)
        if reloaded is None:
            logger.warning(f'Collection "{collection.name}" stays removed: {filename} was rejected')
            return
        await self.emit(LifecycleEvent.added(reloaded))

    async def on_unlink(self, filename: Path) -> None:
        collection = self._bound_collection(filename)
        if collection is None:
            logger.debug(f"Ignoring removal of unregistered manifest {filename}")
            return

        self.registry.unregister(collection)
        await self.emit(LifecycleEvent.removed(collection))
        await self.reinitialize()
