"""Watch channel for the files inside known collection directories."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .channel import WatchChannel
from .models import CollectionDescriptor, LifecycleEvent

logger = logging.getLogger(__name__)


class LogicWatchChannel(WatchChannel):
    """
    Watches the directory of every collection known when it starts.

    The watch set is fixed at start; manifests are left to the manifest
    channel. Only the logic file decides whether a removal unlinks the
    collection; any other file is reported as a change.
    """

    name = "logic"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._roots: List[Path] = []

    def watch_roots(self) -> Iterable[Path]:
        self._roots = sorted(self.registry.list_known_directories())
        return self._roots

    @property
    def roots(self) -> List[Path]:
        return list(self._roots)

    def _owner(self, filename: Path) -> Optional[CollectionDescriptor]:
        collection = self.registry.resolve_path_to_collection(filename)
        if collection is None or collection.path == filename:
            return None
        return collection

    async def on_change(self, filename: Path) -> None:
        collection = self._owner(filename)
        if collection is None:
            return

        await self.reinitialize()

        if filename == collection.logic_file:
            await self.emit(LifecycleEvent.logic_changed(collection))
        await self.emit(LifecycleEvent.changed(collection, filename))

    async def on_unlink(self, filename: Path) -> None:
        collection = self._owner(filename)
        if collection is None:
            return

        await self.reinitialize()

        if filename == collection.logic_file:
            self.registry.unregister(collection)
            await self.emit(LifecycleEvent.removed(collection, filename))
        else:
            await self.emit(LifecycleEvent.changed(collection, filename))

    async def on_add(self, filename: Path) -> None:
        collection = self._owner(filename)
        if collection is None:
            return

        if filename == collection.logic_file:
            # The logic file was replaced by a rename (atomic save).
            await self.on_change(filename)
            return

        await self.reinitialize()
        await self.emit(LifecycleEvent.changed(collection, filename))
