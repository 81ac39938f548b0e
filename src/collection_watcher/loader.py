"""Default loader: imports collection logic files with importlib."""

import importlib
import importlib.util
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Dict, List, Optional

from .events import ALL_COLLECTIONS_LOADED, EventSink
from .invalidator import normalize_cache_key
from .models import CollectionDescriptor
from .registry import CollectionRegistry

logger = logging.getLogger(__name__)

_MODULE_PREFIX = "collection_watcher_collections"


@dataclass
class LoadedCollection:
    """A collection whose logic module has been executed."""
    descriptor: CollectionDescriptor
    module: ModuleType


def _module_name(collection_name: str) -> str:
    safe = re.sub(r"\W", "_", collection_name)
    return f"{_MODULE_PREFIX}_{safe}"


class ModuleLoader:
    """
    Loads the logic file of each collection as a Python module.

    Compiled modules are cached by normalized logic path; invalidate()
    drops a cached entry, together with any sys.modules entry backed by
    the same file, so the next load re-reads from disk.
    """

    def __init__(self, events: Optional[EventSink] = None):
        self.events = events or EventSink()
        self._cache: Dict[str, ModuleType] = {}
        self._loaded: Dict[str, LoadedCollection] = {}

    async def load_all(self, registry: CollectionRegistry) -> Dict[str, CollectionDescriptor]:
        """
        Run the initial bulk load and signal its completion.

        Emits ``all_collections_loaded`` on the sink once every discovered
        collection has been loaded, whether or not individual loads failed.
        """
        found = registry.find()
        for descriptor in found.values():
            await self.load(descriptor)

        self.events.emit(ALL_COLLECTIONS_LOADED, found)
        self.events.info(f"Loaded {len(self._loaded)} of {len(found)} collection(s)")
        return found

    async def load(self, collection: CollectionDescriptor) -> Optional[LoadedCollection]:
        """
        Import (or re-use the cached) logic module of a collection.

        Failures are reported to the event sink and leave any previously
        loaded version of the collection unloaded.
        """
        key = normalize_cache_key(collection.logic_file)
        module = self._cache.get(key)

        if module is None:
            try:
                module = self._import(collection, key)
            except Exception as e:
                self._loaded.pop(collection.name, None)
                self.events.error(f'Failed to load collection "{collection.name}": {e}')
                return None
            self._cache[key] = module

        loaded = LoadedCollection(descriptor=collection, module=module)
        self._loaded[collection.name] = loaded
        logger.info(f'Collection "{collection.name}" loaded from {key}')
        return loaded

    async def unload(self, name: str) -> None:
        loaded = self._loaded.pop(name, None)
        if loaded is None:
            logger.debug(f'Collection "{name}" is not loaded')
            return

        sys.modules.pop(_module_name(name), None)
        logger.info(f'Collection "{name}" unloaded')

    def invalidate(self, key: str) -> None:
        """Forget the cached module compiled from the file at key."""
        self._cache.pop(key, None)

        for module_name, module in list(sys.modules.items()):
            module_file = getattr(module, "__file__", None)
            if module_file and normalize_cache_key(module_file) == key:
                del sys.modules[module_name]

        # A same-size rewrite within one mtime tick still matches the .pyc.
        bytecode = Path(importlib.util.cache_from_source(key))
        try:
            bytecode.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove stale bytecode {bytecode}: {e}")
        importlib.invalidate_caches()

    def get(self, name: str) -> Optional[LoadedCollection]:
        return self._loaded.get(name)

    def loaded_names(self) -> List[str]:
        return list(self._loaded)

    def is_cached(self, key: str) -> bool:
        return key in self._cache

    def _import(self, collection: CollectionDescriptor, key: str) -> ModuleType:
        if not collection.logic_file.is_file():
            raise FileNotFoundError(f"logic file not found: {key}")

        module_name = _module_name(collection.name)
        spec = importlib.util.spec_from_file_location(module_name, key)
        if spec is None or spec.loader is None:
            raise ImportError(f"cannot import logic file: {key}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module
