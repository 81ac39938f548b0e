"""Table of known collections, keyed by name and resolvable by path."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional, Set

from .config import WatcherConfig
from .events import EventSink
from .exceptions import DuplicateCollectionError, ManifestError
from .globs import GlobMatcher
from .models import CollectionDescriptor

logger = logging.getLogger(__name__)


class CollectionRegistry:
    """
    Thread-safe registry of collections discovered from manifest files.

    Parses manifests, rejects duplicate names and answers which collection
    a given file belongs to. Rejections are reported to the event sink and
    never raised to the caller.
    """

    def __init__(
        self,
        config: Optional[WatcherConfig] = None,
        events: Optional[EventSink] = None,
    ):
        """
        Initialize the registry.

        Args:
            config: Watcher configuration (globs, cwd, default logic file)
            events: Sink receiving warnings and errors
        """
        self.config = config or WatcherConfig()
        self.events = events or EventSink()
        self._matcher = GlobMatcher(self.config.collections_glob, self.config.cwd)
        self._collections: Dict[str, CollectionDescriptor] = {}
        self._lock = threading.RLock()

    def find(self) -> Dict[str, CollectionDescriptor]:
        """
        Scan the manifest globs and register every collection found.

        Manifests that are already registered are left untouched, so the
        scan can be repeated.

        Returns:
            Mapping of collection name to descriptor
        """
        for manifest in self._matcher.scan():
            with self._lock:
                if self._find_by_manifest(manifest) is not None:
                    continue
            self.register_from_manifest(manifest)

        with self._lock:
            logger.info(f"Found {len(self._collections)} collection(s)")
            return dict(self._collections)

    def parse_manifest(self, path: Path) -> CollectionDescriptor:
        """
        Read a manifest into a descriptor without registering it.

        Raises:
            ManifestError: If the file cannot be read or is not a valid manifest
        """
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ManifestError(path, e.strerror or str(e)) from e

        try:
            data = json.loads(content)
        except ValueError as e:
            raise ManifestError(path, str(e)) from e

        if not isinstance(data, dict):
            raise ManifestError(path, "manifest must be a JSON object")

        name = data.get("name", path.parent.name)
        if not isinstance(name, str) or not name:
            raise ManifestError(path, "collection name must be a non-empty string")

        logic = data.get("logic", self.config.default_logic)
        if not isinstance(logic, str) or not logic:
            raise ManifestError(path, "logic must be a non-empty string")

        properties = dict(data)
        properties["logic"] = logic
        return CollectionDescriptor(name=name, path=path, properties=properties)

    def register_from_manifest(self, path: Path) -> Optional[CollectionDescriptor]:
        """
        Parse and register the manifest at path.

        Args:
            path: Manifest path, absolute or relative to the configured cwd

        Returns:
            The new descriptor, or None if the manifest is invalid, its
            name is taken, or it is already registered
        """
        path = self.full_path_for_file(path)

        try:
            descriptor = self.parse_manifest(path)
        except ManifestError as e:
            self.events.error(e)
            return None

        with self._lock:
            if self._find_by_manifest(path) is not None:
                logger.debug(f"Manifest already registered: {path}")
                return None

            existing = self._collections.get(descriptor.name)
            if existing is not None:
                error = DuplicateCollectionError(path, descriptor.name, existing.path)
                self.events.warn(f"{error}, skipping...")
                return None

            self._collections[descriptor.name] = descriptor

        logger.info(f'Registered collection "{descriptor.name}" from {path}')
        return descriptor

    def unregister(self, collection: CollectionDescriptor) -> bool:
        """
        Remove a collection.

        Returns:
            True if the collection was registered under this identity
        """
        with self._lock:
            current = self._collections.get(collection.name)
            if current is None or current.path != collection.path:
                return False
            del self._collections[collection.name]

        logger.info(f'Unregistered collection "{collection.name}"')
        return True

    def resolve_path_to_collection(self, path: Path) -> Optional[CollectionDescriptor]:
        """
        Find the collection that owns a file.

        Nested collections resolve to the innermost one.

        Args:
            path: Manifest, logic or auxiliary file path

        Returns:
            The owning descriptor, or None
        """
        path = self.full_path_for_file(path)
        best: Optional[CollectionDescriptor] = None

        with self._lock:
            for collection in self._collections.values():
                try:
                    path.relative_to(collection.directory)
                except ValueError:
                    continue
                if best is None or len(collection.directory.parts) > len(best.directory.parts):
                    best = collection
        return best

    def list_known_directories(self) -> Set[Path]:
        with self._lock:
            return {c.directory for c in self._collections.values()}

    def manifest_glob_patterns(self) -> List[str]:
        return list(self.config.collections_glob)

    def full_path_for_file(self, filename: Path) -> Path:
        """Resolve a path reported by a watcher against the configured cwd."""
        path = Path(filename)
        if not path.is_absolute():
            path = self.config.cwd / path
        return Path(os.path.normpath(path))

    def get(self, name: str) -> Optional[CollectionDescriptor]:
        with self._lock:
            return self._collections.get(name)

    def collections(self) -> List[CollectionDescriptor]:
        with self._lock:
            return list(self._collections.values())

    def _find_by_manifest(self, path: Path) -> Optional[CollectionDescriptor]:
        for collection in self._collections.values():
            if collection.path == path:
                return collection
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._collections)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._collections
