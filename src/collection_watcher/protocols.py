"""Protocols for the collaborators the watcher drives.

Apps can provide any implementation; the package ships CollectionRegistry
and ModuleLoader as defaults.
"""

from pathlib import Path
from typing import List, Optional, Protocol, Set

from .models import CollectionDescriptor


class RegistryProtocol(Protocol):
    """Resolves paths to collections and owns the table of known collections."""

    def resolve_path_to_collection(self, path: Path) -> Optional[CollectionDescriptor]:
        """Return the collection whose directory contains path, if any."""
        ...

    def register_from_manifest(self, path: Path) -> Optional[CollectionDescriptor]:
        """
        Parse and register the manifest at path.

        Returns None on parse failure or duplicate name; the rejection is
        reported to the event sink, never raised.
        """
        ...

    def unregister(self, collection: CollectionDescriptor) -> bool:
        ...

    def list_known_directories(self) -> Set[Path]:
        ...

    def manifest_glob_patterns(self) -> List[str]:
        ...

    def full_path_for_file(self, filename: Path) -> Path:
        """Absolute form of a path reported by a watch subscription."""
        ...


class LoaderProtocol(Protocol):
    """Imports, instantiates and drops collection code."""

    async def load(self, collection: CollectionDescriptor) -> None:
        ...

    async def unload(self, name: str) -> None:
        ...

    def invalidate(self, key: str) -> None:
        """Forget any cached compiled representation of the file at key."""
        ...


class ReinitializerProtocol(Protocol):
    """Refreshes path-to-route mappings after a topology change.

    Called redundantly in quick succession; implementations must tolerate it.
    """

    async def reinitialize(self) -> None:
        ...
