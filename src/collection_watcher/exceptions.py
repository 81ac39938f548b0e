"""Custom exceptions for the collection watcher package."""

from pathlib import Path
from typing import Optional


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class ManifestError(WatcherError):
    """A collection manifest could not be read or is invalid."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class DuplicateCollectionError(ManifestError):
    """Another manifest already registered a collection with this name."""

    def __init__(self, path: Path, name: str, existing: Optional[Path] = None):
        reason = f'collection "{name}" is already registered'
        if existing is not None:
            reason += f" by {existing}"
        super().__init__(path, reason)
        self.name = name
        self.existing = existing


class SubscriptionError(WatcherError):
    """A watch subscription failed before it became ready."""
    pass


class WatcherNotRunningError(WatcherError):
    """Operation requires a running watcher."""
    pass
