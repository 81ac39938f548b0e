"""Configuration for the collection watcher package."""

import fnmatch
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass
class WatcherConfig:
    """
    Configuration options for the collection watcher.

    Attributes:
        collections_glob: Glob patterns locating collection manifests
        manifest_name: File name of a collection manifest
        default_logic: Logic file used when a manifest does not name one
        cwd: Base directory for relative globs and relative event paths
        ignore_patterns: Glob patterns for files to ignore
        debounce_ms: Milliseconds to wait before delivering coalesced events
        flush_interval_ms: Interval for flushing debounced events
        recursive: Whether to watch collection directories recursively
        ignore_permission_errors: Skip unreadable roots instead of failing
        shutdown_timeout_s: Seconds to wait for an observer thread to join
    """
    collections_glob: List[str] = field(default_factory=lambda: [
        "collections/**/collection.json",
    ])
    manifest_name: str = "collection.json"
    default_logic: str = "logic.py"
    cwd: Path = field(default_factory=Path.cwd)
    ignore_patterns: List[str] = field(default_factory=lambda: [
        "*.tmp",
        "*.swp",
        "*.swo",
        "*~",
        ".git/*",
        ".git",
        "__pycache__/*",
        "__pycache__",
        "*.pyc",
        ".DS_Store",
        "Thumbs.db",
    ])
    debounce_ms: int = 50
    flush_interval_ms: int = 25
    recursive: bool = True
    ignore_permission_errors: bool = True
    shutdown_timeout_s: float = 5.0

    def __post_init__(self):
        if isinstance(self.cwd, str):
            self.cwd = Path(self.cwd)
        self.cwd = self.cwd.resolve()

    @classmethod
    def from_env(cls) -> "WatcherConfig":
        """
        Create config from environment variables.

        COLLECTION_WATCHER_GLOB holds one or more globs separated by
        os.pathsep, COLLECTION_WATCHER_CWD overrides the base directory.
        """
        kwargs = {}
        globs = os.environ.get("COLLECTION_WATCHER_GLOB")
        if globs:
            kwargs["collections_glob"] = [g for g in globs.split(os.pathsep) if g]
        cwd = os.environ.get("COLLECTION_WATCHER_CWD")
        if cwd:
            kwargs["cwd"] = Path(cwd)
        return cls(**kwargs)

    def should_ignore(self, path: Path) -> bool:
        """
        Check if a path should be ignored based on ignore patterns.

        Args:
            path: Path to check

        Returns:
            True if the path should be ignored
        """
        path_str = path.as_posix()
        name = path.name

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern):
                return True
            if fnmatch.fnmatch(path_str, f"*/{pattern}"):
                return True
            if fnmatch.fnmatch(path_str, pattern):
                return True

        return False
