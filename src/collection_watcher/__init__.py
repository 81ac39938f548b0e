"""
Collection Watcher Package

Watches a tree of collections (a collection.json manifest, a logic file and
supporting files) and turns raw filesystem notifications into de-duplicated
lifecycle events that drive hot-reload of the collections' code.

Features:
- Manifest channel: add, rename and fail-closed removal of collections
- Logic channel: logic and auxiliary file changes inside known collections
- Cache invalidation before every reload
- Startup gate holding watching back until the initial bulk load finishes
- Debouncing of editor and atomic-save bursts
"""

from .models import (
    RawEventType,
    LifecycleEventType,
    CollectionDescriptor,
    RawFSEvent,
    LifecycleEvent,
)

from .config import WatcherConfig

from .exceptions import (
    WatcherError,
    ManifestError,
    DuplicateCollectionError,
    SubscriptionError,
    WatcherNotRunningError,
)

from .events import EventSink
from .gate import StartupGate
from .invalidator import invalidate, normalize_cache_key
from .registry import CollectionRegistry
from .loader import ModuleLoader, LoadedCollection
from .fs_watcher import WatchSubscription, EventDebouncer
from .manifest_channel import ManifestWatchChannel
from .logic_channel import LogicWatchChannel
from .coordinator import LifecycleCoordinator


__all__ = [
    # Models
    "RawEventType",
    "LifecycleEventType",
    "CollectionDescriptor",
    "RawFSEvent",
    "LifecycleEvent",
    # Config
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "ManifestError",
    "DuplicateCollectionError",
    "SubscriptionError",
    "WatcherNotRunningError",
    # Components
    "EventSink",
    "StartupGate",
    "invalidate",
    "normalize_cache_key",
    "CollectionRegistry",
    "ModuleLoader",
    "LoadedCollection",
    "WatchSubscription",
    "EventDebouncer",
    "ManifestWatchChannel",
    "LogicWatchChannel",
    "LifecycleCoordinator",
]

__version__ = "0.1.0"
