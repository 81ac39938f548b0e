"""Data models for the collection watcher package."""

import os
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOGIC_FILE = "logic.py"


class RawEventType(Enum):
    """Normalized notifications delivered by a watch subscription."""
    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"


class LifecycleEventType(Enum):
    """Public lifecycle events emitted for collections."""
    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"
    CHANGE_LOGIC = "change_logic"


@dataclass(frozen=True)
class CollectionDescriptor:
    """
    Read-only snapshot of a registered collection.

    Two descriptors are equal when they share the same identity, i.e. the
    same manifest path and name. A manifest change produces a new
    descriptor rather than mutating this one.

    Attributes:
        name: Logical collection name declared by the manifest
        path: Absolute path to the manifest file
        properties: Manifest content; only "logic" is interpreted here
    """
    name: str
    path: Path
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if not self.path.is_absolute():
            raise ValueError(f"path must be absolute: {self.path}")

    @property
    def directory(self) -> Path:
        """Directory that holds the manifest and the collection's files."""
        return self.path.parent

    @property
    def logic_file(self) -> Path:
        """Absolute path of the logic file, derived from the current manifest."""
        logic = self.properties.get("logic") or DEFAULT_LOGIC_FILE
        return Path(os.path.normpath(self.directory / logic))

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "path": str(self.path),
            "logic_file": str(self.logic_file),
            "properties": dict(self.properties),
        }


@dataclass
class RawFSEvent:
    """
    Raw notification from a watch subscription before correlation.

    Attributes:
        event_type: add, change or unlink
        path: Absolute path of the affected file
        is_directory: Whether this is a directory event
        timestamp: Unix timestamp when the event occurred
    """
    event_type: RawEventType
    path: Path
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class LifecycleEvent:
    """
    A correlated collection lifecycle event.

    Attributes:
        event_type: add, change, unlink or change_logic
        collection: The collection the event refers to
        filename: File that triggered the event; None for manifest-driven
            add/unlink and for change_logic
        timestamp: Unix timestamp when the event was produced
    """
    event_type: LifecycleEventType
    collection: CollectionDescriptor
    filename: Optional[Path] = None
    timestamp: float = field(default_factory=time.time, compare=False)

    @classmethod
    def added(cls, collection: CollectionDescriptor) -> "LifecycleEvent":
        return cls(LifecycleEventType.ADD, collection)

    @classmethod
    def changed(cls, collection: CollectionDescriptor, filename: Path) -> "LifecycleEvent":
        return cls(LifecycleEventType.CHANGE, collection, filename)

    @classmethod
    def logic_changed(cls, collection: CollectionDescriptor) -> "LifecycleEvent":
        return cls(LifecycleEventType.CHANGE_LOGIC, collection)

    @classmethod
    def removed(
        cls,
        collection: CollectionDescriptor,
        filename: Optional[Path] = None,
    ) -> "LifecycleEvent":
        return cls(LifecycleEventType.UNLINK, collection, filename)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "collection": self.collection.to_dict(),
            "filename": str(self.filename) if self.filename else None,
            "timestamp": self.timestamp,
        }
