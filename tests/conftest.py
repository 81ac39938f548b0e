"""Shared fixtures for collection watcher tests."""

import asyncio
import json
import time
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from collection_watcher.config import WatcherConfig
from collection_watcher.events import EventSink
from collection_watcher.models import LifecycleEvent
from collection_watcher.registry import CollectionRegistry


class RecordingLoader:
    """Loader double that records every call in order."""

    def __init__(self):
        self.calls: List[tuple] = []

    async def load(self, collection):
        self.calls.append(("load", collection.name))

    async def unload(self, name):
        self.calls.append(("unload", name))

    def invalidate(self, key):
        self.calls.append(("invalidate", key))

    def ops(self) -> List[str]:
        return [op for op, _ in self.calls]


class RecordingReinitializer:
    def __init__(self):
        self.count = 0

    async def reinitialize(self):
        self.count += 1


class EventCollector:
    """Async lifecycle handler that keeps every event it receives."""

    def __init__(self):
        self.events: List[LifecycleEvent] = []

    async def __call__(self, event: LifecycleEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [e.event_type.value for e in self.events]


@pytest.fixture
def config(tmp_path):
    (tmp_path / "collections").mkdir()
    return WatcherConfig(
        collections_glob=["collections/**/collection.json"],
        cwd=tmp_path,
        debounce_ms=30,
        flush_interval_ms=10,
    )


@pytest.fixture
def sink():
    return EventSink()


@pytest.fixture
def registry(config, sink):
    return CollectionRegistry(config, sink)


@pytest.fixture
def loader():
    return RecordingLoader()


@pytest.fixture
def reinitializer():
    return RecordingReinitializer()


@pytest.fixture
def collector():
    return EventCollector()


@pytest.fixture
def make_collection(tmp_path) -> Callable[..., Path]:
    """Create a collection directory and return its manifest path."""

    def _make(
        dirname: str,
        name: Optional[str] = None,
        logic: str = "logic.py",
        logic_body: str = "VALUE = 1\n",
        extra: Optional[dict] = None,
    ) -> Path:
        directory = tmp_path / "collections" / dirname
        directory.mkdir(parents=True, exist_ok=True)
        manifest = {"name": name or dirname, "logic": logic}
        if extra:
            manifest.update(extra)
        manifest_path = directory / "collection.json"
        manifest_path.write_text(json.dumps(manifest))
        (directory / logic).write_text(logic_body)
        return manifest_path

    return _make


async def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.02)
    return predicate()


@pytest.fixture
def wait_until():
    return _wait_until
