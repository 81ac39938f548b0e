"""Tests for the logic watch channel."""

import pytest

from collection_watcher.logic_channel import LogicWatchChannel
from collection_watcher.models import LifecycleEventType, RawEventType, RawFSEvent


@pytest.fixture
def channel(registry, sink, config, collector, reinitializer):
    return LogicWatchChannel(
        registry, sink, on_event=collector, reinitializer=reinitializer, config=config
    )


@pytest.fixture
def collection(registry, make_collection):
    path = make_collection("a", extra={"routes": ["/a"]})
    (path.parent / "helpers.py").write_text("HELP = True\n")
    registry.find()
    return registry.get("a")


class TestLogicRules:

    @pytest.mark.asyncio
    async def test_logic_change_emits_change_logic_then_change(
        self, channel, collection, collector, reinitializer
    ):
        await channel.handle_event(RawFSEvent(RawEventType.CHANGE, collection.logic_file))

        assert collector.types() == ["change_logic", "change"]
        assert collector.events[0].filename is None
        assert collector.events[1].filename == collection.logic_file
        assert reinitializer.count == 1

    @pytest.mark.asyncio
    async def test_auxiliary_change_emits_change(self, channel, collection, collector):
        helper = collection.directory / "helpers.py"

        await channel.handle_event(RawFSEvent(RawEventType.CHANGE, helper))

        assert collector.types() == ["change"]
        assert collector.events[0].filename == helper
        assert collector.events[0].collection == collection

    @pytest.mark.asyncio
    async def test_logic_unlink_removes_collection(
        self, channel, collection, collector, registry, reinitializer
    ):
        await channel.handle_event(RawFSEvent(RawEventType.UNLINK, collection.logic_file))

        assert collector.types() == ["unlink"]
        assert collector.events[0].filename == collection.logic_file
        assert "a" not in registry
        assert reinitializer.count == 1

    @pytest.mark.asyncio
    async def test_auxiliary_unlink_is_change(self, channel, collection, collector, registry):
        helper = collection.directory / "helpers.py"

        await channel.handle_event(RawFSEvent(RawEventType.UNLINK, helper))

        assert collector.types() == ["change"]
        assert "a" in registry

    @pytest.mark.asyncio
    async def test_new_file_is_change(self, channel, collection, collector, reinitializer):
        new_file = collection.directory / "sub" / "extra.py"

        await channel.handle_event(RawFSEvent(RawEventType.ADD, new_file))

        assert collector.types() == ["change"]
        assert collector.events[0].filename == new_file
        assert reinitializer.count == 1

    @pytest.mark.asyncio
    async def test_logic_file_added_by_rename_is_logic_change(
        self, channel, collection, collector, reinitializer
    ):
        await channel.handle_event(RawFSEvent(RawEventType.ADD, collection.logic_file))

        assert collector.types() == ["change_logic", "change"]
        assert collector.events[1].filename == collection.logic_file
        assert reinitializer.count == 1

    @pytest.mark.asyncio
    async def test_manifest_is_left_to_manifest_channel(
        self, channel, collection, collector, reinitializer
    ):
        for event_type in (RawEventType.ADD, RawEventType.CHANGE, RawEventType.UNLINK):
            await channel.handle_event(RawFSEvent(event_type, collection.path))

        assert collector.events == []
        assert reinitializer.count == 0

    @pytest.mark.asyncio
    async def test_file_outside_collections_is_ignored(
        self, channel, collection, collector, tmp_path
    ):
        await channel.handle_event(RawFSEvent(RawEventType.CHANGE, tmp_path / "stray.py"))

        assert collector.events == []

    @pytest.mark.asyncio
    async def test_logic_file_declared_in_manifest(self, channel, registry, collector, make_collection):
        path = make_collection("b", logic="main.py")
        registry.find()

        await channel.handle_event(RawFSEvent(RawEventType.CHANGE, path.parent / "main.py"))

        assert collector.types() == ["change_logic", "change"]

    @pytest.mark.asyncio
    async def test_relative_event_path(self, channel, collection, collector):
        await channel.handle_event(RawFSEvent(RawEventType.CHANGE, "collections/a/logic.py"))

        assert collector.types() == ["change_logic", "change"]


class TestLogicWatching:

    def test_watch_roots_are_known_directories(self, channel, registry, make_collection):
        a = make_collection("a")
        b = make_collection("b")
        registry.find()

        assert list(channel.watch_roots()) == sorted([a.parent, b.parent])
        assert channel.roots == sorted([a.parent, b.parent])

    @pytest.mark.asyncio
    async def test_roots_fixed_at_start(self, channel, registry, make_collection):
        make_collection("a")
        registry.find()
        await channel.start()
        try:
            make_collection("late")
            registry.find()
            assert [r.name for r in channel.roots] == ["a"]
        finally:
            await channel.close()

    @pytest.mark.asyncio
    async def test_detects_logic_edit(
        self, channel, collection, collector, wait_until
    ):
        await channel.start()
        try:
            collection.logic_file.write_text("VALUE = 2\n")
            assert await wait_until(lambda: "change" in collector.types())
            assert "change_logic" in collector.types()
        finally:
            await channel.close()
