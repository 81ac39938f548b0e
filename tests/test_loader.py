"""Tests for the default module loader."""

import importlib.util
import sys
import types
from pathlib import Path

import pytest

from collection_watcher.events import ALL_COLLECTIONS_LOADED, ERROR
from collection_watcher.gate import StartupGate
from collection_watcher.invalidator import normalize_cache_key
from collection_watcher.loader import ModuleLoader


@pytest.fixture
def module_loader(sink):
    return ModuleLoader(sink)


class TestModuleLoader:
    """Tests for ModuleLoader class."""

    @pytest.mark.asyncio
    async def test_load_executes_logic(self, module_loader, registry, make_collection):
        descriptor = registry.register_from_manifest(make_collection("alpha", logic_body="VALUE = 1\n"))

        loaded = await module_loader.load(descriptor)

        assert loaded.module.VALUE == 1
        assert loaded.descriptor == descriptor
        assert module_loader.loaded_names() == ["alpha"]
        assert module_loader.is_cached(normalize_cache_key(descriptor.logic_file))

    @pytest.mark.asyncio
    async def test_load_reuses_cache(self, module_loader, registry, make_collection):
        path = make_collection("alpha", logic_body="VALUE = 1\n")
        descriptor = registry.register_from_manifest(path)
        first = await module_loader.load(descriptor)

        (path.parent / "logic.py").write_text("VALUE = 22\n")
        second = await module_loader.load(descriptor)

        assert second.module is first.module
        assert second.module.VALUE == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_reread(self, module_loader, registry, make_collection):
        path = make_collection("alpha", logic_body="VALUE = 1\n")
        descriptor = registry.register_from_manifest(path)
        await module_loader.load(descriptor)

        (path.parent / "logic.py").write_text("VALUE = 22\n")
        key = normalize_cache_key(descriptor.logic_file)
        module_loader.invalidate(key)
        module_loader.invalidate(key)
        loaded = await module_loader.load(descriptor)

        assert loaded.module.VALUE == 22

    def test_invalidate_drops_sys_modules_entry(self, module_loader, tmp_path):
        helper = tmp_path / "helper.py"
        helper.write_text("")
        module = types.ModuleType("collection_watcher_test_helper")
        module.__file__ = str(helper)
        sys.modules["collection_watcher_test_helper"] = module

        module_loader.invalidate(normalize_cache_key(helper))

        assert "collection_watcher_test_helper" not in sys.modules

    def test_invalidate_removes_cached_bytecode(self, module_loader, tmp_path):
        logic = tmp_path / "logic.py"
        logic.write_text("VALUE = 1\n")
        bytecode = Path(importlib.util.cache_from_source(str(logic)))
        bytecode.parent.mkdir(parents=True, exist_ok=True)
        bytecode.write_bytes(b"stale")

        module_loader.invalidate(normalize_cache_key(logic))

        assert not bytecode.exists()

    @pytest.mark.asyncio
    async def test_same_size_rewrite_is_reread(self, module_loader, registry, make_collection):
        path = make_collection("alpha", logic_body="VALUE = 1\n")
        descriptor = registry.register_from_manifest(path)
        await module_loader.load(descriptor)

        (path.parent / "logic.py").write_text("VALUE = 2\n")
        module_loader.invalidate(normalize_cache_key(descriptor.logic_file))
        loaded = await module_loader.load(descriptor)

        assert loaded.module.VALUE == 2
        assert loaded.module.__file__ == str(descriptor.logic_file)

    @pytest.mark.asyncio
    async def test_load_failure_is_reported(self, module_loader, registry, sink, make_collection):
        errors = []
        sink.on(ERROR, errors.append)
        descriptor = registry.register_from_manifest(
            make_collection("broken", logic_body="raise RuntimeError('nope')\n")
        )

        assert await module_loader.load(descriptor) is None
        assert module_loader.get("broken") is None
        assert "nope" in errors[0]

    @pytest.mark.asyncio
    async def test_load_missing_logic_file(self, module_loader, registry, sink, make_collection):
        errors = []
        sink.on(ERROR, errors.append)
        path = make_collection("gone")
        (path.parent / "logic.py").unlink()
        descriptor = registry.register_from_manifest(path)

        assert await module_loader.load(descriptor) is None
        assert "logic file not found" in errors[0]

    @pytest.mark.asyncio
    async def test_unload(self, module_loader, registry, make_collection):
        descriptor = registry.register_from_manifest(make_collection("alpha"))
        await module_loader.load(descriptor)

        await module_loader.unload("alpha")
        await module_loader.unload("alpha")

        assert module_loader.get("alpha") is None
        assert module_loader.loaded_names() == []

    @pytest.mark.asyncio
    async def test_load_all_opens_gate(self, module_loader, registry, sink, make_collection):
        make_collection("alpha")
        make_collection("beta")
        signals = []
        sink.on(ALL_COLLECTIONS_LOADED, signals.append)
        gate = StartupGate.from_sink(sink)

        found = await module_loader.load_all(registry)

        assert sorted(found) == ["alpha", "beta"]
        assert sorted(module_loader.loaded_names()) == ["alpha", "beta"]
        assert len(signals) == 1
        assert gate.is_resolved
