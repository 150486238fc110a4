"""Tests for the on-disk tool layout."""

import json

import pytest
import yaml

from ishikawa.errors import StoreError, ToolNotFoundError
from ishikawa.tools.base import ToolMetadata
from ishikawa.tools.store import ToolStore, build_manifest, is_valid_tool_name


@pytest.fixture
def store(tmp_path) -> ToolStore:
    return ToolStore(tmp_path / "tools")


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "src.py"
    path.write_text("def execute(x):\n    return x\n")
    return path


def make_metadata(**overrides) -> ToolMetadata:
    data = {"name": "echo", "description": "returns input", "parameters": {}}
    data.update(overrides)
    return ToolMetadata.model_validate(data)


class TestStore:

    @pytest.mark.asyncio
    async def test_lays_out_tool_directory(self, store, source) -> None:
        stored = await store.store("echo", source, make_metadata(dependencies={"requests": ">=2"}))

        assert stored.path == store.tools_root / "echo"
        assert stored.source_path.read_text() == source.read_text()
        assert json.loads(stored.metadata_path.read_text()) == {
            "name": "echo",
            "description": "returns input",
            "parameters": {},
            "dependencies": {"requests": ">=2"},
        }
        assert yaml.safe_load(stored.manifest_path.read_text()) == {
            "name": "tool-echo",
            "version": "1.0.0",
            "dependencies": {"requests": ">=2"},
        }
        assert stored.exists()
        assert not stored.is_compiled()

    @pytest.mark.asyncio
    async def test_reregistration_overwrites_in_place(self, store, source, tmp_path) -> None:
        await store.store("echo", source, make_metadata(description="first"))

        other = tmp_path / "other.py"
        other.write_text("def execute():\n    return 'second'\n")
        stored = await store.store("echo", other, make_metadata(description="second"))

        assert "second" in stored.source_path.read_text()
        assert json.loads(stored.metadata_path.read_text())["description"] == "second"

    @pytest.mark.asyncio
    async def test_missing_source_raises_store_error(self, store, tmp_path) -> None:
        with pytest.raises(StoreError) as excinfo:
            await store.store("echo", tmp_path / "nope.py", make_metadata())
        assert isinstance(excinfo.value.__cause__, OSError)
        assert "echo" in str(excinfo.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "..", "a/b", ".hidden", "echo\n"])
    async def test_unsafe_names_are_rejected(self, store, source, name) -> None:
        with pytest.raises(StoreError):
            await store.store(name, source, make_metadata(name=name))
        assert not (store.tools_root / "b").exists()

    @pytest.mark.asyncio
    async def test_remove(self, store, source) -> None:
        stored = await store.store("echo", source, make_metadata())
        await store.remove("echo")
        assert not stored.exists()

        with pytest.raises(ToolNotFoundError):
            await store.remove("echo")


def test_manifest_embeds_name_and_dependencies() -> None:
    assert build_manifest("calc", {"mathlib": "1.0"}) == {
        "name": "tool-calc",
        "version": "1.0.0",
        "dependencies": {"mathlib": "1.0"},
    }


def test_tool_name_validation() -> None:
    assert is_valid_tool_name("echo")
    assert is_valid_tool_name("my-tool.v2")
    assert not is_valid_tool_name("../escape")
    assert not is_valid_tool_name("-flag")
    assert not is_valid_tool_name("echo\n")
