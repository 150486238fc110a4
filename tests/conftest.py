"""Shared fixtures: an isolated tools root and helpers to author tools."""

import json
import textwrap
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

from ishikawa.config import ToolkitConfig
from ishikawa.tools import ToolManager

ECHO_SOURCE = """
def execute(value, *rest):
    return value
"""


def echo_metadata(name: str = "echo", **extra: Any) -> Dict[str, Any]:
    metadata = {"name": name, "description": "returns input", "parameters": {}}
    metadata.update(extra)
    return metadata


@pytest.fixture
def config(tmp_path: Path) -> ToolkitConfig:
    return ToolkitConfig(root=tmp_path / "workspace")


@pytest.fixture
def manager(config: ToolkitConfig) -> ToolManager:
    return ToolManager(config)


@pytest.fixture
def write_source(tmp_path: Path):
    """Write a tool source file outside the tools root and return its path."""

    def _write(body: str, filename: str = "tool_source.py") -> Path:
        path = tmp_path / "sources" / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def register(manager: ToolManager, write_source):
    """Register a tool through the manager; compiles unless the build is replaced."""

    async def _register(
        name: str,
        body: str = ECHO_SOURCE,
        metadata: Optional[Dict[str, Any]] = None,
        auto_install: bool = False,
    ):
        source = write_source(body, filename=f"{name}.py")
        return await manager.register(
            name, source, auto_install, json.dumps(metadata or echo_metadata(name))
        )

    return _register
