"""
Tool Store - filesystem layout for registered tools.

Each tool lives in its own directory under the tools root:

    tools/<name>/
        index.py          source entry, copied at registration
        function.json     serialized ToolMetadata
        package.yaml      dependency manifest read by the installer
        dist/index.pyc    compiled artifact, written by the build service
        site-packages/    installed dependencies, when requested

Re-registering a name overwrites the directory contents in place.
"""

import asyncio
import json
import logging
import re
import shutil
from pathlib import Path
from typing import Any, Dict

import yaml

from ..errors import StoreError, ToolNotFoundError
from .base import StoredTool, ToolMetadata

logger = logging.getLogger(__name__)

_VALID_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


def is_valid_tool_name(name: str) -> bool:
    """A tool name must be usable as a single directory name."""
    return bool(_VALID_NAME.fullmatch(name or ""))


def build_manifest(name: str, dependencies: Dict[str, str]) -> Dict[str, Any]:
    """Minimal package manifest the installer can act on by itself."""
    return {
        "name": f"tool-{name}",
        "version": "1.0.0",
        "dependencies": dict(dependencies),
    }


class ToolStore:
    """
    Writes and locates tool directories under a single root.

    Nothing outside tools_root is ever written.
    """

    def __init__(self, tools_root: Path):
        """
        Initialize the store.

        Args:
            tools_root: Directory holding one subdirectory per tool
        """
        self.tools_root = Path(tools_root)

    def tool_path(self, name: str) -> Path:
        return self.tools_root / name

    def handle(self, name: str) -> StoredTool:
        return StoredTool(name=name, path=self.tool_path(name))

    async def store(self, name: str, source_path: Path, metadata: ToolMetadata) -> StoredTool:
        """
        Lay out a tool on disk.

        Args:
            name: Tool name, used as the directory name
            source_path: Python source file to copy in as index.py
            metadata: Parsed metadata to serialize into function.json

        Returns:
            Handle on the stored tool

        Raises:
            StoreError: If the name is unusable or any write fails
        """
        if not is_valid_tool_name(name):
            raise StoreError("Name must match [A-Za-z0-9_][A-Za-z0-9_.-]*", tool_name=name)

        try:
            stored = await asyncio.to_thread(self._write, name, Path(source_path), metadata)
        except OSError as e:
            raise StoreError(f"Could not write tool files: {e}", tool_name=name) from e

        logger.info(f"Stored tool '{name}' at {stored.path}")
        return stored

    def _write(self, name: str, source_path: Path, metadata: ToolMetadata) -> StoredTool:
        stored = self.handle(name)
        stored.path.mkdir(parents=True, exist_ok=True)

        shutil.copyfile(source_path, stored.source_path)

        stored.metadata_path.write_text(
            json.dumps(metadata.to_json_dict(), indent=2),
            encoding="utf-8"
        )

        manifest = build_manifest(name, metadata.dependencies)
        stored.manifest_path.write_text(
            yaml.safe_dump(manifest, indent=2, sort_keys=False),
            encoding="utf-8"
        )
        return stored

    async def remove(self, name: str) -> None:
        """
        Delete a tool directory and everything in it.

        Raises:
            ToolNotFoundError: If the tool is not stored
            StoreError: If deletion fails
        """
        stored = self.handle(name)
        if not is_valid_tool_name(name) or not stored.exists():
            raise ToolNotFoundError(f"Not found at: {stored.path}", tool_name=name)

        try:
            await asyncio.to_thread(shutil.rmtree, stored.path)
        except OSError as e:
            raise StoreError(f"Could not remove tool directory: {e}", tool_name=name) from e

        logger.info(f"Removed tool '{name}' from {stored.path}")
