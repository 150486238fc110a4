"""
Tool Loader - materializes a stored, compiled tool as a LoadedTool.

Loading is a fixed chain of checks, each a hard precondition for the next:

1. the tool directory exists                  -> ToolNotFoundError
2. function.json parses as ToolMetadata       -> MetadataLoadError
3. dist/index.pyc exists                      -> NotCompiledError
4. the artifact imports                       -> ToolImportError
5. the module exposes a callable entry point  -> InvalidExportError

Importing runs the artifact's top-level code. That is the only step with
arbitrary side effects and it sits behind the ArtifactLoader protocol, so a
subprocess or sandboxed loader can replace ImportlibArtifactLoader without
touching the loader or the manager.

The loader never caches; ToolManager owns the cache.
"""

import asyncio
import importlib.util
import json
import logging
import re
import sys
from pathlib import Path
from types import ModuleType
from typing import Optional, Protocol, Tuple

from pydantic import ValidationError

from ..errors import (
    InvalidExportError,
    MetadataLoadError,
    NotCompiledError,
    ToolImportError,
    ToolkitError,
    ToolNotFoundError,
)
from .base import SITE_PACKAGES_DIRNAME, LoadedTool, StoredTool, ToolEntryPoint, ToolMetadata
from .store import is_valid_tool_name

logger = logging.getLogger(__name__)

DEFAULT_EXPORT = "default"
EXECUTE_EXPORT = "execute"


class ArtifactLoader(Protocol):
    """Executes a compiled artifact and returns the resulting module."""

    async def import_artifact(self, name: str, artifact_path: Path, tool_dir: Path) -> ModuleType:
        ...


class ImportlibArtifactLoader:
    """
    Imports dist/index.pyc in-process with importlib.

    The module is registered in sys.modules under a per-tool name while it
    executes, and replaced on every reload. When the tool has a
    site-packages directory it is put on sys.path first.
    """

    module_prefix = "_ishikawa_tool_"

    def module_name(self, name: str) -> str:
        return self.module_prefix + re.sub(r"\W", "_", name)

    async def import_artifact(self, name: str, artifact_path: Path, tool_dir: Path) -> ModuleType:
        return await asyncio.to_thread(self._import, name, Path(artifact_path), Path(tool_dir))

    def _import(self, name: str, artifact_path: Path, tool_dir: Path) -> ModuleType:
        module_name = self.module_name(name)
        spec = importlib.util.spec_from_file_location(module_name, artifact_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"No loader available for {artifact_path}")

        site_packages = tool_dir / SITE_PACKAGES_DIRNAME
        if site_packages.is_dir() and str(site_packages) not in sys.path:
            sys.path.insert(0, str(site_packages))
            logger.debug(f"Added {site_packages} to sys.path")

        module = importlib.util.module_from_spec(spec)
        previous = sys.modules.get(module_name)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException as e:
            if previous is not None:
                sys.modules[module_name] = previous
            else:
                sys.modules.pop(module_name, None)
            if isinstance(e, (Exception, GeneratorExit)):
                raise
            # SystemExit or KeyboardInterrupt from top-level code must not end the host process
            raise ToolImportError(
                f"Could not import tool: top-level code raised {type(e).__name__}: {e}",
                tool_name=name
            ) from e
        return module


def entry_point_candidates(name: str) -> Tuple[str, ...]:
    """Attribute names probed for the entry point, highest priority first."""
    return (DEFAULT_EXPORT, EXECUTE_EXPORT, name)


def resolve_entry_point(module: ModuleType, name: str) -> ToolEntryPoint:
    """
    Pick the tool's callable from its module.

    The first callable among `default`, `execute` and the attribute named
    after the tool wins.

    Raises:
        InvalidExportError: If none of them is callable
    """
    for attribute in entry_point_candidates(name):
        candidate = getattr(module, attribute, None)
        if callable(candidate):
            logger.debug(f"Tool '{name}' entry point resolved to '{attribute}'")
            return candidate

    probed = ", ".join(entry_point_candidates(name))
    raise InvalidExportError(f"Does not export a valid function (looked for: {probed})", tool_name=name)


class ToolLoader:
    """Loads tools from the tools root, one fresh LoadedTool per call."""

    def __init__(self, tools_root: Path, artifact_loader: Optional[ArtifactLoader] = None):
        """
        Args:
            tools_root: Directory holding one subdirectory per tool
            artifact_loader: Import boundary (defaults to ImportlibArtifactLoader)
        """
        self.tools_root = Path(tools_root)
        self.artifact_loader = artifact_loader or ImportlibArtifactLoader()

    async def load(self, name: str) -> LoadedTool:
        """
        Load a tool by name.

        Args:
            name: Name of the tool (its directory name)

        Returns:
            The loaded tool with metadata, entry point and directory

        Raises:
            ToolNotFoundError, MetadataLoadError, NotCompiledError,
            ToolImportError, InvalidExportError
        """
        stored = StoredTool(name=name, path=self.tools_root / name)

        # Step 1: Verify tool exists
        if not is_valid_tool_name(name) or not await asyncio.to_thread(stored.exists):
            raise ToolNotFoundError(f"Not found at: {stored.path}", tool_name=name)

        # Step 2: Load function.json metadata
        metadata = await asyncio.to_thread(self._read_metadata, stored)

        # Step 3: Check for the compiled artifact
        if not await asyncio.to_thread(stored.is_compiled):
            raise NotCompiledError("Not compiled. Compile the tool before loading it.", tool_name=name)

        # Step 4: Import the compiled module
        try:
            module = await self.artifact_loader.import_artifact(name, stored.artifact_path, stored.path)
        except ToolkitError:
            raise
        except Exception as e:
            raise ToolImportError(f"Could not import tool: {e}", tool_name=name) from e

        # Step 5: Get the exported function
        execute = resolve_entry_point(module, name)

        logger.info(f"Tool '{name}' loaded successfully")
        return LoadedTool(metadata=metadata, execute=execute, path=stored.path)

    def _read_metadata(self, stored: StoredTool) -> ToolMetadata:
        try:
            data = json.loads(stored.metadata_path.read_text(encoding="utf-8"))
            metadata = ToolMetadata.model_validate(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            raise MetadataLoadError(f"Could not load metadata: {e}", tool_name=stored.name) from e

        if metadata.name != stored.name:
            raise MetadataLoadError(
                f"Metadata names '{metadata.name}', which does not match its directory",
                tool_name=stored.name
            )
        return metadata
