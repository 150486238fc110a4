"""
Tool Manager - facade over the tool lifecycle with an in-memory cache.

Registration flows parse -> store -> (optional) install -> compile and never
touches the cache. Retrieval flows cache -> loader -> cache. A loaded tool is
materialized at most once per name until it is invalidated, the cache is
cleared, or a reload is forced.

Concurrent get() calls for the same uncached name share a single in-flight
load instead of each loading the tool.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import ToolkitConfig
from ..errors import LoadAllError, MetadataParseError, ToolNotFoundError
from .base import LoadedTool, StoredTool, ToolMetadata
from .build import BuildService, BytecodeBuildService, PackageInstaller, PipInstaller
from .cache import ToolCache
from .loader import ToolLoader
from .metadata import parse_metadata_async
from .registry import ToolRegistry
from .store import ToolStore, is_valid_tool_name

logger = logging.getLogger(__name__)


class ToolManager:
    """
    Registers, loads, caches and executes tools.

    Example Usage:
        manager = ToolManager(ToolkitConfig(root=Path("/srv/ishikawa")))
        await manager.register("echo", "echo.py", False, '{"name": "echo", ...}')

        tool = await manager.get("echo")          # loads and caches
        same = await manager.get("echo")          # cached, same instance
        result = await manager.execute("echo", 42)

        manager.invalidate("echo")                # next get() reloads
    """

    def __init__(
        self,
        config: Optional[ToolkitConfig] = None,
        *,
        store: Optional[ToolStore] = None,
        loader: Optional[ToolLoader] = None,
        registry: Optional[ToolRegistry] = None,
        build_service: Optional[BuildService] = None,
        installer: Optional[PackageInstaller] = None
    ):
        """
        Initialize the manager.

        Args:
            config: Toolkit configuration (defaults to ToolkitConfig.from_environment())
            store: Tool store override
            loader: Tool loader override
            registry: Tool registry override
            build_service: Build collaborator override
            installer: Package installer override
        """
        self.config = config or ToolkitConfig.from_environment()
        tools_root = self.config.tools_root

        self.store = store or ToolStore(tools_root)
        self.loader = loader or ToolLoader(tools_root)
        self.registry = registry or ToolRegistry(tools_root)
        self.build_service = build_service or BytecodeBuildService(timeout=self.config.build_timeout)
        self.installer = installer or PipInstaller(
            python_executable=self.config.python_executable,
            timeout=self.config.install_timeout
        )

        self.cache = ToolCache()
        self._inflight: Dict[str, "asyncio.Task[LoadedTool]"] = {}

    async def register(
        self,
        name: str,
        source_path: Path,
        auto_install: bool,
        metadata_input: str
    ) -> StoredTool:
        """
        Register a tool: parse metadata, store, optionally install, compile.

        No rollback happens on failure; a tool stored but not compiled is
        reported as NotCompiledError by a later load.

        Args:
            name: Tool name (must equal the metadata's name)
            source_path: Python source file for the tool
            auto_install: Install declared dependencies before compiling
            metadata_input: Metadata as inline JSON or the path of a JSON file

        Returns:
            Handle on the stored tool

        Raises:
            MetadataParseError, StoreError, InstallError, CompileError
        """
        metadata = await parse_metadata_async(metadata_input)
        if metadata.name != name:
            raise MetadataParseError(f"Metadata names '{metadata.name}' instead", tool_name=name)

        stored = await self.store.store(name, Path(source_path), metadata)

        if auto_install:
            await self.installer.install(stored.path)

        await self.build_service.compile(stored.path)

        logger.info(f"Tool '{name}' registered successfully at: {stored.path}")
        return stored

    def _require_stored(self, name: str) -> StoredTool:
        stored = self.store.handle(name)
        if not is_valid_tool_name(name) or not stored.exists():
            raise ToolNotFoundError(f"Not found at: {stored.path}", tool_name=name)
        return stored

    async def compile(self, name: str) -> Path:
        """Compile an already-stored tool; returns the artifact path."""
        stored = self._require_stored(name)
        return await self.build_service.compile(stored.path)

    async def install(self, name: str) -> None:
        """Install an already-stored tool's dependencies."""
        stored = self._require_stored(name)
        await self.installer.install(stored.path)

    async def unregister(self, name: str) -> None:
        """Drop a tool from the cache and delete it from disk."""
        self.invalidate(name)
        await self.store.remove(name)
        logger.info(f"Tool '{name}' unregistered")

    async def get(self, name: str, force_reload: bool = False) -> LoadedTool:
        """
        Return the tool, loading it on a cache miss.

        Args:
            name: Tool name
            force_reload: Load from disk even when cached, replacing the entry

        Returns:
            The cached (or freshly loaded) tool

        Raises:
            ToolNotFoundError, MetadataLoadError, NotCompiledError,
            ToolImportError, InvalidExportError
        """
        if not force_reload:
            cached = self.cache.get(name)
            if cached is not None:
                logger.debug(f"Using cached tool: {name}")
                return cached

            pending = self._inflight.get(name)
            if pending is not None:
                logger.debug(f"Joining in-flight load of tool: {name}")
                return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._load_and_cache(name))
        self._inflight[name] = task
        task.add_done_callback(lambda t: self._forget(name, t))
        return await asyncio.shield(task)

    async def _load_and_cache(self, name: str) -> LoadedTool:
        tool = await self.loader.load(name)
        # A load superseded by a reload or an invalidation must not overwrite the cache
        if self._inflight.get(name) is asyncio.current_task():
            self.cache.set(name, tool)
        return tool

    def _forget(self, name: str, task: "asyncio.Task[LoadedTool]") -> None:
        if self._inflight.get(name) is task:
            del self._inflight[name]
        if not task.cancelled():
            # Mark the exception retrieved; every waiter has seen it already
            task.exception()

    async def list_tools(self) -> List[str]:
        """Names of all stored tools; the cache is not consulted."""
        return await self.registry.list()

    async def load_all(self) -> Dict[str, LoadedTool]:
        """
        Load every stored tool concurrently.

        All loads are allowed to settle. Tools that loaded stay cached even
        when others fail; the failures are then raised together.

        Returns:
            Snapshot of the cache after all loads

        Raises:
            ListError: If the tools root cannot be listed
            LoadAllError: If any tool failed to load
        """
        names = await self.list_tools()

        results = await asyncio.gather(
            *(self.get(name) for name in names),
            return_exceptions=True
        )

        failures = {
            name: result
            for name, result in zip(names, results)
            if isinstance(result, BaseException)
        }
        if failures:
            logger.error(f"{len(failures)} of {len(names)} tools failed to load: {', '.join(sorted(failures))}")
            raise LoadAllError(failures)

        logger.info(f"All tools loaded: {len(self.cache)} total")
        return self.cache.snapshot()

    async def execute(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Execute a tool by name; its result or exception propagates unchanged."""
        tool = await self.get(name)
        return await tool.run(*args, **kwargs)

    async def get_metadata(self, name: str) -> ToolMetadata:
        """Get metadata from a tool by name."""
        tool = await self.get(name)
        return tool.metadata

    def clear_cache(self) -> None:
        """Empty the cache; subsequent get() calls reload from disk."""
        self.cache.clear()
        self._inflight.clear()
        logger.info("Tool cache cleared")

    def invalidate(self, name: str) -> bool:
        """
        Remove one tool from the cache.

        Returns:
            True if an entry was removed
        """
        self._inflight.pop(name, None)
        removed = self.cache.pop(name)
        if removed:
            logger.info(f"Tool '{name}' removed from cache")
        return removed

    def __repr__(self) -> str:
        return f"ToolManager(tools_root='{self.config.tools_root}', cached={len(self.cache)})"
