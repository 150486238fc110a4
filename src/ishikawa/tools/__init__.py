"""
Tool lifecycle - registration, compilation, loading and caching of tools.

A tool is a Python source file plus function-call metadata (name,
description, JSON-Schema parameters, dependencies). Tools are registered
into a tools directory, compiled to bytecode, and loaded on demand.

Architecture:
- ToolStore lays tools out on disk (tools/<name>/)
- BuildService / PackageInstaller compile source and install dependencies
- ToolLoader imports the compiled artifact and resolves its entry point
- ToolRegistry enumerates stored tools
- ToolManager ties them together and caches loaded tools by name
"""

from .base import LoadedTool, StoredTool, ToolMetadata
from .build import BytecodeBuildService, PipInstaller
from .cache import ToolCache
from .loader import ImportlibArtifactLoader, ToolLoader, resolve_entry_point
from .manager import ToolManager
from .metadata import function_schema, parse_metadata
from .registry import ToolRegistry
from .store import ToolStore

__all__ = [
    "BytecodeBuildService",
    "ImportlibArtifactLoader",
    "LoadedTool",
    "PipInstaller",
    "StoredTool",
    "ToolCache",
    "ToolLoader",
    "ToolManager",
    "ToolMetadata",
    "ToolRegistry",
    "ToolStore",
    "function_schema",
    "parse_metadata",
    "resolve_entry_point",
]
