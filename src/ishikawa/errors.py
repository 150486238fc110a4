"""
Error taxonomy for the tool lifecycle.

Every failure names the tool it concerns and the lifecycle step that failed
(parse, store, install, compile, load, import, list). Errors are raised to
the caller immediately; nothing in the registry retries or rolls back.
"""

from typing import Dict, Optional


class ToolkitError(Exception):
    """Base class for all tool registry errors."""

    step = "toolkit"

    def __init__(self, message: str, tool_name: Optional[str] = None):
        self.tool_name = tool_name
        self.detail = message
        if tool_name:
            message = f"[{self.step}] tool '{tool_name}': {message}"
        else:
            message = f"[{self.step}] {message}"
        super().__init__(message)


class MetadataParseError(ToolkitError):
    """Metadata input was neither valid JSON nor a readable JSON file."""
    step = "parse"


class StoreError(ToolkitError):
    """The tool directory, source copy, metadata or manifest could not be written."""
    step = "store"


class InstallError(ToolkitError):
    """The package installer failed for a tool's dependencies."""
    step = "install"


class CompileError(ToolkitError):
    """The build service could not produce the compiled artifact."""
    step = "compile"


class ToolNotFoundError(ToolkitError, LookupError):
    """No directory exists for the requested tool."""
    step = "load"


class MetadataLoadError(ToolkitError):
    """function.json is missing or does not describe a tool."""
    step = "load"


class NotCompiledError(ToolkitError):
    """The tool is stored but has no compiled artifact; compile it first."""
    step = "load"


class ToolImportError(ToolkitError, ImportError):
    """Executing the compiled artifact raised."""
    step = "import"


class InvalidExportError(ToolkitError):
    """The artifact exposes no callable entry point."""
    step = "load"


class ListError(ToolkitError):
    """The tools root could not be enumerated."""
    step = "list"


class LoadAllError(ToolkitError):
    """
    One or more tools failed during a bulk load.

    Attributes:
        errors: Mapping of tool name to the exception its load raised
    """

    step = "load_all"

    def __init__(self, errors: Dict[str, BaseException]):
        self.errors = dict(errors)
        summary = "; ".join(f"{name}: {exc}" for name, exc in sorted(self.errors.items()))
        super().__init__(f"{len(self.errors)} tool(s) failed to load: {summary}")
