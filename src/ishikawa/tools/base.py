"""
Base types for the tool lifecycle: metadata, the on-disk handle and the loaded tool.
"""

import inspect
from pathlib import Path
from typing import Any, Callable, Dict, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

# Fixed layout inside tools/<name>/
SOURCE_FILENAME = "index.py"
METADATA_FILENAME = "function.json"
MANIFEST_FILENAME = "package.yaml"
BUILD_DIRNAME = "dist"
ARTIFACT_FILENAME = "index.pyc"
SITE_PACKAGES_DIRNAME = "site-packages"


class ToolMetadata(BaseModel):
    """Metadata describing a tool."""
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Unique identifier for the tool, equal to its directory name")
    description: str = Field(..., description="Human-readable description of what the tool does")
    parameters: Any = Field(..., description="JSON Schema describing the tool's input; opaque to the registry")
    dependencies: Dict[str, str] = Field(
        default_factory=dict,
        description="Package name to version constraint, installed next to the tool on request"
    )

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize exactly the keys the caller supplied, extras included."""
        return self.model_dump(mode="json", exclude_unset=True)


@runtime_checkable
class ToolEntryPoint(Protocol):
    """Anything a compiled tool can expose as its callable entry point."""

    def __call__(self, *args: Any, **kwargs: Any) -> Any: ...


class StoredTool(BaseModel):
    """Handle on a tool's directory under the tools root."""

    name: str
    path: Path

    @property
    def source_path(self) -> Path:
        return self.path / SOURCE_FILENAME

    @property
    def metadata_path(self) -> Path:
        return self.path / METADATA_FILENAME

    @property
    def manifest_path(self) -> Path:
        return self.path / MANIFEST_FILENAME

    @property
    def build_dir(self) -> Path:
        return self.path / BUILD_DIRNAME

    @property
    def artifact_path(self) -> Path:
        return self.build_dir / ARTIFACT_FILENAME

    @property
    def site_packages(self) -> Path:
        return self.path / SITE_PACKAGES_DIRNAME

    def exists(self) -> bool:
        return self.path.is_dir()

    def is_compiled(self) -> bool:
        return self.artifact_path.is_file()


class LoadedTool(BaseModel):
    """
    In-memory, executable form of a tool.

    The manager's cache owns each instance; callers may hold a reference but
    doing so has no effect on the cache.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    metadata: ToolMetadata
    execute: Callable[..., Any]
    path: Path

    @property
    def name(self) -> str:
        return self.metadata.name

    async def run(self, *args: Any, **kwargs: Any) -> Any:
        """
        Invoke the entry point, awaiting it when it is asynchronous.

        Whatever the tool returns or raises is passed through untouched.
        """
        result = self.execute(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
