"""
Build hand-off - compiling tool source and installing tool dependencies.

Both steps are delegated to collaborators behind small protocols so the
registry only depends on their contracts:

- BuildService turns tools/<name>/index.py into tools/<name>/dist/index.pyc
- PackageInstaller materializes the dependencies listed in package.yaml

The default implementations compile to bytecode for the running interpreter
and install with pip into the tool's own site-packages directory.
"""

import asyncio
import contextlib
import logging
import py_compile
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import yaml

from ..errors import CompileError, InstallError
from .base import (
    ARTIFACT_FILENAME,
    BUILD_DIRNAME,
    MANIFEST_FILENAME,
    SITE_PACKAGES_DIRNAME,
    SOURCE_FILENAME,
)

logger = logging.getLogger(__name__)

# Constraints that mean "any version"
_UNPINNED = {"", "*", "latest"}


class BuildService(Protocol):
    """Produces the compiled artifact for a stored tool."""

    async def compile(self, tool_dir: Path) -> Path:
        """Compile tool_dir's source and return the artifact path."""
        ...


class PackageInstaller(Protocol):
    """Installs a stored tool's declared dependencies."""

    async def install(self, tool_dir: Path) -> None:
        ...


class BytecodeBuildService:
    """
    Compiles index.py to CPython bytecode at dist/index.pyc.

    The target runtime is the interpreter running the registry; the artifact
    is loaded without its source, so no timestamp check ever applies.
    """

    def __init__(self, timeout: Optional[float] = None, optimize: int = -1):
        """
        Args:
            timeout: Seconds to wait for compilation, None for no limit
            optimize: Optimization level passed to py_compile (-1 = interpreter's)
        """
        self.timeout = timeout
        self.optimize = optimize

    async def compile(self, tool_dir: Path) -> Path:
        """
        Compile the tool's source.

        Raises:
            CompileError: On a syntax error, unreadable source, or timeout
        """
        tool_dir = Path(tool_dir)
        name = tool_dir.name
        source = tool_dir / SOURCE_FILENAME
        artifact = tool_dir / BUILD_DIRNAME / ARTIFACT_FILENAME

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._compile, source, artifact),
                timeout=self.timeout
            )
        except py_compile.PyCompileError as e:
            raise CompileError(f"Error compiling tool: {e.msg}", tool_name=name) from e
        except asyncio.TimeoutError as e:
            raise CompileError(f"Compilation timed out after {self.timeout}s", tool_name=name) from e
        except OSError as e:
            raise CompileError(f"Error compiling tool: {e}", tool_name=name) from e

        logger.info(f"Compiled tool '{name}' to {artifact}")
        return artifact

    def _compile(self, source: Path, artifact: Path) -> None:
        # A failed build must not leave a previous artifact behind
        artifact.unlink(missing_ok=True)
        if not source.is_file():
            raise FileNotFoundError(f"Source file not found: {source}")
        artifact.parent.mkdir(parents=True, exist_ok=True)
        py_compile.compile(
            str(source),
            cfile=str(artifact),
            doraise=True,
            optimize=self.optimize,
        )


def requirement_specs(dependencies: Dict[str, str]) -> List[str]:
    """
    Turn a dependency map into pip requirement specifiers.

    Caret and tilde ranges are accepted as well, so manifests written with
    npm-style constraints still install.

    Example:
        requirement_specs({"requests": ">=2.31", "pyyaml": "*", "rich": "13.7.0", "attrs": "^23.1"})
        # ['requests>=2.31', 'pyyaml', 'rich==13.7.0', 'attrs>=23.1,<24']
    """
    specs = []
    for package, constraint in dependencies.items():
        constraint = "" if constraint is None else str(constraint).strip()
        if constraint.lower() in _UNPINNED:
            specs.append(package)
        elif constraint[0].isdigit():
            specs.append(f"{package}=={constraint}")
        elif constraint.startswith("^"):
            version = constraint[1:]
            major = version.split(".")[0]
            if not major.isdigit():
                raise ValueError(f"Unsupported constraint for {package}: {constraint}")
            specs.append(f"{package}>={version},<{int(major) + 1}")
        elif constraint.startswith("~") and not constraint.startswith("~="):
            specs.append(f"{package}~={constraint[1:]}")
        elif constraint.startswith("@"):
            specs.append(f"{package} {constraint}")
        else:
            specs.append(f"{package}{constraint}")
    return specs


class PipInstaller:
    """
    Installs dependencies with pip into tools/<name>/site-packages.

    pip runs with the tool directory as its working directory, so the
    installed packages stay next to the tool they belong to.
    """

    def __init__(self, python_executable: Optional[str] = None, timeout: Optional[float] = None):
        self.python_executable = python_executable or sys.executable
        self.timeout = timeout

    def _read_manifest(self, tool_dir: Path) -> Dict[str, Any]:
        manifest_path = tool_dir / MANIFEST_FILENAME
        try:
            manifest = yaml.safe_load(manifest_path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise InstallError(f"Could not read {MANIFEST_FILENAME}: {e}", tool_name=tool_dir.name) from e

        if not isinstance(manifest, dict) or not isinstance(manifest.get("dependencies") or {}, dict):
            raise InstallError(f"{MANIFEST_FILENAME} has no dependency map", tool_name=tool_dir.name)
        return manifest

    async def install(self, tool_dir: Path) -> None:
        """
        Install the tool's dependencies.

        Raises:
            InstallError: On an unreadable manifest, a pip failure, or a timeout
        """
        tool_dir = Path(tool_dir)
        name = tool_dir.name
        manifest = self._read_manifest(tool_dir)
        try:
            specs = requirement_specs(manifest.get("dependencies") or {})
        except ValueError as e:
            raise InstallError(str(e), tool_name=name) from e

        if not specs:
            logger.info(f"Tool '{name}' declares no dependencies, nothing to install")
            return

        logger.info(f"Installing dependencies at: {tool_dir}")
        command = [
            self.python_executable, "-m", "pip", "install",
            "--disable-pip-version-check",
            "--no-input",
            "--upgrade",
            "--target", SITE_PACKAGES_DIRNAME,
            *specs,
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(tool_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise InstallError(f"Error installing dependencies: {e}", tool_name=name) from e

        try:
            output, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise InstallError(f"Installation timed out after {self.timeout}s", tool_name=name) from e

        text = output.decode("utf-8", errors="replace").strip() if output else ""
        if process.returncode != 0:
            raise InstallError(
                f"Error installing dependencies (exit {process.returncode}): {text}",
                tool_name=name
            )

        logger.info(f"Dependencies installed successfully for '{name}'")
        logger.debug(text)
