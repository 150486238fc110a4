# src/ishikawa/config.py
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import os
import sys


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    return float(value)


@dataclass
class ToolkitConfig:
    """Tool registry configuration"""
    # Filesystem layout
    root: Path = field(default_factory=Path.cwd)
    tools_dir: str = "tools"

    # Build collaborators
    python_executable: str = sys.executable
    install_timeout: Optional[float] = None
    build_timeout: Optional[float] = None

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        self.root = Path(self.root)
        if not self.tools_dir or os.sep in self.tools_dir or self.tools_dir in (".", ".."):
            raise ValueError(f"tools_dir must be a single directory name, got {self.tools_dir!r}")
        for label, timeout in (("install_timeout", self.install_timeout), ("build_timeout", self.build_timeout)):
            if timeout is not None and timeout <= 0:
                raise ValueError(f"{label} must be positive when set")

    @property
    def tools_root(self) -> Path:
        """Directory holding one subdirectory per registered tool."""
        return self.root / self.tools_dir

    @classmethod
    def from_environment(cls) -> "ToolkitConfig":
        """
        Build a configuration from ISHIKAWA_* environment variables.

        Unset variables fall back to the dataclass defaults, so the tools
        directory lives under the process working directory unless
        ISHIKAWA_ROOT says otherwise.
        """
        root = os.getenv("ISHIKAWA_ROOT")
        return cls(
            root=Path(root) if root else Path.cwd(),
            tools_dir=os.getenv("ISHIKAWA_TOOLS_DIR", "tools"),
            python_executable=os.getenv("ISHIKAWA_PYTHON", sys.executable),
            install_timeout=_optional_float(os.getenv("ISHIKAWA_INSTALL_TIMEOUT")),
            build_timeout=_optional_float(os.getenv("ISHIKAWA_BUILD_TIMEOUT")),
            log_level=os.getenv("ISHIKAWA_LOG_LEVEL", "INFO").upper(),
        )
