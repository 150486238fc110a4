"""
In-memory cache of loaded tools, owned by a single ToolManager.
"""

from typing import Dict, Iterator, List, Optional

from .base import LoadedTool


class ToolCache:
    """
    Maps tool names to LoadedTool instances, at most one entry per name.

    There is no shared or module-level cache: every manager builds its own,
    so independent managers never see each other's entries.
    """

    def __init__(self):
        self._tools: Dict[str, LoadedTool] = {}

    def get(self, name: str) -> Optional[LoadedTool]:
        return self._tools.get(name)

    def set(self, name: str, tool: LoadedTool) -> None:
        """Insert or replace the entry for name."""
        self._tools[name] = tool

    def pop(self, name: str) -> bool:
        """Remove the entry for name; report whether there was one."""
        return self._tools.pop(name, None) is not None

    def clear(self) -> None:
        self._tools.clear()

    def names(self) -> List[str]:
        return list(self._tools)

    def snapshot(self) -> Dict[str, LoadedTool]:
        """Copy of the current entries; later cache changes do not affect it."""
        return dict(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._tools))

    def __repr__(self) -> str:
        return f"ToolCache(tools={len(self._tools)})"
