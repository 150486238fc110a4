"""
Tool Registry - enumerates registered tools.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import List

from ..errors import ListError

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Lists the tools stored under the tools root.

    A tool is any immediate subdirectory; plain files are ignored. Names come
    back in filesystem enumeration order, so sort them when a stable order
    matters.
    """

    def __init__(self, tools_root: Path):
        self.tools_root = Path(tools_root)

    async def list(self) -> List[str]:
        """
        Return the names of all stored tools.

        Raises:
            ListError: If the tools root is missing or unreadable
        """
        try:
            tools = await asyncio.to_thread(self._scan)
        except OSError as e:
            raise ListError(f"Could not list tools in {self.tools_root}: {e}") from e

        logger.info(f"Found {len(tools)} tools")
        return tools

    def _scan(self) -> List[str]:
        with os.scandir(self.tools_root) as entries:
            return [entry.name for entry in entries if entry.is_dir()]
