#!/usr/bin/env python3
"""
Manual end-to-end check of the tool lifecycle.

This script exercises, in a throwaway directory:
1. Registration (metadata parsing, storing, compiling)
2. Listing registered tools
3. Loading and executing a tool
4. Cache reuse, invalidation and forced reloads
5. Bulk loading

Usage:
    python scripts/test-tool-lifecycle.py
"""

import asyncio
import json
import sys
import tempfile
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ishikawa.config import ToolkitConfig
from ishikawa.errors import NotCompiledError
from ishikawa.tools import ToolManager

ECHO_SOURCE = "def execute(value, *rest):\n    return value\n"
UPPER_SOURCE = "async def default(text):\n    return text.upper()\n"


async def test_registration(manager: ToolManager, workdir: Path):
    """Test registering tools."""
    print("=" * 80)
    print("TEST 1: Registration")
    print("=" * 80)

    for name, source in (("echo", ECHO_SOURCE), ("upper", UPPER_SOURCE)):
        source_path = workdir / f"{name}.py"
        source_path.write_text(source)
        metadata = {"name": name, "description": f"{name} tool", "parameters": {}}

        stored = await manager.register(name, source_path, False, json.dumps(metadata))
        print(f"  ✅ Registered {name} at {stored.path}")

    tools = await manager.list_tools()
    print(f"\n  Registered tools: {', '.join(sorted(tools))}")
    assert sorted(tools) == ["echo", "upper"]

    print("\n✅ Registration test passed!")


async def test_execution(manager: ToolManager):
    """Test loading and executing tools."""
    print("\n" + "=" * 80)
    print("TEST 2: Execution")
    print("=" * 80)

    result = await manager.execute("echo", 42)
    print(f"  echo(42) -> {result}")
    assert result == 42

    result = await manager.execute("upper", "tools as code")
    print(f"  upper('tools as code') -> {result}")
    assert result == "TOOLS AS CODE"

    print("\n✅ Execution test passed!")


async def test_cache(manager: ToolManager):
    """Test tool caching."""
    print("\n" + "=" * 80)
    print("TEST 3: Tool Caching")
    print("=" * 80)

    tool1 = await manager.get("echo")
    tool2 = await manager.get("echo")
    print(f"\n1. Same instance on second get? {tool1 is tool2}")
    assert tool1 is tool2

    print(f"2. Invalidated: {manager.invalidate('echo')}")
    tool3 = await manager.get("echo")
    print(f"3. Same as first instance after invalidation? {tool1 is tool3}")
    assert tool1 is not tool3

    tool4 = await manager.get("echo", force_reload=True)
    print(f"4. Same instance after forced reload? {tool3 is tool4}")
    assert tool3 is not tool4

    print("\n✅ Caching test passed!")


async def test_not_compiled(manager: ToolManager):
    """Test loading a tool whose artifact is missing."""
    print("\n" + "=" * 80)
    print("TEST 4: Missing Artifact")
    print("=" * 80)

    manager.store.handle("upper").artifact_path.unlink()
    manager.clear_cache()

    try:
        await manager.get("upper")
    except NotCompiledError as e:
        print(f"  ✅ {e}")
    else:
        raise AssertionError("Expected NotCompiledError")

    await manager.compile("upper")
    tools = await manager.load_all()
    print(f"  Recompiled; load_all -> {sorted(tools)}")

    print("\n✅ Missing artifact test passed!")


async def main():
    """Run all tests."""
    print("\n" + "=" * 80)
    print("TESTING TOOL LIFECYCLE")
    print("=" * 80)

    with tempfile.TemporaryDirectory() as tmp:
        workdir = Path(tmp)
        manager = ToolManager(ToolkitConfig(root=workdir))

        try:
            await test_registration(manager, workdir)
            await test_execution(manager)
            await test_cache(manager)
            await test_not_compiled(manager)

            print("\n" + "=" * 80)
            print("✅ ALL TESTS PASSED!")
            print("=" * 80)

        except Exception as e:
            print(f"\n❌ TEST FAILED: {e}")
            import traceback
            traceback.print_exc()
            sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
