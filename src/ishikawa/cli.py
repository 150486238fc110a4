"""
Command-line front-end for the tool registry.

Usage:
    ishikawa list
    ishikawa register echo ./echo.py ./echo.json [--install]
    ishikawa compile echo
    ishikawa run echo 42
    ishikawa show echo
    ishikawa serve
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import yaml

from .config import ToolkitConfig
from .errors import ToolkitError
from .tools import ToolManager

logger = logging.getLogger(__name__)

VERSION = "2.0.0"


def _parse_argument(value: str) -> Any:
    """Tool arguments are JSON when they parse as JSON, plain strings otherwise."""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _format_result(result: Any) -> str:
    try:
        return json.dumps(result, indent=2, default=str)
    except (TypeError, ValueError):
        return repr(result)


async def cmd_list(manager: ToolManager, args: argparse.Namespace) -> int:
    tools = await manager.list_tools()
    if not tools:
        print("No tools registered.")
        return 0
    for tool in sorted(tools):
        print(f"- {tool}")
    return 0


async def cmd_register(manager: ToolManager, args: argparse.Namespace) -> int:
    stored = await manager.register(args.name, args.source, args.install, args.metadata)
    print(f"Tool \"{args.name}\" registered at: {stored.path}")
    return 0


async def cmd_compile(manager: ToolManager, args: argparse.Namespace) -> int:
    artifact = await manager.compile(args.name)
    print(f"Tool \"{args.name}\" compiled to: {artifact}")
    return 0


async def cmd_install(manager: ToolManager, args: argparse.Namespace) -> int:
    await manager.install(args.name)
    print(f"Dependencies installed for tool \"{args.name}\"")
    return 0


async def cmd_show(manager: ToolManager, args: argparse.Namespace) -> int:
    metadata = await manager.get_metadata(args.name)
    print(yaml.safe_dump(metadata.to_json_dict(), indent=2, sort_keys=False), end="")
    return 0


async def cmd_run(manager: ToolManager, args: argparse.Namespace) -> int:
    positional = [_parse_argument(value) for value in args.args]
    try:
        keywords = json.loads(args.kwargs) if args.kwargs else {}
    except json.JSONDecodeError as e:
        raise SystemExit(f"--kwargs is not valid JSON: {e}")
    if not isinstance(keywords, dict):
        raise SystemExit("--kwargs must be a JSON object")
    result = await manager.execute(args.name, *positional, **keywords)
    print(_format_result(result))
    return 0


async def cmd_remove(manager: ToolManager, args: argparse.Namespace) -> int:
    await manager.unregister(args.name)
    print(f"Tool \"{args.name}\" removed")
    return 0


async def cmd_serve(manager: ToolManager, args: argparse.Namespace) -> int:
    from . import server
    await server.main(manager)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ishikawa", description="Ishikawa-Toolkit CLI")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("--root", help="Directory containing the tools/ folder (default: current directory)")
    parser.add_argument("--log-level", help="Logging level (default: ISHIKAWA_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sub = subparsers.add_parser("list", help="List all registered tools")
    sub.set_defaults(handler=cmd_list)

    sub = subparsers.add_parser("register", help="Register and compile a tool")
    sub.add_argument("name", help="Tool name")
    sub.add_argument("source", help="Path to the tool's Python source")
    sub.add_argument("metadata", help="Metadata as inline JSON or a path to a JSON file")
    sub.add_argument("--install", action="store_true", help="Install declared dependencies before compiling")
    sub.set_defaults(handler=cmd_register)

    sub = subparsers.add_parser("compile", help="Compile a stored tool")
    sub.add_argument("name")
    sub.set_defaults(handler=cmd_compile)

    sub = subparsers.add_parser("install", help="Install a stored tool's dependencies")
    sub.add_argument("name")
    sub.set_defaults(handler=cmd_install)

    sub = subparsers.add_parser("show", help="Print a tool's metadata")
    sub.add_argument("name")
    sub.set_defaults(handler=cmd_show)

    sub = subparsers.add_parser("run", help="Execute a tool")
    sub.add_argument("name")
    sub.add_argument("args", nargs="*", help="Positional arguments (JSON values or strings)")
    sub.add_argument("--kwargs", help="Keyword arguments as a JSON object")
    sub.set_defaults(handler=cmd_run)

    sub = subparsers.add_parser("remove", help="Delete a stored tool")
    sub.add_argument("name")
    sub.set_defaults(handler=cmd_remove)

    sub = subparsers.add_parser("serve", help="Serve registered tools over MCP")
    sub.set_defaults(handler=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    config = ToolkitConfig.from_environment()
    if args.root:
        config.root = Path(args.root)
    logging.basicConfig(level=(args.log_level or config.log_level).upper())

    manager = ToolManager(config)
    try:
        return asyncio.run(args.handler(manager, args))
    except ToolkitError as e:
        logger.error(str(e))
        return 1
