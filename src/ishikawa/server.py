"""
Ishikawa MCP Server - exposes registered tools to MCP clients.

Every stored, loadable tool is advertised with its metadata: the tool's
`parameters` become the MCP inputSchema. Calls are routed through the
ToolManager, so a tool is loaded once and served from the cache afterwards.
Tool metadata is also published as YAML resources under tool://<name>.

Usage:
    # stdio (default)
    python -m ishikawa serve

    # SSE
    export MCP_TRANSPORT=sse MCP_HOST=0.0.0.0 MCP_PORT=8001
    python -m ishikawa serve

    # Streamable HTTP
    export MCP_TRANSPORT=streamable-http MCP_HOST=0.0.0.0 MCP_PORT=8001
    python -m ishikawa serve
"""
import json
import logging
import os
from typing import Any, List, Optional

import mcp.types as types
import uvicorn
import yaml
from mcp.server import Server
from mcp.server.fastmcp import FastMCP
from mcp.server.sse import SseServerTransport
from pydantic import AnyUrl
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.routing import Mount, Route

from .errors import ListError, ToolkitError
from .tools import ToolManager

logger = logging.getLogger(__name__)

ResponseType = List[types.TextContent | types.ImageContent | types.EmbeddedResource]

RESOURCE_SCHEME = "tool://"

# Global variables
_manager: Optional[ToolManager] = None


def initialize_server(manager: ToolManager):
    """Set the tool manager the MCP handlers serve from."""
    global _manager
    _manager = manager
    logger.info(f"MCP server serving tools from: {manager.config.tools_root}")


def get_manager() -> ToolManager:
    """Get the global tool manager, creating one from the environment if needed."""
    global _manager
    if _manager is None:
        _manager = ToolManager()
    return _manager


def data_to_yaml(data: Any) -> str:
    """Convert data to YAML format."""
    return yaml.safe_dump(data, indent=2, sort_keys=False)


def format_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, default=str)
    except (TypeError, ValueError):
        return repr(result)


async def _tool_names(manager: ToolManager) -> List[str]:
    try:
        return sorted(await manager.list_tools())
    except ListError as e:
        logger.info(f"No tools directory yet: {e}")
        return []


async def handle_list_tools() -> list[types.Tool]:
    """List every registered tool that loads."""
    manager = get_manager()
    mcp_tools = []

    for name in await _tool_names(manager):
        try:
            metadata = await manager.get_metadata(name)
        except ToolkitError as e:
            logger.error(f"Skipping tool {name}: {e}")
            continue

        input_schema = metadata.parameters if isinstance(metadata.parameters, dict) else {}
        mcp_tools.append(types.Tool(
            name=metadata.name,
            description=metadata.description,
            inputSchema=input_schema or {"type": "object", "properties": {}}
        ))

    logger.info(f"Listing {len(mcp_tools)} tools")
    return mcp_tools


async def handle_tool_call(name: str, arguments: dict | None) -> ResponseType:
    """
    Execute a registered tool.

    Arguments are passed to the tool's entry point as keyword arguments.
    """
    logger.info(f"Tool call: {name} with arguments: {arguments}")
    manager = get_manager()

    try:
        result = await manager.execute(name, **(arguments or {}))
    except ToolkitError as e:
        logger.error(f"Could not load tool {name}: {e}")
        return [types.TextContent(type="text", text=f"Error: {e}")]
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return [types.TextContent(type="text", text=f"Error executing tool {name}: {str(e)}")]

    return [types.TextContent(type="text", text=format_result(result))]


async def handle_list_resources() -> list[types.Resource]:
    """One metadata resource per registered tool."""
    manager = get_manager()
    return [
        types.Resource(
            uri=AnyUrl(f"{RESOURCE_SCHEME}{name}"),
            name=f"{name} tool",
            description=f"Metadata of the {name} tool",
            mimeType="application/yaml",
        )
        for name in await _tool_names(manager)
    ]


async def handle_read_resource(uri: AnyUrl) -> str:
    """Return a tool's metadata as YAML."""
    if not str(uri).startswith(RESOURCE_SCHEME):
        raise ValueError(f"Unknown resource: {uri}")

    name = str(uri)[len(RESOURCE_SCHEME):].strip("/")
    metadata = await get_manager().get_metadata(name)
    return data_to_yaml(metadata.to_json_dict())


# Create FastMCP app
app = FastMCP("ishikawa")

app._mcp_server.list_tools()(handle_list_tools)
app._mcp_server.call_tool(validate_input=False)(handle_tool_call)
app._mcp_server.list_resources()(handle_list_resources)
app._mcp_server.read_resource()(handle_read_resource)


def create_starlette_app(mcp_server: Server, *, debug: bool = False) -> Starlette:
    """Create a Starlette application for SSE transport."""
    sse = SseServerTransport("/messages/")

    async def handle_sse(request: Request) -> None:
        async with sse.connect_sse(
                request.scope,
                request.receive,
                request._send,
        ) as (read_stream, write_stream):
            await mcp_server.run(
                read_stream,
                write_stream,
                mcp_server.create_initialization_options(),
            )

    routes = [
        Route("/sse", endpoint=handle_sse),
        Mount("/messages/", app=sse.handle_post_message),
    ]
    return Starlette(debug=debug, routes=routes)


async def main(manager: Optional[ToolManager] = None):
    """Main entry point for the MCP server."""
    initialize_server(manager or ToolManager())

    mcp_transport = os.getenv("MCP_TRANSPORT", "stdio").lower()
    logger.info(f"MCP_TRANSPORT: {mcp_transport}")

    if mcp_transport == "sse":
        app.settings.host = os.getenv("MCP_HOST", "127.0.0.1")
        app.settings.port = int(os.getenv("MCP_PORT", "8001"))
        logger.info(f"Starting MCP server on {app.settings.host}:{app.settings.port}")
        starlette_app = create_starlette_app(app._mcp_server, debug=True)
        config = uvicorn.Config(starlette_app, host=app.settings.host, port=app.settings.port, log_level="info")
        server = uvicorn.Server(config)
        await server.serve()
    elif mcp_transport == "streamable-http":
        app.settings.host = os.getenv("MCP_HOST", "127.0.0.1")
        app.settings.port = int(os.getenv("MCP_PORT", "8001"))
        app.settings.streamable_http_path = os.getenv("MCP_PATH", "/mcp/")
        logger.info(f"Starting MCP server on {app.settings.host}:{app.settings.port}")
        await app.run_streamable_http_async()
    else:
        logger.info("Starting MCP server on stdin/stdout")
        await app.run_stdio_async()
