"""Asana MCP Server - Expose Asana projects, portfolios and tasks to AI assistants."""
import sys
import asyncio
import logging
import traceback
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent
from pydantic import ValidationError

from asana_core.client import AsanaClient
from asana_core.config import get_settings
from asana_core.dispatcher import Dispatcher
from asana_core.errors import AsanaError

from . import formatters
from . import tools
from . import handlers


# Configure logging to stderr (stdout carries the MCP protocol)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr,
    force=True
)
logger = logging.getLogger("asana-mcp")


# MCP Server instance
app = Server("asana-mcp")

# One client per process, created on the first tool call
_client: Optional[AsanaClient] = None
_dispatcher: Optional[Dispatcher] = None


HANDLER_MAP = {
    # Read handlers
    "asana_workspaces": handlers.handle_workspaces,
    "asana_get": handlers.handle_get,
    # Write handlers
    "asana_create": handlers.handle_create,
    "asana_update": handlers.handle_update,
    "asana_link": handlers.handle_link,
    "asana_delete": handlers.handle_delete,
    # Search handlers
    "asana_task_search": handlers.handle_task_search,
    "asana_resource_search": handlers.handle_resource_search,
}


def get_dispatcher() -> Dispatcher:
    """Build the process-wide client and dispatcher on first use.

    Raises:
        MissingToken: No credential is configured
    """
    global _client, _dispatcher
    if _dispatcher is None:
        settings = get_settings()
        _client = AsanaClient.from_settings(settings)
        _dispatcher = Dispatcher(
            _client,
            default_workspace=settings.default_workspace,
            max_concurrency=settings.max_concurrency,
        )
        if settings.default_workspace:
            logger.info(f"Default workspace: {settings.default_workspace}")
        else:
            logger.info("No default workspace configured; workspace-scoped tools need workspace_gid")
    return _dispatcher


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available MCP tools for Asana."""
    return tools.get_tools()


async def dispatch_tool(name: str, arguments: Any, dispatcher: Optional[Dispatcher] = None) -> list[TextContent]:
    """Run one tool call and render the outcome; errors become ``Error: ...`` text."""
    handler = HANDLER_MAP.get(name)
    if not handler:
        logger.warning(f"Unknown tool requested: {name}")
        return [TextContent(type="text", text=f"Unknown tool: {name}")]

    try:
        if dispatcher is None:
            dispatcher = get_dispatcher()
        return await handler(arguments or {}, dispatcher)

    except AsanaError as e:
        logger.error(f"{name} failed: {e.to_dict()}")
        return formatters.error_response(formatters.format_error(e))

    except ValidationError as e:
        logger.error(f"{name} called with invalid arguments: {e.error_count()} error(s)")
        return formatters.error_response(formatters.format_validation_error(e))

    except Exception as e:
        # Catch-all for unexpected errors
        logger.error(f"Unexpected error during {name} call:")
        logger.error(f"  Error type: {type(e).__name__}")
        logger.error(f"  Error message: {str(e)}")
        logger.error(f"  Arguments: {arguments}")
        logger.error(f"  Traceback:\n{traceback.format_exc()}")
        return [TextContent(type="text", text=f"Error: {type(e).__name__}: {str(e)}")]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle MCP tool calls by delegating to the handlers."""
    logger.info(f"Tool call: {name} with arguments: {arguments}")
    return await dispatch_tool(name, arguments)


async def main():
    """Run the MCP server."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(read_stream, write_stream, app.create_initialization_options())
    finally:
        if _client is not None:
            await _client.aclose()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
