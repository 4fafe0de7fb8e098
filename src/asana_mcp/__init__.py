"""Asana MCP Server - Model Context Protocol integration.

This package exposes the asana_core engine to AI assistants as MCP tools.

Modules:
- server: stdio MCP server implementation
- formatters: Response and error formatting
- tools: MCP tool definitions
- handlers: Tool implementation handlers
"""

__version__ = "0.1.0"

from . import formatters
from . import tools
from . import handlers

__all__ = ["formatters", "tools", "handlers", "__version__"]
