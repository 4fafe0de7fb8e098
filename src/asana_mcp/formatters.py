"""Shared formatting functions for MCP responses.

Dispatcher results are rendered as pretty-printed JSON; errors as a single
``Error: ...`` line the assistant can act on.
"""
import json
from typing import Any

from mcp.types import TextContent
from pydantic import ValidationError

from asana_core.errors import AsanaError


def to_jsonable(result: Any) -> Any:
    """Convert a dispatcher result (anything with ``encode()``, or lists of them) to plain JSON data."""
    if hasattr(result, "encode") and callable(result.encode) and not isinstance(result, (str, bytes)):
        return result.encode()
    if isinstance(result, (list, tuple)):
        return [to_jsonable(item) for item in result]
    if isinstance(result, dict):
        return {key: to_jsonable(value) for key, value in result.items()}
    return result


def json_response(result: Any) -> list[TextContent]:
    """Render a result as indented JSON text content."""
    text = json.dumps(to_jsonable(result), indent=2, ensure_ascii=False, default=str)
    return [TextContent(type="text", text=text)]


def error_context(exc: AsanaError) -> str:
    """Describe what the error is about: ``kind gid``, ``kind`` or the error type."""
    parts = [part for part in (exc.kind, exc.gid) if part]
    if parts:
        return " ".join(parts)
    return type(exc).__name__


def format_error(exc: AsanaError) -> str:
    return f"Error: {error_context(exc)}: {exc.message}"


def format_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic validation errors into one line per offending argument."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "Error: invalid arguments: " + "; ".join(problems)


def error_response(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]
