"""MCP tool handlers.

All handlers follow the same pattern:
- Accept: the tool arguments dict and a Dispatcher
- Parse the arguments into the dispatcher's pydantic parameter bundle
- Return: list[TextContent] with the JSON-rendered result

Errors propagate to the caller (the server), which renders them.
"""
import logging
from typing import Any

from mcp.types import TextContent

from asana_core.dispatcher import (
    CreateParams,
    DeleteParams,
    Dispatcher,
    GetParams,
    LinkParams,
    ResourceKind,
    SearchParams,
    UpdateParams,
)

from . import formatters

logger = logging.getLogger("asana-mcp.handlers")


def _clean(arguments: Any) -> dict:
    """Drop arguments explicitly passed as null."""
    return {k: v for k, v in (arguments or {}).items() if v is not None}


# ============================================================================
# Read Handlers
# ============================================================================

async def handle_workspaces(arguments: dict, dispatcher: Dispatcher) -> list[TextContent]:
    """List every workspace visible to the token."""
    workspaces = await dispatcher.get(GetParams(resource_type=ResourceKind.ALL_WORKSPACES))
    logger.info(f"Listed {len(workspaces)} workspaces")
    return formatters.json_response(workspaces)


async def handle_get(arguments: dict, dispatcher: Dispatcher) -> list[TextContent]:
    """Fetch a resource, collection or hierarchy.

    Returns a single resource, a list, a nested tree (portfolio, project or
    task with depth) or a task with its subtasks, dependencies and comments.
    """
    params = GetParams.model_validate(_clean(arguments))
    result = await dispatcher.get(params)
    logger.info(f"Retrieved {params.resource_type.value} {params.gid or ''}".rstrip())
    return formatters.json_response(result)


# ============================================================================
# Write Handlers
# ============================================================================

async def handle_create(arguments: dict, dispatcher: Dispatcher) -> list[TextContent]:
    params = CreateParams.model_validate(_clean(arguments))
    resource = await dispatcher.create(params)
    logger.info(f"Created {params.resource_type.value} {resource.gid}")
    return formatters.json_response(resource)


async def handle_update(arguments: dict, dispatcher: Dispatcher) -> list[TextContent]:
    params = UpdateParams.model_validate(_clean(arguments))
    resource = await dispatcher.update(params)
    logger.info(f"Updated {params.resource_type.value} {params.gid}")
    return formatters.json_response(resource)


async def handle_link(arguments: dict, dispatcher: Dispatcher) -> list[TextContent]:
    """Add or remove a relationship.

    Returns the updated task for task_parent, an acknowledgement otherwise.
    """
    params = LinkParams.model_validate(_clean(arguments))
    result = await dispatcher.link(params)
    logger.info(f"{params.action.value} {params.relationship.value} on {params.target_gid}")
    return formatters.json_response(result)


async def handle_delete(arguments: dict, dispatcher: Dispatcher) -> list[TextContent]:
    params = DeleteParams.model_validate(_clean(arguments))
    result = await dispatcher.delete(params)
    logger.info(f"Deleted {params.resource_type.value} {params.gid}")
    return formatters.json_response(result)


# ============================================================================
# Search Handlers
# ============================================================================

async def handle_task_search(arguments: dict, dispatcher: Dispatcher) -> list[TextContent]:
    """Search tasks with filters; the result carries next_page when more exist."""
    arguments = _clean(arguments)
    arguments["resource_type"] = "task"
    page = await dispatcher.search(SearchParams.model_validate(arguments))
    logger.info(f"Task search returned {len(page.items)} tasks")
    return formatters.json_response(page)


async def handle_resource_search(arguments: dict, dispatcher: Dispatcher) -> list[TextContent]:
    """Typeahead search for non-task resources by name."""
    params = SearchParams.model_validate(_clean(arguments))
    page = await dispatcher.search(params)
    logger.info(f"Typeahead for {params.resource_type} returned {len(page.items)} results")
    return formatters.json_response(page)

