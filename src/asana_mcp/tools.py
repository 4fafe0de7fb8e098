"""MCP tool definitions for the Asana server.

Each tool maps onto one dispatcher verb. Enumerations are taken from the
dispatcher so the schemas and the dispatch tables cannot drift apart.
"""

from mcp.types import Tool

from asana_core.dispatcher import (
    TYPEAHEAD_KINDS,
    CreateKind,
    DeleteKind,
    LinkAction,
    Relationship,
    ResourceKind,
    UpdateKind,
)
from asana_core.fields import DetailLevel


def _values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


GID_LIST = {"type": "array", "items": {"type": "string"}}

DETAIL_LEVEL = {
    "type": "string",
    "enum": _values(DetailLevel),
    "description": "How many fields to request: minimal (gid, name, type), standard (default), full",
}

OPT_FIELDS = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Extra fields appended to the detail level's fields, e.g. [\"assignee.email\", \"custom_fields\"]",
}


def get_tools() -> list[Tool]:
    """Get the list of all MCP tools for the Asana server."""
    return [
        # ============================================================================
        # Read Tools
        # ============================================================================
        Tool(
            name="asana_workspaces",
            description="List all workspaces the authenticated user can access. "
                       "Start here to discover workspace GIDs for the other tools.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
        Tool(
            name="asana_get",
            description="Fetch any Asana resource by type.\n\n"
                       "gid meaning depends on resource_type:\n"
                       "• project, portfolio, task, workspace, project_template, section, tag, user, team, "
                       "status_update, project_brief: GID of that resource\n"
                       "• workspace_favorites, workspace_projects, workspace_tags, workspace_users, "
                       "workspace_teams, my_tasks: workspace GID (defaults to ASANA_DEFAULT_WORKSPACE)\n"
                       "• project_tasks: project or portfolio GID; project_sections, project_custom_fields, "
                       "project_status_updates, project_project_brief: project GID\n"
                       "• task_subtasks, task_comments: parent task GID; team_users: team GID\n"
                       "• workspace_templates: optional team GID\n"
                       "• all_workspaces, me: gid is ignored\n\n"
                       "Hierarchies: portfolio expands nested portfolios to `depth`; project and task with "
                       "`depth` return a tree of tasks/subtasks. depth -1 = unlimited, 0 = this node only.",
            inputSchema={
                "type": "object",
                "properties": {
                    "resource_type": {
                        "type": "string",
                        "enum": _values(ResourceKind),
                        "description": "Type of resource to fetch"
                    },
                    "gid": {
                        "type": "string",
                        "description": "GID of the resource (see tool description)"
                    },
                    "depth": {
                        "type": "integer",
                        "description": "Traversal depth: -1 = unlimited, 0 = none, N = N levels"
                    },
                    "subtask_depth": {
                        "type": "integer",
                        "description": "project_tasks only: subtask levels to include (-1 = unlimited, default 0)"
                    },
                    "include_subtasks": {
                        "type": "boolean",
                        "description": "task only: include subtasks (default: true)"
                    },
                    "include_dependencies": {
                        "type": "boolean",
                        "description": "task only: include dependencies and dependents (default: true)"
                    },
                    "include_comments": {
                        "type": "boolean",
                        "description": "task only: include comments (default: true)"
                    },
                    "detail_level": DETAIL_LEVEL,
                    "opt_fields": OPT_FIELDS,
                },
                "required": ["resource_type"]
            }
        ),

        # ============================================================================
        # Write Tools
        # ============================================================================
        Tool(
            name="asana_create",
            description="Create an Asana resource. Context by resource_type:\n"
                       "• task: project_gid or workspace_gid (project wins when both are given; "
                       "falls back to ASANA_DEFAULT_WORKSPACE)\n"
                       "• subtask, comment: task_gid\n"
                       "• project: workspace_gid or team_gid; name required\n"
                       "• project_from_template: template_gid, name; team_gid optional\n"
                       "• portfolio, tag: workspace_gid (default workspace if omitted); name required\n"
                       "• section, project_brief: project_gid\n"
                       "• status_update: parent_gid (project or portfolio) and status_type\n"
                       "• project_duplicate, task_duplicate: source_gid and name\n\n"
                       "Attributes not used by the resource type are ignored.",
            inputSchema={
                "type": "object",
                "properties": {
                    "resource_type": {
                        "type": "string",
                        "enum": _values(CreateKind),
                        "description": "Type of resource to create"
                    },
                    "workspace_gid": {"type": "string", "description": "Workspace GID"},
                    "project_gid": {"type": "string", "description": "Project GID"},
                    "task_gid": {"type": "string", "description": "Parent task GID (subtask, comment)"},
                    "team_gid": {"type": "string", "description": "Team GID (project, template, duplicate)"},
                    "parent_gid": {"type": "string", "description": "Project or portfolio GID (status_update)"},
                    "template_gid": {"type": "string", "description": "Project template GID"},
                    "source_gid": {"type": "string", "description": "GID of the project or task to duplicate"},
                    "name": {"type": "string", "description": "Name of the resource"},
                    "notes": {"type": "string", "description": "Plain text description"},
                    "html_notes": {"type": "string", "description": "HTML description"},
                    "text": {"type": "string", "description": "Text (comment, status_update, project_brief)"},
                    "html_text": {"type": "string", "description": "HTML text; preferred over text for comments"},
                    "title": {"type": "string", "description": "Title (status_update, project_brief)"},
                    "status_type": {
                        "type": "string",
                        "description": "on_track, at_risk, off_track, on_hold, complete"
                    },
                    "assignee": {"type": "string", "description": "Assignee user GID (task, subtask)"},
                    "due_on": {"type": "string", "description": "Due date (YYYY-MM-DD)"},
                    "start_on": {"type": "string", "description": "Start date (YYYY-MM-DD)"},
                    "color": {"type": "string", "description": "Color (project, portfolio, tag)"},
                    "public": {"type": "boolean", "description": "Public visibility"},
                    "privacy_setting": {
                        "type": "string",
                        "description": "public_to_workspace or private_to_team (project)"
                    },
                    "custom_fields": {
                        "type": "object",
                        "description": "Custom field values as {field_gid: value}"
                    },
                    "requested_dates": {
                        "type": "array",
                        "items": {"type": "object"},
                        "description": "Template date variables: [{gid, value}]"
                    },
                    "requested_roles": {
                        "type": "array",
                        "items": {"type": "object"},
                        "description": "Template role assignments: [{gid, value}]"
                    },
                    "include": {
                        **GID_LIST,
                        "description": "What to copy when duplicating (e.g. notes, assignee, subtasks)"
                    },
                    "opt_fields": OPT_FIELDS,
                },
                "required": ["resource_type"]
            }
        ),
        Tool(
            name="asana_update",
            description="Update an Asana resource. Provide gid and only the fields to change.\n"
                       "• task: name, assignee, due_on, start_on, completed, notes, html_notes, custom_fields\n"
                       "• project: name, notes, html_notes, color, archived, public, privacy_setting\n"
                       "• portfolio: name, color, public\n"
                       "• section: name (required)\n"
                       "• tag: name, color, notes\n"
                       "• comment: text or html_text (required)\n"
                       "• status_update: title, text, html_text, status_type\n"
                       "• project_brief: title, text, html_text",
            inputSchema={
                "type": "object",
                "properties": {
                    "resource_type": {
                        "type": "string",
                        "enum": _values(UpdateKind),
                        "description": "Type of resource to update"
                    },
                    "gid": {"type": "string", "description": "GID of the resource to update"},
                    "name": {"type": "string"},
                    "notes": {"type": "string"},
                    "html_notes": {"type": "string"},
                    "text": {"type": "string"},
                    "html_text": {"type": "string"},
                    "title": {"type": "string"},
                    "status_type": {"type": "string"},
                    "completed": {"type": "boolean"},
                    "assignee": {"type": "string"},
                    "due_on": {"type": "string"},
                    "start_on": {"type": "string"},
                    "color": {"type": "string"},
                    "archived": {"type": "boolean"},
                    "public": {"type": "boolean"},
                    "privacy_setting": {"type": "string"},
                    "custom_fields": {"type": "object"},
                    "opt_fields": OPT_FIELDS,
                },
                "required": ["resource_type", "gid"]
            }
        ),
        Tool(
            name="asana_link",
            description="Add or remove relationships (target_gid -> item_gid):\n"
                       "• task_project: task -> project (section_gid, insert_before/insert_after on add)\n"
                       "• task_tag: task -> tag\n"
                       "• task_parent: task -> parent task. Add only; add without an item clears the parent\n"
                       "• task_dependency, task_dependent: task -> task(s)\n"
                       "• task_follower: task -> user(s)\n"
                       "• portfolio_item: portfolio -> project (insert_before/insert_after on add)\n"
                       "• portfolio_member: portfolio -> user(s)\n"
                       "• project_member, project_follower: project -> user(s)\n\n"
                       "Use item_gid for one item, item_gids for several.",
            inputSchema={
                "type": "object",
                "properties": {
                    "action": {
                        "type": "string",
                        "enum": _values(LinkAction),
                        "description": "Add or remove the relationship"
                    },
                    "relationship": {
                        "type": "string",
                        "enum": _values(Relationship),
                        "description": "Type of relationship"
                    },
                    "target_gid": {"type": "string", "description": "Task, project or portfolio GID"},
                    "item_gid": {"type": "string", "description": "Single item GID"},
                    "item_gids": {**GID_LIST, "description": "Several item GIDs"},
                    "section_gid": {"type": "string", "description": "Section GID (task_project add)"},
                    "insert_before": {"type": "string", "description": "Insert before this GID"},
                    "insert_after": {"type": "string", "description": "Insert after this GID"},
                },
                "required": ["action", "relationship", "target_gid"]
            }
        ),
        Tool(
            name="asana_delete",
            description="Delete an Asana resource. Deleting a resource that no longer exists reports not found.",
            inputSchema={
                "type": "object",
                "properties": {
                    "resource_type": {
                        "type": "string",
                        "enum": _values(DeleteKind),
                        "description": "Type of resource to delete"
                    },
                    "gid": {"type": "string", "description": "GID of the resource to delete"},
                },
                "required": ["resource_type", "gid"]
            }
        ),

        # ============================================================================
        # Search Tools
        # ============================================================================
        Tool(
            name="asana_task_search",
            description="Search tasks in a workspace with filters. workspace_gid defaults to "
                       "ASANA_DEFAULT_WORKSPACE. For other resource types use asana_resource_search.\n"
                       "Pass the returned next_page.offset as offset to continue.",
            inputSchema={
                "type": "object",
                "properties": {
                    "workspace_gid": {"type": "string", "description": "Workspace GID"},
                    "text": {"type": "string", "description": "Text in task name or notes"},
                    "assignee": {
                        "type": "string",
                        "description": "User GID, 'me' for the current user, 'null' for unassigned"
                    },
                    "projects": {**GID_LIST, "description": "Project GIDs (any of)"},
                    "tags": {**GID_LIST, "description": "Tag GIDs (any of)"},
                    "sections": {**GID_LIST, "description": "Section GIDs (any of)"},
                    "portfolios": {**GID_LIST, "description": "Portfolio GIDs (any of)"},
                    "completed": {"type": "boolean"},
                    "due_on": {"type": "string", "description": "YYYY-MM-DD"},
                    "due_on_before": {"type": "string", "description": "YYYY-MM-DD"},
                    "due_on_after": {"type": "string", "description": "YYYY-MM-DD"},
                    "start_on": {"type": "string", "description": "YYYY-MM-DD"},
                    "start_on_before": {"type": "string", "description": "YYYY-MM-DD"},
                    "start_on_after": {"type": "string", "description": "YYYY-MM-DD"},
                    "modified_at_after": {"type": "string", "description": "ISO 8601 datetime"},
                    "modified_at_before": {"type": "string", "description": "ISO 8601 datetime"},
                    "sort_by": {
                        "type": "string",
                        "enum": ["due_date", "created_at", "completed_at", "likes", "modified_at"]
                    },
                    "sort_ascending": {"type": "boolean"},
                    "offset": {"type": "string", "description": "Continuation token from a previous page"},
                    "detail_level": DETAIL_LEVEL,
                    "opt_fields": OPT_FIELDS,
                }
            }
        ),
        Tool(
            name="asana_resource_search",
            description="Find projects, templates, portfolios, users, teams, tags or goals by name "
                       "(typeahead). workspace_gid defaults to ASANA_DEFAULT_WORKSPACE.",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Text to match against names"},
                    "resource_type": {
                        "type": "string",
                        "enum": list(TYPEAHEAD_KINDS),
                        "description": "Type of resource to search for"
                    },
                    "workspace_gid": {"type": "string", "description": "Workspace GID"},
                    "count": {"type": "integer", "description": "Max results (default 20, max 100)"},
                },
                "required": ["query", "resource_type"]
            }
        ),
    ]
