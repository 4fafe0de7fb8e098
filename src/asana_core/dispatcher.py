"""Operation Dispatcher: (resource kind, verb) -> endpoint, method and body.

Each verb has one closed enumeration of kinds and one dispatch table. A table
entry holds the endpoint template, the context it needs and the attributes
the remote accepts for that kind. Adding a kind means adding one entry.

Validation (missing context, unsupported relationship direction, bad
parameters) happens before any request is sent. Remote errors raised by the
client propagate unchanged.
"""
import enum
import logging
from typing import Any, Iterable, NamedTuple, Optional, Sequence, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .client import AsanaClient
from .errors import (
    AsanaError,
    InvalidParameter,
    MissingRequiredContext,
    RemoteNotFound,
    UnsupportedOperation,
)
from .fields import DetailLevel, FieldResolver
from .models import Page, Reference, Resource
from .traversal import UNLIMITED, TraversalEngine, TraversalResult, bounded_gather

logger = logging.getLogger("asana-core.dispatcher")


def resolve_workspace(provided: Optional[str], default: Optional[str]) -> Optional[str]:
    """Explicit workspace if given, otherwise the configured default (or None)."""
    if provided and provided.strip():
        return provided.strip()
    if default and default.strip():
        return default.strip()
    return None


def _normalize_kind(value: Any, aliases: dict[str, str]) -> Any:
    if isinstance(value, str):
        key = value.strip().lower()
        return aliases.get(key, key)
    return value


def _collect_attributes(extra: Optional[dict]) -> dict[str, Any]:
    """Top-level extra keys, plus the members of a nested ``attributes`` object."""
    extra = dict(extra or {})
    nested = extra.pop("attributes", None)
    collected = dict(nested) if isinstance(nested, dict) else {}
    collected.update(extra)
    return {k: v for k, v in collected.items() if v is not None}


# ============================================================================
# Resource kinds
# ============================================================================

class ResourceKind(str, enum.Enum):
    """Kinds accepted by get."""

    PROJECT = "project"
    PORTFOLIO = "portfolio"
    TASK = "task"
    WORKSPACE_FAVORITES = "workspace_favorites"
    PROJECT_TASKS = "project_tasks"
    TASK_SUBTASKS = "task_subtasks"
    TASK_COMMENTS = "task_comments"
    STATUS_UPDATE = "status_update"
    PROJECT_STATUS_UPDATES = "project_status_updates"
    ALL_WORKSPACES = "all_workspaces"
    WORKSPACE = "workspace"
    WORKSPACE_TEMPLATES = "workspace_templates"
    PROJECT_TEMPLATE = "project_template"
    PROJECT_SECTIONS = "project_sections"
    SECTION = "section"
    WORKSPACE_TAGS = "workspace_tags"
    TAG = "tag"
    MY_TASKS = "my_tasks"
    WORKSPACE_PROJECTS = "workspace_projects"
    ME = "me"
    USER = "user"
    WORKSPACE_USERS = "workspace_users"
    TEAM = "team"
    WORKSPACE_TEAMS = "workspace_teams"
    TEAM_USERS = "team_users"
    PROJECT_CUSTOM_FIELDS = "project_custom_fields"
    PROJECT_BRIEF = "project_brief"
    PROJECT_PROJECT_BRIEF = "project_project_brief"


GET_KIND_ALIASES = {
    "favorites": "workspace_favorites",
    "tasks": "project_tasks",
    "subtasks": "task_subtasks",
    "comments": "task_comments",
    "status_updates": "project_status_updates",
    "workspaces": "all_workspaces",
    "project_templates": "workspace_templates",
    "sections": "project_sections",
    "tags": "workspace_tags",
    "my_assigned_tasks": "my_tasks",
    "projects": "workspace_projects",
    "current_user": "me",
    "users": "workspace_users",
    "teams": "workspace_teams",
    "custom_fields": "project_custom_fields",
}


class CreateKind(str, enum.Enum):
    TASK = "task"
    SUBTASK = "subtask"
    PROJECT = "project"
    PROJECT_FROM_TEMPLATE = "project_from_template"
    PORTFOLIO = "portfolio"
    SECTION = "section"
    COMMENT = "comment"
    STATUS_UPDATE = "status_update"
    TAG = "tag"
    PROJECT_DUPLICATE = "project_duplicate"
    TASK_DUPLICATE = "task_duplicate"
    PROJECT_BRIEF = "project_brief"


class UpdateKind(str, enum.Enum):
    TASK = "task"
    PROJECT = "project"
    PORTFOLIO = "portfolio"
    SECTION = "section"
    TAG = "tag"
    COMMENT = "comment"
    STATUS_UPDATE = "status_update"
    PROJECT_BRIEF = "project_brief"


class DeleteKind(str, enum.Enum):
    TASK = "task"
    PROJECT = "project"
    PORTFOLIO = "portfolio"
    SECTION = "section"
    TAG = "tag"
    COMMENT = "comment"
    STATUS_UPDATE = "status_update"
    PROJECT_BRIEF = "project_brief"


class LinkAction(str, enum.Enum):
    ADD = "add"
    REMOVE = "remove"


class Relationship(str, enum.Enum):
    TASK_PROJECT = "task_project"
    TASK_TAG = "task_tag"
    TASK_PARENT = "task_parent"
    TASK_DEPENDENCY = "task_dependency"
    TASK_DEPENDENT = "task_dependent"
    TASK_FOLLOWER = "task_follower"
    PORTFOLIO_ITEM = "portfolio_item"
    PORTFOLIO_MEMBER = "portfolio_member"
    PROJECT_MEMBER = "project_member"
    PROJECT_FOLLOWER = "project_follower"


class SubjectRule(str, enum.Enum):
    REQUIRED = "required"     # gid must be supplied
    WORKSPACE = "workspace"   # gid is a workspace; the default workspace may stand in
    OPTIONAL = "optional"     # gid narrows the listing when supplied
    IGNORED = "ignored"


class Cardinality(str, enum.Enum):
    SINGLE = "single"   # exactly one item, one request
    EACH = "each"       # one request per item, in caller order
    BULK = "bulk"       # all items in one request, as a list
    JOINED = "joined"   # all items in one request, comma-joined


# ============================================================================
# Parameter bundles
# ============================================================================

class GetParams(BaseModel):
    """Parameters for get."""

    resource_type: ResourceKind
    gid: Optional[str] = None
    depth: Optional[int] = None
    subtask_depth: Optional[int] = None
    include_subtasks: Optional[bool] = None
    include_dependencies: Optional[bool] = None
    include_comments: Optional[bool] = None
    detail_level: DetailLevel = DetailLevel.STANDARD
    extra_fields: Optional[list[str]] = Field(
        None, validation_alias=AliasChoices("extra_fields", "opt_fields")
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("resource_type", mode="before")
    @classmethod
    def resolve_alias(cls, value):
        return _normalize_kind(value, GET_KIND_ALIASES)


class CreateParams(BaseModel):
    """Parameters for create.

    Context identifiers are typed fields; every other key is an attribute of
    the new resource and is filtered per kind before it is sent.
    """

    resource_type: CreateKind
    workspace_gid: Optional[str] = None
    project_gid: Optional[str] = None
    task_gid: Optional[str] = None
    team_gid: Optional[str] = None
    parent_gid: Optional[str] = None
    template_gid: Optional[str] = None
    source_gid: Optional[str] = None
    opt_fields: Optional[list[str]] = None

    model_config = ConfigDict(extra="allow")

    @property
    def attributes(self) -> dict[str, Any]:
        return _collect_attributes(self.model_extra)


class UpdateParams(BaseModel):
    """Parameters for update; like CreateParams, extra keys are attributes."""

    resource_type: UpdateKind
    gid: Optional[str] = None
    opt_fields: Optional[list[str]] = None

    model_config = ConfigDict(extra="allow")

    @property
    def attributes(self) -> dict[str, Any]:
        return _collect_attributes(self.model_extra)


class LinkParams(BaseModel):
    """Parameters for link/unlink."""

    action: LinkAction
    relationship: Relationship
    target_gid: Optional[str] = None
    item_gid: Optional[str] = None
    item_gids: Optional[list[str]] = None
    section_gid: Optional[str] = None
    insert_before: Optional[str] = None
    insert_after: Optional[str] = None


class DeleteParams(BaseModel):
    resource_type: DeleteKind
    gid: Optional[str] = None


class SearchParams(BaseModel):
    """Parameters for search: task search filters or a typeahead query."""

    resource_type: str = "task"
    workspace_gid: Optional[str] = None
    text: Optional[str] = None
    query: Optional[str] = None
    assignee: Optional[str] = None
    projects: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    sections: Optional[list[str]] = None
    portfolios: Optional[list[str]] = None
    completed: Optional[bool] = None
    due_on: Optional[str] = None
    due_on_before: Optional[str] = None
    due_on_after: Optional[str] = None
    start_on: Optional[str] = None
    start_on_before: Optional[str] = None
    start_on_after: Optional[str] = None
    modified_at_after: Optional[str] = None
    modified_at_before: Optional[str] = None
    sort_by: Optional[str] = None
    sort_ascending: Optional[bool] = None
    count: Optional[int] = None
    offset: Optional[str] = None
    detail_level: DetailLevel = DetailLevel.STANDARD
    extra_fields: Optional[list[str]] = Field(
        None, validation_alias=AliasChoices("extra_fields", "opt_fields")
    )

    model_config = ConfigDict(populate_by_name=True)


# ============================================================================
# Dispatch tables
# ============================================================================

class GetRoute(NamedTuple):
    path: str
    field_kind: str
    subject: SubjectRule
    collection: bool = False
    subject_param: Optional[str] = None  # send the subject as this query param
    handler: Optional[str] = None        # Dispatcher method for multi-call kinds


GET_ROUTES: dict[ResourceKind, GetRoute] = {
    ResourceKind.PROJECT: GetRoute("/projects/{gid}", "project", SubjectRule.REQUIRED, handler="_get_project"),
    ResourceKind.PORTFOLIO: GetRoute("/portfolios/{gid}", "portfolio", SubjectRule.REQUIRED, handler="_get_portfolio"),
    ResourceKind.TASK: GetRoute("/tasks/{gid}", "task", SubjectRule.REQUIRED, handler="_get_task"),
    ResourceKind.WORKSPACE_FAVORITES: GetRoute(
        "/users/me/favorites", "favorite", SubjectRule.WORKSPACE, handler="_get_favorites"
    ),
    ResourceKind.PROJECT_TASKS: GetRoute(
        "/projects/{gid}/tasks", "task", SubjectRule.REQUIRED, handler="_get_project_tasks"
    ),
    ResourceKind.TASK_SUBTASKS: GetRoute("/tasks/{gid}/subtasks", "subtask", SubjectRule.REQUIRED, collection=True),
    ResourceKind.TASK_COMMENTS: GetRoute(
        "/tasks/{gid}/stories", "story", SubjectRule.REQUIRED, handler="_get_task_comments"
    ),
    ResourceKind.STATUS_UPDATE: GetRoute("/status_updates/{gid}", "status_update", SubjectRule.REQUIRED),
    ResourceKind.PROJECT_STATUS_UPDATES: GetRoute(
        "/status_updates", "status_update", SubjectRule.REQUIRED, collection=True, subject_param="parent"
    ),
    ResourceKind.ALL_WORKSPACES: GetRoute("/workspaces", "workspace", SubjectRule.IGNORED, collection=True),
    ResourceKind.WORKSPACE: GetRoute("/workspaces/{gid}", "workspace", SubjectRule.REQUIRED),
    ResourceKind.WORKSPACE_TEMPLATES: GetRoute(
        "/teams/{gid}/project_templates", "project_template", SubjectRule.OPTIONAL, handler="_get_templates"
    ),
    ResourceKind.PROJECT_TEMPLATE: GetRoute("/project_templates/{gid}", "project_template", SubjectRule.REQUIRED),
    ResourceKind.PROJECT_SECTIONS: GetRoute("/projects/{gid}/sections", "section", SubjectRule.REQUIRED, collection=True),
    ResourceKind.SECTION: GetRoute("/sections/{gid}", "section", SubjectRule.REQUIRED),
    ResourceKind.WORKSPACE_TAGS: GetRoute("/workspaces/{gid}/tags", "tag", SubjectRule.WORKSPACE, collection=True),
    ResourceKind.TAG: GetRoute("/tags/{gid}", "tag", SubjectRule.REQUIRED),
    ResourceKind.MY_TASKS: GetRoute("/users/me/user_task_list", "task", SubjectRule.WORKSPACE, handler="_get_my_tasks"),
    ResourceKind.WORKSPACE_PROJECTS: GetRoute(
        "/workspaces/{gid}/projects", "project", SubjectRule.WORKSPACE, collection=True
    ),
    ResourceKind.ME: GetRoute("/users/me", "user", SubjectRule.IGNORED),
    ResourceKind.USER: GetRoute("/users/{gid}", "user", SubjectRule.REQUIRED),
    ResourceKind.WORKSPACE_USERS: GetRoute("/workspaces/{gid}/users", "user", SubjectRule.WORKSPACE, collection=True),
    ResourceKind.TEAM: GetRoute("/teams/{gid}", "team", SubjectRule.REQUIRED),
    ResourceKind.WORKSPACE_TEAMS: GetRoute("/workspaces/{gid}/teams", "team", SubjectRule.WORKSPACE, collection=True),
    ResourceKind.TEAM_USERS: GetRoute("/teams/{gid}/users", "user", SubjectRule.REQUIRED, collection=True),
    ResourceKind.PROJECT_CUSTOM_FIELDS: GetRoute(
        "/projects/{gid}/custom_field_settings", "custom_field_setting", SubjectRule.REQUIRED, collection=True
    ),
    ResourceKind.PROJECT_BRIEF: GetRoute("/project_briefs/{gid}", "project_brief", SubjectRule.REQUIRED),
    ResourceKind.PROJECT_PROJECT_BRIEF: GetRoute(
        "/projects/{gid}", "project_brief", SubjectRule.REQUIRED, handler="_get_project_project_brief"
    ),
}

# Single-resource endpoints used by the traversal engine
FETCH_PATHS = {
    "portfolio": "/portfolios/{gid}",
    "project": "/projects/{gid}",
    "task": "/tasks/{gid}",
}


class ContextRule(str, enum.Enum):
    PATH = "path"                            # path_context params are all required
    TASK = "task"                            # project > workspace > default workspace
    WORKSPACE = "workspace"                  # workspace_gid, or the default workspace
    WORKSPACE_OR_TEAM = "workspace_or_team"  # team_gid and/or workspace_gid, or the default workspace


class CreateRoute(NamedTuple):
    path: str
    context: ContextRule
    attributes: tuple[str, ...]
    required: tuple[str, ...] = ()
    one_of: tuple[str, ...] = ()             # at least one, the first present wins
    path_context: tuple[str, ...] = ()       # context params formatted into the path
    body_context: tuple[tuple[str, str], ...] = ()  # (param, body key) copied into the body
    aliases: tuple[tuple[str, str], ...] = ()       # (caller spelling, remote attribute)
    returns: Optional[str] = None            # kind the remote answers with, when not the created kind


TASK_ATTRIBUTES = (
    "name", "assignee", "due_on", "due_at", "start_on", "start_at", "notes", "html_notes",
    "completed", "custom_fields", "followers", "tags", "resource_subtype",
)
PROJECT_ATTRIBUTES = (
    "name", "notes", "html_notes", "color", "due_on", "start_on", "privacy_setting", "public",
    "default_view", "custom_fields",
)

CREATE_ROUTES: dict[CreateKind, CreateRoute] = {
    CreateKind.TASK: CreateRoute("/tasks", ContextRule.TASK, TASK_ATTRIBUTES),
    CreateKind.SUBTASK: CreateRoute(
        "/tasks/{task_gid}/subtasks", ContextRule.PATH, TASK_ATTRIBUTES, path_context=("task_gid",)
    ),
    CreateKind.PROJECT: CreateRoute(
        "/projects", ContextRule.WORKSPACE_OR_TEAM, PROJECT_ATTRIBUTES, required=("name",)
    ),
    CreateKind.PROJECT_FROM_TEMPLATE: CreateRoute(
        "/project_templates/{template_gid}/instantiateProject",
        ContextRule.PATH,
        ("name", "public", "privacy_setting", "requested_dates", "requested_roles", "is_strict"),
        required=("name",),
        path_context=("template_gid",),
        body_context=(("team_gid", "team"), ("workspace_gid", "workspace")),
        returns="job",
    ),
    CreateKind.PORTFOLIO: CreateRoute(
        "/portfolios", ContextRule.WORKSPACE, ("name", "color", "public", "members"), required=("name",)
    ),
    CreateKind.SECTION: CreateRoute(
        "/projects/{project_gid}/sections",
        ContextRule.PATH,
        ("name", "insert_before", "insert_after"),
        required=("name",),
        path_context=("project_gid",),
    ),
    CreateKind.COMMENT: CreateRoute(
        "/tasks/{task_gid}/stories",
        ContextRule.PATH,
        ("html_text", "text", "is_pinned"),
        one_of=("html_text", "text"),
        path_context=("task_gid",),
        aliases=(("notes", "text"),),
    ),
    CreateKind.STATUS_UPDATE: CreateRoute(
        "/status_updates",
        ContextRule.PATH,
        ("status_type", "title", "text", "html_text"),
        required=("status_type",),
        body_context=(("parent_gid", "parent"),),
    ),
    CreateKind.TAG: CreateRoute("/tags", ContextRule.WORKSPACE, ("name", "color", "notes", "followers"), required=("name",)),
    CreateKind.PROJECT_DUPLICATE: CreateRoute(
        "/projects/{source_gid}/duplicate",
        ContextRule.PATH,
        ("name", "include", "schedule_dates"),
        required=("name",),
        path_context=("source_gid",),
        body_context=(("team_gid", "team"),),
        returns="job",
    ),
    CreateKind.TASK_DUPLICATE: CreateRoute(
        "/tasks/{source_gid}/duplicate",
        ContextRule.PATH,
        ("name", "include"),
        required=("name",),
        path_context=("source_gid",),
        returns="job",
    ),
    CreateKind.PROJECT_BRIEF: CreateRoute(
        "/projects/{project_gid}/project_briefs",
        ContextRule.PATH,
        ("title", "text", "html_text"),
        one_of=("html_text", "text"),
        path_context=("project_gid",),
    ),
}

# Required body context for PATH-rule kinds that carry it in the body
REQUIRED_BODY_CONTEXT = {CreateKind.STATUS_UPDATE: ("parent_gid",)}


class UpdateRoute(NamedTuple):
    path: str
    attributes: tuple[str, ...]
    required: tuple[str, ...] = ()
    one_of: tuple[str, ...] = ()
    aliases: tuple[tuple[str, str], ...] = ()


UPDATE_ROUTES: dict[UpdateKind, UpdateRoute] = {
    UpdateKind.TASK: UpdateRoute("/tasks/{gid}", TASK_ATTRIBUTES),
    UpdateKind.PROJECT: UpdateRoute("/projects/{gid}", PROJECT_ATTRIBUTES + ("archived",)),
    UpdateKind.PORTFOLIO: UpdateRoute("/portfolios/{gid}", ("name", "color", "public")),
    UpdateKind.SECTION: UpdateRoute("/sections/{gid}", ("name",), required=("name",)),
    UpdateKind.TAG: UpdateRoute("/tags/{gid}", ("name", "color", "notes")),
    UpdateKind.COMMENT: UpdateRoute("/stories/{gid}", ("html_text", "text", "is_pinned"), one_of=("html_text", "text")),
    UpdateKind.STATUS_UPDATE: UpdateRoute(
        "/status_updates/{gid}", ("title", "text", "html_text", "status_type"), aliases=(("html_notes", "html_text"),)
    ),
    UpdateKind.PROJECT_BRIEF: UpdateRoute("/project_briefs/{gid}", ("title", "text", "html_text")),
}

DELETE_PATHS: dict[DeleteKind, str] = {
    DeleteKind.TASK: "/tasks/{gid}",
    DeleteKind.PROJECT: "/projects/{gid}",
    DeleteKind.PORTFOLIO: "/portfolios/{gid}",
    DeleteKind.SECTION: "/sections/{gid}",
    DeleteKind.TAG: "/tags/{gid}",
    DeleteKind.COMMENT: "/stories/{gid}",
    DeleteKind.STATUS_UPDATE: "/status_updates/{gid}",
    DeleteKind.PROJECT_BRIEF: "/project_briefs/{gid}",
}


class LinkRoute(NamedTuple):
    add_path: str
    remove_path: Optional[str]   # None: the relationship has no remove verb
    body_key: str
    cardinality: Cardinality
    hints: tuple[tuple[str, str], ...] = ()  # (LinkParams field, body key), add only
    messages: tuple[str, str] = ("Relationship added", "Relationship removed")
    returns_resource: bool = False
    chain_inserts: bool = False  # items share one container; each goes after the previous one


LINK_ROUTES: dict[Relationship, LinkRoute] = {
    Relationship.TASK_PROJECT: LinkRoute(
        "/tasks/{gid}/addProject", "/tasks/{gid}/removeProject", "project", Cardinality.EACH,
        hints=(("section_gid", "section"), ("insert_before", "insert_before"), ("insert_after", "insert_after")),
        messages=("Task added to project", "Task removed from project"),
    ),
    Relationship.TASK_TAG: LinkRoute(
        "/tasks/{gid}/addTag", "/tasks/{gid}/removeTag", "tag", Cardinality.EACH,
        messages=("Tag added to task", "Tag removed from task"),
    ),
    Relationship.TASK_PARENT: LinkRoute(
        "/tasks/{gid}/setParent", None, "parent", Cardinality.SINGLE,
        hints=(("insert_before", "insert_before"), ("insert_after", "insert_after")),
        returns_resource=True,
    ),
    Relationship.TASK_DEPENDENCY: LinkRoute(
        "/tasks/{gid}/addDependencies", "/tasks/{gid}/removeDependencies", "dependencies", Cardinality.BULK,
        messages=("Dependencies added", "Dependencies removed"),
    ),
    Relationship.TASK_DEPENDENT: LinkRoute(
        "/tasks/{gid}/addDependents", "/tasks/{gid}/removeDependents", "dependents", Cardinality.BULK,
        messages=("Dependents added", "Dependents removed"),
    ),
    Relationship.TASK_FOLLOWER: LinkRoute(
        "/tasks/{gid}/addFollowers", "/tasks/{gid}/removeFollowers", "followers", Cardinality.BULK,
        messages=("Followers added to task", "Followers removed from task"),
    ),
    Relationship.PORTFOLIO_ITEM: LinkRoute(
        "/portfolios/{gid}/addItem", "/portfolios/{gid}/removeItem", "item", Cardinality.EACH,
        hints=(("insert_before", "insert_before"), ("insert_after", "insert_after")),
        messages=("Item added to portfolio", "Item removed from portfolio"),
        chain_inserts=True,
    ),
    Relationship.PORTFOLIO_MEMBER: LinkRoute(
        "/portfolios/{gid}/addMembers", "/portfolios/{gid}/removeMembers", "members", Cardinality.BULK,
        messages=("Members added to portfolio", "Members removed from portfolio"),
    ),
    Relationship.PROJECT_MEMBER: LinkRoute(
        "/projects/{gid}/addMembers", "/projects/{gid}/removeMembers", "members", Cardinality.JOINED,
        messages=("Members added to project", "Members removed from project"),
    ),
    Relationship.PROJECT_FOLLOWER: LinkRoute(
        "/projects/{gid}/addFollowers", "/projects/{gid}/removeFollowers", "followers", Cardinality.JOINED,
        messages=("Followers added to project", "Followers removed from project"),
    ),
}

# Task search filter -> remote query parameter
TASK_SEARCH_FILTERS = (
    ("text", "text"),
    ("assignee", "assignee.any"),
    ("projects", "projects.any"),
    ("tags", "tags.any"),
    ("sections", "sections.any"),
    ("portfolios", "portfolios.any"),
    ("completed", "completed"),
    ("due_on", "due_on"),
    ("due_on_before", "due_on.before"),
    ("due_on_after", "due_on.after"),
    ("start_on", "start_on"),
    ("start_on_before", "start_on.before"),
    ("start_on_after", "start_on.after"),
    ("modified_at_after", "modified_at.after"),
    ("modified_at_before", "modified_at.before"),
    ("sort_by", "sort_by"),
    ("sort_ascending", "sort_ascending"),
)

TYPEAHEAD_KINDS = ("project", "project_template", "portfolio", "user", "team", "tag", "goal", "custom_field")
TYPEAHEAD_DEFAULT_COUNT = 20
TYPEAHEAD_MAX_COUNT = 100


# ============================================================================
# Results
# ============================================================================

class Acknowledgement:
    """Result of a write whose endpoint returns no resource."""

    def __init__(self, message: str):
        self.message = message

    def encode(self) -> dict:
        return {"success": True, "message": self.message}


class TaskContext:
    """A task plus the related collections that were requested."""

    def __init__(self, task: Resource, **sections: list[Resource]):
        self.task = task
        self.sections = sections

    def encode(self) -> dict:
        data = {"task": self.task.encode()}
        for name, items in self.sections.items():
            data[name] = [item.encode() for item in items]
        return data


class Favorites:
    """Favorite projects and portfolios, plus the favorites that failed to load."""

    def __init__(self):
        self.projects: list[Resource] = []
        self.portfolios: list[TraversalResult] = []
        self.errors: list[dict] = []

    def encode(self) -> dict:
        return {
            "projects": [project.encode() for project in self.projects],
            "portfolios": [portfolio.encode() for portfolio in self.portfolios],
            "errors": self.errors,
        }


GetResult = Union[Resource, list[Resource], TraversalResult, TaskContext, Favorites]


# ============================================================================
# Dispatcher
# ============================================================================

class Dispatcher:
    """Maps semantic operations onto Asana API calls.

    Args:
        client: Transport used for every request
        default_workspace: Workspace substituted when a workspace-scoped
            operation omits one
        field_resolver: Source of ``opt_fields`` strings
        max_concurrency: Fan-out limit for sibling fetches
    """

    def __init__(
        self,
        client: AsanaClient,
        default_workspace: Optional[str] = None,
        field_resolver: Optional[FieldResolver] = None,
        max_concurrency: int = 4,
    ):
        self.client = client
        self.default_workspace = default_workspace
        self.fields = field_resolver or FieldResolver()
        self.max_concurrency = max_concurrency
        self.traversal = TraversalEngine(self, max_concurrency=max_concurrency)

    # ------------------------------------------------------------------------
    # Building blocks (also used by the traversal engine)
    # ------------------------------------------------------------------------

    async def fetch(
        self,
        kind: str,
        gid: str,
        detail_level: DetailLevel = DetailLevel.STANDARD,
        extra_fields: Optional[Sequence[str]] = None,
    ) -> Resource:
        """Fetch one portfolio, project or task."""
        path = FETCH_PATHS.get(kind)
        if path is None:
            raise InvalidParameter("resource_type", f"'{kind}' cannot be traversed", kind=kind)
        fields = self.fields.fields_for(kind, detail_level, extra_fields)
        return await self.client.get_resource(path.format(gid=gid), {"opt_fields": fields}, kind=kind, gid=gid)

    async def list_all(
        self,
        path: str,
        field_kind: str,
        detail_level: DetailLevel = DetailLevel.STANDARD,
        extra_fields: Optional[Sequence[str]] = None,
        params: Optional[dict] = None,
    ) -> list[Resource]:
        """Every item of a listing, across all pages."""
        query = dict(params or {})
        query["opt_fields"] = self.fields.fields_for(field_kind, detail_level, extra_fields)
        return await self.client.collect_all(path, query, kind=field_kind)

    def _require_workspace(self, provided: Optional[str], kind: str, parameter: str = "workspace_gid") -> str:
        workspace = resolve_workspace(provided, self.default_workspace)
        if workspace is None:
            raise MissingRequiredContext(parameter, kind)
        return workspace

    def _subject(self, kind: ResourceKind, rule: SubjectRule, provided: Optional[str]) -> Optional[str]:
        if rule == SubjectRule.IGNORED:
            return None
        if rule == SubjectRule.WORKSPACE:
            return self._require_workspace(provided, kind.value, parameter="gid (workspace)")
        gid = provided.strip() if provided else None
        if rule == SubjectRule.REQUIRED and not gid:
            raise MissingRequiredContext("gid", kind.value)
        return gid or None

    # ------------------------------------------------------------------------
    # get
    # ------------------------------------------------------------------------

    async def get(self, params: GetParams) -> GetResult:
        """Fetch a resource, a collection, or a traversal tree.

        Raises:
            MissingRequiredContext: The kind needs a gid (or workspace) and none is available
        """
        kind = params.resource_type
        route = GET_ROUTES[kind]
        gid = self._subject(kind, route.subject, params.gid)
        logger.debug(f"get {kind.value} gid={gid}")

        if route.handler:
            return await getattr(self, route.handler)(gid, params, route)

        fields = self.fields.fields_for(route.field_kind, params.detail_level, params.extra_fields)
        query = {"opt_fields": fields}
        if route.subject_param:
            query[route.subject_param] = gid
            path = route.path
        else:
            path = route.path.format(gid=gid)

        if route.collection:
            return await self.client.collect_all(path, query, kind=route.field_kind)
        return await self.client.get_resource(path, query, kind=route.field_kind, gid=gid)

    async def _get_project(self, gid: str, params: GetParams, route: GetRoute):
        if params.depth:
            return await self.traversal.traverse(
                Reference(gid=gid, resource_type="project"),
                depth=params.depth,
                expand_kinds=("project", "task"),
                detail_level=params.detail_level,
                extra_fields=params.extra_fields,
            )
        return await self.fetch("project", gid, params.detail_level, params.extra_fields)

    async def _get_portfolio(self, gid: str, params: GetParams, route: GetRoute) -> TraversalResult:
        return await self.traversal.traverse(
            Reference(gid=gid, resource_type="portfolio"),
            depth=params.depth or 0,
            expand_kinds=("portfolio",),
            detail_level=params.detail_level,
            extra_fields=params.extra_fields,
        )

    async def _get_task(self, gid: str, params: GetParams, route: GetRoute):
        if params.depth is not None:
            return await self.traversal.traverse(
                Reference(gid=gid, resource_type="task"),
                depth=params.depth,
                expand_kinds=("task",),
                detail_level=params.detail_level,
                extra_fields=params.extra_fields,
            )

        level = params.detail_level
        calls = {"task": lambda: self.fetch("task", gid, level, params.extra_fields)}
        if params.include_subtasks is not False:
            calls["subtasks"] = lambda: self.list_all(f"/tasks/{gid}/subtasks", "subtask", level)
        if params.include_dependencies is not False:
            calls["dependencies"] = lambda: self.list_all(f"/tasks/{gid}/dependencies", "task_dependency")
            calls["dependents"] = lambda: self.list_all(f"/tasks/{gid}/dependents", "task_dependency")
        if params.include_comments is not False:
            calls["comments"] = lambda: self._list_comments(gid, level)

        results = dict(zip(calls, await bounded_gather(list(calls.values()), self.max_concurrency)))
        task = results.pop("task")
        return TaskContext(task, **results)

    async def _list_comments(self, task_gid: str, detail_level: DetailLevel) -> list[Resource]:
        stories = await self.list_all(f"/tasks/{task_gid}/stories", "story", detail_level)
        return [story for story in stories if story.get("resource_subtype") == "comment_added"]

    async def _get_task_comments(self, gid: str, params: GetParams, route: GetRoute) -> list[Resource]:
        return await self._list_comments(gid, params.detail_level)

    async def _get_favorites(self, workspace: str, params: GetParams, route: GetRoute) -> Favorites:
        favorites = Favorites()

        for item in await self._list_favorites(workspace, "project"):
            try:
                favorites.projects.append(
                    await self.fetch("project", item.gid, params.detail_level, params.extra_fields)
                )
            except AsanaError as exc:
                logger.warning(f"Favorite project {item.gid} failed to load: {exc.message}")
                favorites.errors.append({"item": item.encode(), "error": exc.to_dict()})

        for item in await self._list_favorites(workspace, "portfolio"):
            try:
                favorites.portfolios.append(
                    await self.traversal.traverse(
                        Reference(gid=item.gid, resource_type="portfolio"),
                        depth=params.depth or 0,
                        expand_kinds=("portfolio",),
                        detail_level=params.detail_level,
                        extra_fields=params.extra_fields,
                    )
                )
            except AsanaError as exc:
                logger.warning(f"Favorite portfolio {item.gid} failed to load: {exc.message}")
                favorites.errors.append({"item": item.encode(), "error": exc.to_dict()})

        return favorites

    async def _list_favorites(self, workspace: str, resource_type: str) -> list[Resource]:
        return await self.list_all(
            "/users/me/favorites",
            "favorite",
            params={"workspace": workspace, "resource_type": resource_type},
        )

    async def _get_project_tasks(self, gid: str, params: GetParams, route: GetRoute) -> list[Resource]:
        """Tasks of a project, or of every project below a portfolio, flattened in pre-order."""
        subtask_depth = params.subtask_depth if params.subtask_depth is not None else 0
        depth = UNLIMITED if subtask_depth < 0 else subtask_depth + 1

        try:
            await self.client.get_resource(f"/projects/{gid}", {"opt_fields": "gid"}, kind="project", gid=gid)
            project_gids = [gid]
            from_portfolio = False
        except RemoteNotFound:
            logger.info(f"{gid} is not a project; reading it as a portfolio")
            portfolio = await self.traversal.traverse(
                Reference(gid=gid, resource_type="portfolio"),
                depth=params.depth if params.depth is not None else 1,
                expand_kinds=("portfolio",),
                detail_level=DetailLevel.MINIMAL,
            )
            project_gids = list(dict.fromkeys(p.gid for p in portfolio.descendants("project")))
            from_portfolio = True

        tasks: list[Resource] = []
        for project_gid in project_gids:
            try:
                tree = await self.traversal.traverse(
                    Reference(gid=project_gid, resource_type="project"),
                    depth=depth,
                    expand_kinds=("project", "task"),
                    detail_level=params.detail_level,
                    extra_fields=params.extra_fields,
                    extra_fields_kind="task",
                    fetch_root=False,
                )
            except RemoteNotFound:
                if not from_portfolio:
                    raise
                logger.info(f"Project {project_gid} disappeared while listing tasks; skipping")
                continue
            tasks.extend(tree.descendants("task"))
        return tasks

    async def _get_templates(self, team: Optional[str], params: GetParams, route: GetRoute) -> list[Resource]:
        if team:
            return await self.list_all(
                route.path.format(gid=team), route.field_kind, params.detail_level, params.extra_fields
            )
        workspace = resolve_workspace(None, self.default_workspace)
        return await self.list_all(
            "/project_templates",
            route.field_kind,
            params.detail_level,
            params.extra_fields,
            params={"workspace": workspace},
        )

    async def _get_my_tasks(self, workspace: str, params: GetParams, route: GetRoute) -> list[Resource]:
        task_list = await self.client.get_resource(
            route.path, {"workspace": workspace, "opt_fields": "gid"}, kind="user_task_list"
        )
        return await self.list_all(
            f"/user_task_lists/{task_list.gid}/tasks", "task", params.detail_level, params.extra_fields
        )

    async def _get_project_project_brief(self, gid: str, params: GetParams, route: GetRoute) -> Resource:
        brief_fields = self.fields.fields_for("project_brief", params.detail_level, params.extra_fields)
        opt_fields = ",".join(["project_brief"] + [f"project_brief.{name}" for name in brief_fields.split(",")])
        project = await self.client.get_resource(
            route.path.format(gid=gid), {"opt_fields": opt_fields}, kind="project", gid=gid
        )
        brief = project.get("project_brief")
        if brief is None:
            raise RemoteNotFound(
                "project_brief", gid, "project has no brief; create one with resource_type=project_brief"
            )
        return Resource.decode(brief, kind="project_brief")

    # ------------------------------------------------------------------------
    # create / update / delete
    # ------------------------------------------------------------------------

    def _select_attributes(
        self,
        kind: Union[CreateKind, UpdateKind],
        attributes: dict[str, Any],
        allowed: Iterable[str],
        one_of: Sequence[str] = (),
        aliases: Sequence[tuple[str, str]] = (),
    ) -> dict[str, Any]:
        """Keep the attributes the kind accepts; drop the rest."""
        aliases = dict(aliases)
        allowed = set(allowed)
        body = {}
        for name, value in attributes.items():
            target = aliases.get(name, name)
            if target not in allowed:
                logger.debug(f"Dropping attribute '{name}' not accepted for {kind.value}")
                continue
            if name in aliases:
                body.setdefault(target, value)
            else:
                body[target] = value

        if one_of:
            present = [name for name in one_of if name in body]
            if not present:
                raise MissingRequiredContext(" or ".join(one_of), kind.value)
            for name in present[1:]:
                logger.debug(f"Dropping '{name}' for {kind.value}; '{present[0]}' takes precedence")
                del body[name]
        return body

    def _task_context(self, params: CreateParams) -> dict[str, Any]:
        """Project over workspace over the default workspace."""
        if params.project_gid:
            if params.workspace_gid:
                logger.debug("Both project_gid and workspace_gid given; creating the task in the project")
            return {"projects": [params.project_gid]}
        workspace = resolve_workspace(params.workspace_gid, self.default_workspace)
        if workspace is None:
            raise MissingRequiredContext("project_gid or workspace_gid", CreateKind.TASK.value)
        return {"workspace": workspace}

    def _create_context(self, kind: CreateKind, route: CreateRoute, params: CreateParams) -> tuple[str, dict]:
        """Resolve the endpoint path and the context members of the body."""
        context: dict[str, Any] = {}
        if route.context == ContextRule.TASK:
            context.update(self._task_context(params))
        elif route.context == ContextRule.WORKSPACE:
            context["workspace"] = self._require_workspace(params.workspace_gid, kind.value)
        elif route.context == ContextRule.WORKSPACE_OR_TEAM:
            if params.team_gid:
                context["team"] = params.team_gid
                if params.workspace_gid:
                    context["workspace"] = params.workspace_gid
            else:
                context["workspace"] = self._require_workspace(
                    params.workspace_gid, kind.value, parameter="workspace_gid or team_gid"
                )

        path_values = {}
        for name in route.path_context + REQUIRED_BODY_CONTEXT.get(kind, ()):
            value = getattr(params, name)
            if not value:
                raise MissingRequiredContext(name, kind.value)
            path_values[name] = value
        for name, body_key in route.body_context:
            value = getattr(params, name)
            if value:
                context[body_key] = value

        return route.path.format(**path_values), context

    async def create(self, params: CreateParams) -> Resource:
        """Create a resource and return what the remote echoes back.

        Raises:
            MissingRequiredContext: Context or a required attribute is missing
        """
        kind = params.resource_type
        route = CREATE_ROUTES[kind]
        path, context = self._create_context(kind, route, params)

        body = self._select_attributes(kind, params.attributes, route.attributes, route.one_of, route.aliases)
        for name in route.required:
            if name not in body:
                raise MissingRequiredContext(name, kind.value)
        body.update(context)

        if params.opt_fields:
            query = {"opt_fields": params.opt_fields}
        elif route.returns:
            query = {"opt_fields": self.fields.fields_for(route.returns)}
        else:
            query = None
        logger.debug(f"create {kind.value} via POST {path}")
        return await self.client.post_resource(path, body, query, kind=kind.value)

    async def update(self, params: UpdateParams) -> Resource:
        """Update a resource with only the attributes its kind accepts."""
        kind = params.resource_type
        route = UPDATE_ROUTES[kind]
        if not params.gid or not params.gid.strip():
            raise MissingRequiredContext("gid", kind.value)

        body = self._select_attributes(kind, params.attributes, route.attributes, route.one_of, route.aliases)
        for name in route.required:
            if name not in body:
                raise MissingRequiredContext(name, kind.value)
        if not body:
            raise MissingRequiredContext(" or ".join(route.attributes), kind.value)

        query = {"opt_fields": params.opt_fields} if params.opt_fields else None
        return await self.client.put_resource(
            route.path.format(gid=params.gid), body, query, kind=kind.value, gid=params.gid
        )

    async def delete(self, params: DeleteParams) -> Acknowledgement:
        """Delete a resource. Deleting twice surfaces the remote's RemoteNotFound."""
        kind = params.resource_type
        if not params.gid or not params.gid.strip():
            raise MissingRequiredContext("gid", kind.value)
        await self.client.delete(DELETE_PATHS[kind].format(gid=params.gid), kind=kind.value, gid=params.gid)
        return Acknowledgement(f"{kind.value} {params.gid} deleted")

    # ------------------------------------------------------------------------
    # link / unlink
    # ------------------------------------------------------------------------

    async def link(self, params: LinkParams) -> Union[Resource, Acknowledgement]:
        """Add or remove a relationship between the target and one or more items.

        Raises:
            UnsupportedOperation: The relationship has no verb for the action
            MissingRequiredContext: No item given where one is needed
            InvalidParameter: Several items given for a single-valued relationship
        """
        relationship = params.relationship
        route = LINK_ROUTES[relationship]
        adding = params.action == LinkAction.ADD

        if not adding and route.remove_path is None:
            raise UnsupportedOperation(
                relationship.value,
                params.action.value,
                hint="use action 'add' without an item to clear it",
            )
        if not params.target_gid or not params.target_gid.strip():
            raise MissingRequiredContext("target_gid", relationship.value)

        if params.item_gids is not None:
            items = [gid for gid in params.item_gids if gid]
            if not items:
                raise InvalidParameter("item_gids", "cannot be empty", kind=relationship.value)
        else:
            items = [params.item_gid] if params.item_gid else []

        hints = {}
        if adding:
            for field, body_key in route.hints:
                value = getattr(params, field)
                if value:
                    hints[body_key] = value
        for field in ("section_gid", "insert_before", "insert_after"):
            if getattr(params, field) and (not adding or field not in dict(route.hints)):
                logger.debug(f"Dropping '{field}' not supported for {params.action.value} {relationship.value}")

        path = (route.add_path if adding else route.remove_path).format(gid=params.target_gid)
        kind = relationship.value

        if route.cardinality == Cardinality.SINGLE:
            if len(items) > 1:
                raise InvalidParameter("item_gids", f"accepts a single item for {kind}", kind=kind)
            # No item clears the relationship
            body = {route.body_key: items[0] if items else None, **hints}
            if route.returns_resource:
                return await self.client.post_resource(path, body, kind=kind, gid=params.target_gid)
            await self.client.post_empty(path, body, kind=kind, gid=params.target_gid)
            return Acknowledgement(route.messages[0 if adding else 1])

        if not items:
            raise MissingRequiredContext("item_gid or item_gids", kind)

        if route.cardinality == Cardinality.EACH:
            previous = None
            for item in items:
                body = {route.body_key: item, **hints}
                if route.chain_inserts and previous is not None and "insert_after" in hints:
                    body["insert_after"] = previous
                await self.client.post_empty(path, body, kind=kind, gid=params.target_gid)
                previous = item
        elif route.cardinality == Cardinality.BULK:
            await self.client.post_empty(path, {route.body_key: items}, kind=kind, gid=params.target_gid)
        else:
            await self.client.post_empty(path, {route.body_key: ",".join(items)}, kind=kind, gid=params.target_gid)

        message = route.messages[0 if adding else 1]
        if len(items) > 1:
            message = f"{message} ({len(items)} items)"
        return Acknowledgement(message)

    # ------------------------------------------------------------------------
    # search
    # ------------------------------------------------------------------------

    async def search(self, params: SearchParams) -> Page:
        """Search tasks with filters, or any other kind by name via typeahead."""
        kind = (params.resource_type or "task").strip().lower()
        workspace = self._require_workspace(params.workspace_gid, kind)

        if kind == "task":
            query: dict[str, Any] = {
                "opt_fields": self.fields.fields_for("search", params.detail_level, params.extra_fields)
            }
            for field, remote_name in TASK_SEARCH_FILTERS:
                value = getattr(params, field)
                if value is not None:
                    query[remote_name] = value
            if "text" not in query and params.query is not None:
                query["text"] = params.query
            return await self.client.get_page(
                f"/workspaces/{workspace}/tasks/search",
                query,
                kind="task",
                offset=params.offset,
                page_size=None,
            )

        if kind not in TYPEAHEAD_KINDS:
            raise InvalidParameter(
                "resource_type", f"must be 'task' or one of {', '.join(TYPEAHEAD_KINDS)}", kind=kind
            )
        text = params.query if params.query is not None else params.text
        if not text or not text.strip():
            raise MissingRequiredContext("query", kind)

        count = params.count if params.count is not None else TYPEAHEAD_DEFAULT_COUNT
        count = max(1, min(count, TYPEAHEAD_MAX_COUNT))
        query = {
            "query": text,
            "resource_type": kind,
            "count": count,
            "opt_fields": self.fields.fields_for("typeahead", params.detail_level, params.extra_fields),
        }
        return await self.client.get_page(
            f"/workspaces/{workspace}/typeahead",
            query,
            kind=kind,
            offset=params.offset,
            page_size=None,
        )
