"""Field Resolver: detail level -> ``opt_fields`` filter.

The remote service only populates the fields named in ``opt_fields``. The
resolver never affects decoding, only what the server chooses to send.
"""
import enum
from typing import Optional, Protocol, Sequence


class DetailLevel(str, enum.Enum):
    """How much of a resource a get-operation asks for."""

    MINIMAL = "minimal"
    STANDARD = "standard"
    FULL = "full"


class FieldSet(Protocol):
    """Source of the base field list per resource kind and detail level."""

    def base_fields(self, kind: str, level: DetailLevel) -> Sequence[str]:
        ...


def _split(fields: str) -> tuple[str, ...]:
    return tuple(f.strip() for f in fields.split(",") if f.strip())


MINIMAL_FIELDS = ("gid", "name", "resource_type")

# Curated per-kind defaults (DetailLevel.STANDARD)
STANDARD_FIELDS: dict[str, tuple[str, ...]] = {
    "workspace": _split("gid,name,is_organization"),
    "project": _split(
        "gid,name,color,archived,public,owner,owner.name,team,team.name,workspace,workspace.name,"
        "current_status_update,current_status_update.gid,current_status_update.status_type,"
        "current_status_update.title,current_status_update.text,"
        "notes,created_at,modified_at,due_date,due_on,start_on,permalink_url,icon"
    ),
    "portfolio": _split(
        "gid,name,color,owner,owner.name,workspace,"
        "current_status_update,current_status_update.gid,current_status_update.status_type,"
        "current_status_update.title,current_status_update.text,"
        "created_at,created_by,permalink_url,public"
    ),
    "portfolio_item": _split("gid,resource_type,name"),
    "task": _split(
        "gid,name,resource_type,completed,completed_at,assignee,assignee.name,due_on,due_at,"
        "start_on,notes,created_at,modified_at,permalink_url,parent,parent.name,num_likes,"
        "num_subtasks,liked,projects,projects.name,workspace,tags,memberships,memberships.project,"
        "memberships.project.name,memberships.section,memberships.section.name"
    ),
    "subtask": _split("gid,name,completed,assignee,assignee.name,due_on,num_subtasks"),
    "task_dependency": _split("gid,name,resource_type"),
    "story": _split(
        "gid,created_at,created_by,created_by.name,resource_subtype,text,html_text,"
        "is_pinned,is_edited,num_likes,liked"
    ),
    "status_update": _split(
        "gid,title,text,html_text,status_type,created_at,created_by,created_by.name,"
        "modified_at,parent,parent.name"
    ),
    "project_template": _split(
        "gid,name,description,html_description,owner,owner.name,team,team.name,public,"
        "requested_dates,requested_dates.gid,requested_dates.name,requested_dates.description,"
        "requested_roles,requested_roles.gid,requested_roles.name,color"
    ),
    "section": _split("gid,name,project,project.name,created_at"),
    "tag": _split("gid,name,color,notes,workspace,workspace.name,created_at,permalink_url"),
    "user": _split("gid,name,email,photo,workspaces,workspaces.name"),
    "team": _split("gid,name,description,html_description,organization,permalink_url"),
    "custom_field_setting": _split(
        "gid,custom_field,custom_field.gid,custom_field.name,custom_field.type,"
        "custom_field.enum_options,custom_field.enum_options.gid,custom_field.enum_options.name,"
        "custom_field.enum_options.color,custom_field.precision,custom_field.currency_code,"
        "is_important,project"
    ),
    "project_brief": _split("gid,title,text,html_text,permalink_url,project,project.name"),
    "search": _split(
        "gid,name,completed,assignee,assignee.name,due_on,start_on,projects,projects.name,"
        "tags,tags.name,permalink_url"
    ),
    "typeahead": _split("gid,name,resource_type"),
    "favorite": _split("gid,resource_type,name"),
    "user_task_list": _split("gid"),
    "job": _split("gid,status,new_project,new_project.name,new_task,new_task.name"),
}

# Extra fields requested on top of STANDARD_FIELDS for DetailLevel.FULL
FULL_EXTRA_FIELDS: dict[str, tuple[str, ...]] = {
    "project": _split("html_notes,members,members.name,followers,followers.name,custom_fields,default_view"),
    "portfolio": _split("members,members.name,custom_field_settings,due_on,start_on"),
    "task": _split(
        "completed_by,completed_by.name,assignee.email,start_at,html_notes,created_by,"
        "created_by.name,tags.name,workspace.name,assignee_section,assignee_section.name,"
        "followers,followers.name,custom_fields,dependencies,dependents"
    ),
    "subtask": _split("notes,start_on,permalink_url,modified_at"),
    "tag": _split("followers,followers.name"),
    "user": _split("resource_type"),
    "team": _split("visibility"),
    "search": _split("notes,modified_at,memberships.section.name"),
}


class StaticFieldSet:
    """Default FieldSet backed by the curated tables above."""

    def __init__(
        self,
        standard: Optional[dict[str, Sequence[str]]] = None,
        full_extra: Optional[dict[str, Sequence[str]]] = None,
    ):
        self._standard = standard if standard is not None else STANDARD_FIELDS
        self._full_extra = full_extra if full_extra is not None else FULL_EXTRA_FIELDS

    def base_fields(self, kind: str, level: DetailLevel) -> Sequence[str]:
        level = DetailLevel(level)
        if level == DetailLevel.MINIMAL:
            return MINIMAL_FIELDS
        standard = tuple(self._standard.get(kind, MINIMAL_FIELDS))
        if level == DetailLevel.FULL:
            return standard + tuple(self._full_extra.get(kind, ()))
        return standard


class FieldResolver:
    """Resolves the ``opt_fields`` string for a (kind, detail level) request."""

    def __init__(self, field_set: Optional[FieldSet] = None):
        self.field_set = field_set or StaticFieldSet()

    def fields_for(
        self,
        kind: str,
        detail_level: DetailLevel = DetailLevel.STANDARD,
        extra_fields: Optional[Sequence[str]] = None,
    ) -> str:
        """Base fields for the tier followed by caller extras, deduplicated in order."""
        combined: list[str] = []
        seen: set[str] = set()
        for name in list(self.field_set.base_fields(kind, detail_level)) + list(extra_fields or ()):
            name = name.strip()
            if name and name not in seen:
                seen.add(name)
                combined.append(name)
        return ",".join(combined)
