"""Hybrid resource model.

Resources keep just enough typed structure for dispatch and recursion
(``gid`` and ``resource_type``) while every other server-supplied field is
preserved verbatim in the extension bag, so fields added by the remote
service survive a decode/encode round trip unchanged.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from .errors import MalformedResource


# Typed fields promoted out of the extension bag
TYPED_FIELDS = ("gid", "resource_type")


class Resource(BaseModel):
    """A remote entity: typed ``gid``/``resource_type`` plus an extension bag.

    ``gid`` is always a string. Remote identifiers can exceed the safe
    integer range, so a numeric ``gid`` is rejected instead of coerced.
    """

    gid: Optional[StrictStr] = None
    resource_type: Optional[StrictStr] = None

    model_config = ConfigDict(extra="allow")

    @classmethod
    def decode(
        cls,
        raw: Any,
        require_gid: bool = True,
        kind: Optional[str] = None,
    ) -> "Resource":
        """Decode a JSON object into a Resource.

        Args:
            raw: Parsed JSON value
            require_gid: Reject objects without a usable identifier
            kind: Expected kind, used only for error context

        Raises:
            MalformedResource: If raw is not an object, gid/resource_type have
                the wrong type, or gid is required but missing
        """
        if not isinstance(raw, dict):
            raise MalformedResource(f"expected a JSON object, got {type(raw).__name__}", kind=kind)

        try:
            resource = cls.model_validate(raw)
        except ValidationError as exc:
            problems = ", ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise MalformedResource(problems, kind=kind, gid=_raw_gid(raw)) from exc

        if require_gid and not resource.gid:
            raise MalformedResource("missing gid", kind=kind)
        return resource

    def encode(self) -> dict:
        """Merge the typed fields back into the extension bag.

        Only typed fields that were present on decode (or set explicitly) are
        emitted, so ``Resource.decode(raw).encode() == raw``.
        """
        data = {name: getattr(self, name) for name in TYPED_FIELDS if name in self.model_fields_set}
        data.update(self.fields)
        return data

    @property
    def fields(self) -> dict[str, Any]:
        """The extension bag: every field except ``gid`` and ``resource_type``."""
        return self.model_extra if self.model_extra is not None else {}

    def get(self, name: str, default: Any = None) -> Any:
        """Look up any field, typed or not."""
        if name in TYPED_FIELDS:
            value = getattr(self, name)
            return default if value is None else value
        return self.fields.get(name, default)

    def merge(self, newer: "Resource") -> "Resource":
        """Enrich this resource with a newer result.

        The extension bag is overwritten field by field; ``gid`` and
        ``resource_type`` are unioned with the newer value winning.
        """
        data = dict(self.fields)
        data.update(newer.fields)
        for name in TYPED_FIELDS:
            older_value = getattr(self, name) if name in self.model_fields_set else None
            newer_value = getattr(newer, name) if name in newer.model_fields_set else None
            if name in newer.model_fields_set and newer_value is not None:
                data[name] = newer_value
            elif name in self.model_fields_set:
                data[name] = older_value
            elif name in newer.model_fields_set:
                data[name] = newer_value
        return type(self).model_validate(data)


class Reference(BaseModel):
    """Pointer to a resource by gid plus an optional expected kind."""

    gid: StrictStr
    resource_type: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def encode(self) -> dict:
        data = {"gid": self.gid}
        if self.resource_type is not None:
            data["resource_type"] = self.resource_type
        return data


class Page(BaseModel):
    """One batch of a paginated listing.

    ``next_offset`` is an opaque cursor: stored and replayed verbatim,
    never parsed or constructed locally.
    """

    items: list[Resource] = Field(default_factory=list)
    next_offset: Optional[str] = None

    @classmethod
    def decode(cls, body: Any, kind: Optional[str] = None) -> "Page":
        """Decode the remote list envelope ``{"data": [...], "next_page": {...}}``."""
        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise MalformedResource("expected a list envelope with a 'data' array", kind=kind)

        items = [Resource.decode(raw, require_gid=True, kind=kind) for raw in body["data"]]

        next_page = body.get("next_page")
        next_offset = None
        if next_page is not None:
            if not isinstance(next_page, dict):
                raise MalformedResource("next_page must be an object or null", kind=kind)
            next_offset = next_page.get("offset")
            if next_offset is not None and not isinstance(next_offset, str):
                raise MalformedResource("next_page.offset must be a string", kind=kind)

        return cls(items=items, next_offset=next_offset)

    def encode(self) -> dict:
        return {
            "data": [item.encode() for item in self.items],
            "next_page": {"offset": self.next_offset} if self.next_offset else None,
        }


def unwrap_data(body: Any, kind: Optional[str] = None, gid: Optional[str] = None) -> Any:
    """Return the payload of a single-object envelope ``{"data": ...}``."""
    if not isinstance(body, dict) or "data" not in body:
        raise MalformedResource("expected an envelope with a 'data' member", kind=kind, gid=gid)
    return body["data"]


def _raw_gid(raw: dict) -> Optional[str]:
    gid = raw.get("gid")
    return str(gid) if gid is not None else None
