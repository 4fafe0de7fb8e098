"""Error taxonomy for the Asana resource-access engine.

Every error carries a stable (kind, gid, message) triple so the tool surface
can render an actionable message without re-deriving context:
- Validation errors are raised before any request is sent
- Remote errors are mapped once, at the transport boundary, and propagate unchanged
- Transport failures wrap the underlying httpx exception
"""
import json
from http import HTTPStatus
from typing import Any, Optional

# Prefixes the remote service puts in front of messages that add nothing
# once the message is wrapped in a typed error.
BOILERPLATE_PREFIXES = ("error:",)


class AsanaError(Exception):
    """Base class for every error raised by the engine."""

    def __init__(self, message: str, kind: Optional[str] = None, gid: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.gid = gid

    def to_dict(self) -> dict:
        """Render the error triple for user-facing surfaces."""
        return {
            "error": type(self).__name__,
            "kind": self.kind,
            "gid": self.gid,
            "message": self.message,
        }


class MissingToken(AsanaError):
    """Raised when no API credential is configured."""

    def __init__(self):
        super().__init__("ASANA_TOKEN environment variable is not set")


class MissingRequiredContext(AsanaError):
    """Raised when a required context parameter (gid, container id, name) is absent."""

    def __init__(self, parameter: str, kind: Optional[str] = None):
        target = f" for {kind}" if kind else ""
        super().__init__(f"{parameter} is required{target}", kind=kind)
        self.parameter = parameter


class InvalidParameter(AsanaError):
    """Raised when a supplied parameter value cannot be used."""

    def __init__(self, parameter: str, reason: str, kind: Optional[str] = None):
        super().__init__(f"{parameter} {reason}", kind=kind)
        self.parameter = parameter
        self.reason = reason


class UnsupportedOperation(AsanaError):
    """Raised when a relationship does not support the requested action."""

    def __init__(self, relationship: str, action: str, hint: Optional[str] = None):
        message = f"{relationship} does not support action '{action}'"
        if hint:
            message = f"{message}; {hint}"
        super().__init__(message, kind=relationship)
        self.relationship = relationship
        self.action = action


class MalformedResource(AsanaError):
    """Raised when a response body cannot be decoded into a Resource."""

    def __init__(self, reason: str, kind: Optional[str] = None, gid: Optional[str] = None):
        super().__init__(f"malformed resource: {reason}", kind=kind, gid=gid)
        self.reason = reason


class PaginationLoop(AsanaError):
    """Raised when the server hands back a cursor already seen in the same listing."""

    def __init__(self, path: str, cursor: str):
        super().__init__(f"pagination cursor repeated while listing {path}")
        self.path = path
        self.cursor = cursor


class RemoteNotFound(AsanaError):
    """The remote service reported that the subject does not exist (HTTP 404)."""

    status = HTTPStatus.NOT_FOUND

    def __init__(self, kind: Optional[str], gid: Optional[str], message: str = "resource not found"):
        super().__init__(message, kind=kind, gid=gid)


class RemoteRejected(AsanaError):
    """The remote service rejected the request (validation, permission, rate limit, 5xx)."""

    def __init__(
        self,
        status: int,
        message: str,
        kind: Optional[str] = None,
        gid: Optional[str] = None,
    ):
        super().__init__(message, kind=kind, gid=gid)
        self.status = status


class TransportFailure(AsanaError):
    """The request never produced an HTTP response (connect error, timeout)."""

    def __init__(self, cause: Exception, kind: Optional[str] = None, gid: Optional[str] = None):
        super().__init__(f"{type(cause).__name__}: {cause}", kind=kind, gid=gid)
        self.cause = cause


# ============================================================================
# Error Mapper
# ============================================================================

def extract_error_message(body: Any) -> Optional[str]:
    """Extract the first error message from the remote error envelope.

    The remote service reports failures as ``{"errors": [{"message": "..."}]}``.

    Args:
        body: Raw response text or an already-parsed JSON value

    Returns:
        The first message, or None if the body does not follow the envelope
    """
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except ValueError:
            return None

    if not isinstance(body, dict):
        return None
    errors = body.get("errors")
    if not isinstance(errors, list) or not errors:
        return None
    first = errors[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    return message if isinstance(message, str) else None


def strip_boilerplate(message: str, kind: Optional[str] = None) -> str:
    """Strip prefixes that repeat information the typed error already carries."""
    stripped = message.strip()
    prefixes = list(BOILERPLATE_PREFIXES)
    if kind:
        prefixes.append(f"{kind}:")

    changed = True
    while changed:
        changed = False
        for prefix in prefixes:
            # Never strip the whole message away
            if stripped.lower().startswith(prefix) and len(stripped) > len(prefix):
                stripped = stripped[len(prefix):].lstrip()
                changed = True
    return stripped


def error_from_response(
    status: int,
    body: Any,
    kind: Optional[str] = None,
    gid: Optional[str] = None,
) -> AsanaError:
    """Map a non-2xx response onto the error taxonomy.

    Args:
        status: HTTP status code
        body: Response text (may be empty or non-JSON)
        kind: Resource kind the request addressed, if known
        gid: Subject identifier the request addressed, if known

    Returns:
        RemoteNotFound for 404, RemoteRejected for everything else
    """
    message = extract_error_message(body)
    if message is not None:
        message = strip_boilerplate(message, kind)

    if status == HTTPStatus.NOT_FOUND:
        return RemoteNotFound(kind, gid, message or "resource not found")

    if not message:
        try:
            reason = HTTPStatus(status).phrase
        except ValueError:
            reason = ""
        message = f"HTTP {status} {reason}".strip()
    return RemoteRejected(status, message, kind=kind, gid=gid)
