"""HTTP transport and cursor pagination for the Asana API.

All calls go through ``AsanaClient.request``, which is the single place where
remote failures are mapped onto the error taxonomy. Listing endpoints are
walked with ``iter_pages``: the first call carries no cursor, each following
call replays the ``offset`` returned by the previous page, and the walk ends
when the server stops returning one.
"""
import logging
from typing import Any, AsyncIterator, Mapping, Optional, Protocol

import httpx

from .config import DEFAULT_BASE_URL, Settings
from .errors import MalformedResource, PaginationLoop, TransportFailure, error_from_response
from .models import Page, Resource, unwrap_data

logger = logging.getLogger("asana-core.client")

CURSOR_PARAM = "offset"
PAGE_SIZE = 100


class Transport(Protocol):
    """Issue one authenticated request and return the decoded JSON body."""

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[dict] = None,
        *,
        kind: Optional[str] = None,
        gid: Optional[str] = None,
    ) -> Any:
        ...


def encode_params(params: Optional[Mapping[str, Any]]) -> list[tuple[str, str]]:
    """Render query parameters the way the API expects them.

    None values are dropped, booleans become ``true``/``false`` and lists
    are comma-joined.
    """
    encoded = []
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            value = ",".join(str(v) for v in value)
        encoded.append((key, str(value)))
    return encoded


async def iter_pages(
    transport: Transport,
    path: str,
    params: Optional[Mapping[str, Any]] = None,
    *,
    kind: Optional[str] = None,
    page_size: Optional[int] = PAGE_SIZE,
) -> AsyncIterator[Page]:
    """Yield every page of a listing in server order.

    Pages are requested strictly one after another since each request needs
    the cursor of the previous one.

    Raises:
        PaginationLoop: If the server returns a cursor already seen in this walk
    """
    query = dict(params or {})
    if page_size is not None:
        query.setdefault("limit", page_size)

    seen: set[str] = set()
    offset: Optional[str] = None
    while True:
        page_query = dict(query)
        if offset is not None:
            page_query[CURSOR_PARAM] = offset

        body = await transport.request("GET", path, page_query, kind=kind)
        page = Page.decode(body, kind=kind)

        if page.next_offset and page.next_offset in seen:
            logger.error(f"Server repeated pagination cursor while listing {path}")
            raise PaginationLoop(path, page.next_offset)

        yield page

        if not page.next_offset:
            return
        seen.add(page.next_offset)
        offset = page.next_offset


class AsanaClient:
    """Authenticated client for the Asana REST API.

    The bearer credential is fixed at construction. An ``httpx`` transport
    can be injected (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AsanaClient":
        """Build a client from settings; raises MissingToken without a credential."""
        return cls(
            settings.require_token(),
            base_url=settings.base_url,
            timeout=settings.timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "AsanaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[dict] = None,
        *,
        kind: Optional[str] = None,
        gid: Optional[str] = None,
    ) -> Any:
        """Send one request and return the parsed JSON body.

        Args:
            method: HTTP method
            path: Endpoint path relative to the base URL (e.g. "/tasks/123")
            params: Query parameters (see encode_params)
            body: Request payload; sent wrapped as ``{"data": body}``
            kind: Resource kind addressed, carried into any error raised
            gid: Subject identifier addressed, carried into any error raised

        Returns:
            Parsed JSON body, or an empty dict for an empty response

        Raises:
            RemoteNotFound, RemoteRejected: Non-2xx response
            TransportFailure: No response (connection error, timeout)
            MalformedResource: 2xx response whose body is not JSON
        """
        json_body = {"data": body} if body is not None else None
        try:
            response = await self._http.request(
                method,
                path,
                params=encode_params(params),
                json=json_body,
            )
        except httpx.RequestError as exc:
            logger.error(f"{method} {path} failed: {type(exc).__name__}: {exc}")
            raise TransportFailure(exc, kind=kind, gid=gid) from exc

        logger.debug(f"{method} {path} -> {response.status_code}")

        if response.is_error:
            raise error_from_response(response.status_code, response.text, kind=kind, gid=gid)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResource("response body is not valid JSON", kind=kind, gid=gid) from exc

    # ------------------------------------------------------------------------
    # Convenience verbs
    # ------------------------------------------------------------------------

    async def get_resource(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        kind: Optional[str] = None,
        gid: Optional[str] = None,
    ) -> Resource:
        """GET a single resource; the response must carry a gid."""
        body = await self.request("GET", path, params, kind=kind, gid=gid)
        return Resource.decode(unwrap_data(body, kind, gid), require_gid=True, kind=kind)

    async def get_page(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        kind: Optional[str] = None,
        offset: Optional[str] = None,
        page_size: Optional[int] = PAGE_SIZE,
    ) -> Page:
        """GET one page of a listing, optionally resuming from a cursor."""
        query = dict(params or {})
        if page_size is not None:
            query.setdefault("limit", page_size)
        if offset is not None:
            query[CURSOR_PARAM] = offset
        body = await self.request("GET", path, query, kind=kind)
        return Page.decode(body, kind=kind)

    async def get_all(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        kind: Optional[str] = None,
        page_size: Optional[int] = PAGE_SIZE,
    ) -> AsyncIterator[Resource]:
        """Lazily yield every resource of a listing, concatenated across pages."""
        async for page in iter_pages(self, path, params, kind=kind, page_size=page_size):
            for item in page.items:
                yield item

    async def collect_all(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        kind: Optional[str] = None,
        page_size: Optional[int] = PAGE_SIZE,
    ) -> list[Resource]:
        return [item async for item in self.get_all(path, params, kind=kind, page_size=page_size)]

    async def post_resource(
        self,
        path: str,
        body: dict,
        params: Optional[Mapping[str, Any]] = None,
        *,
        kind: Optional[str] = None,
        gid: Optional[str] = None,
    ) -> Resource:
        response = await self.request("POST", path, params, body=body, kind=kind, gid=gid)
        return Resource.decode(unwrap_data(response, kind, gid), require_gid=True, kind=kind)

    async def put_resource(
        self,
        path: str,
        body: dict,
        params: Optional[Mapping[str, Any]] = None,
        *,
        kind: Optional[str] = None,
        gid: Optional[str] = None,
    ) -> Resource:
        response = await self.request("PUT", path, params, body=body, kind=kind, gid=gid)
        return Resource.decode(unwrap_data(response, kind, gid), require_gid=True, kind=kind)

    async def post_empty(
        self,
        path: str,
        body: dict,
        *,
        kind: Optional[str] = None,
        gid: Optional[str] = None,
    ) -> None:
        """POST to an endpoint whose success response carries no resource."""
        await self.request("POST", path, body=body, kind=kind, gid=gid)

    async def delete(
        self,
        path: str,
        *,
        kind: Optional[str] = None,
        gid: Optional[str] = None,
    ) -> None:
        await self.request("DELETE", path, kind=kind, gid=gid)
