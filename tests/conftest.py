"""Shared fixtures: a scripted Asana API served through httpx.MockTransport."""
import asyncio
import json
from typing import Callable, Optional

import httpx
import pytest

from asana_core.client import AsanaClient
from asana_core.dispatcher import Dispatcher

BASE_URL = "https://asana.test/api/1.0"
API_PREFIX = "/api/1.0"


def data(payload):
    """Wrap a payload in the single-object envelope."""
    return {"data": payload}


def sent_body(request: httpx.Request) -> dict:
    """The ``data`` member of a recorded request's JSON body."""
    return json.loads(request.content)["data"]


class FakeAsana:
    """In-memory Asana API.

    Routes are keyed by (method, path) with the API prefix stripped. Every
    request is recorded so tests can count and inspect Transport calls.
    Unknown routes answer 404 in the remote error envelope.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], tuple] = {}
        self.requests: list[httpx.Request] = []

    def route(
        self,
        method: str,
        path: str,
        body: Optional[dict] = None,
        status: int = 200,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
        delay: float = 0.0,
    ):
        self.routes[(method, path)] = (handler, body, status, delay)

    def resource(self, path: str, payload: dict, delay: float = 0.0):
        self.route("GET", path, body=data(payload), delay=delay)

    def listing(self, path: str, *pages: list, delay: float = 0.0):
        """Serve ``pages`` in order; page N is requested with offset ``cursor-N``."""
        def handler(request):
            offset = request.url.params.get("offset")
            index = 0 if offset is None else int(offset.split("-")[1])
            body = {"data": pages[index] if pages else [], "next_page": None}
            if index + 1 < len(pages):
                body["next_page"] = {"offset": f"cursor-{index + 1}", "path": path, "uri": f"{BASE_URL}{path}"}
            return httpx.Response(200, json=body)

        self.route("GET", path, handler=handler, delay=delay)

    def error(self, method: str, path: str, status: int, message: Optional[str] = None):
        body = {"errors": [{"message": message}]} if message else None
        self.route(method, path, body=body, status=status)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        entry = self.routes.get((request.method, self._path(request)))
        if entry is None:
            message = f"{request.method} {self._path(request)} is not scripted"
            return httpx.Response(404, json={"errors": [{"message": message}]})

        handler, body, status, delay = entry
        if delay:
            await asyncio.sleep(delay)
        if handler is not None:
            return handler(request)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> list[httpx.Request]:
        return [
            request for request in self.requests
            if (method is None or request.method == method)
            and (path is None or self._path(request) == path)
        ]

    def paths(self) -> list[str]:
        return [f"{request.method} {self._path(request)}" for request in self.requests]

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        return path[len(API_PREFIX):] if path.startswith(API_PREFIX) else path


@pytest.fixture
def fake():
    return FakeAsana()


@pytest.fixture
def client(fake):
    return AsanaClient("test-token", base_url=BASE_URL, transport=fake.transport())


@pytest.fixture
def dispatcher(client):
    return Dispatcher(client, default_workspace="WS")


@pytest.fixture
def bare_dispatcher(client):
    """Dispatcher without a default workspace."""
    return Dispatcher(client)
