"""Tests for the HTTP transport and cursor pagination."""
import httpx
import pytest

from asana_core.client import AsanaClient, encode_params, iter_pages
from asana_core.errors import (
    MalformedResource,
    PaginationLoop,
    RemoteNotFound,
    RemoteRejected,
    TransportFailure,
)

from conftest import BASE_URL, data, sent_body


def items(prefix, count):
    return [{"gid": f"{prefix}{i}", "name": f"Item {prefix}{i}"} for i in range(count)]


class TestEncodeParams:
    def test_renders_query_values(self):
        assert encode_params({
            "opt_fields": ["gid", "name"],
            "completed": False,
            "archived": True,
            "limit": 100,
            "workspace": None,
        }) == [
            ("opt_fields", "gid,name"),
            ("completed", "false"),
            ("archived", "true"),
            ("limit", "100"),
        ]

    def test_none_params(self):
        assert encode_params(None) == []


class TestPagination:
    """Test the cursor walk."""

    @pytest.mark.asyncio
    async def test_collects_every_page_in_order(self, fake, client):
        fake.listing("/projects/P/tasks", items("a", 3), items("b", 3), items("c", 2))

        tasks = await client.collect_all("/projects/P/tasks", {"opt_fields": "gid,name"}, kind="task")

        assert [t.gid for t in tasks] == ["a0", "a1", "a2", "b0", "b1", "b2", "c0", "c1"]
        requests = fake.calls("GET", "/projects/P/tasks")
        assert len(requests) == 3
        assert "offset" not in requests[0].url.params
        assert requests[1].url.params["offset"] == "cursor-1"
        assert requests[2].url.params["offset"] == "cursor-2"
        assert all(r.url.params["limit"] == "100" for r in requests)
        assert all(r.url.params["opt_fields"] == "gid,name" for r in requests)

    @pytest.mark.asyncio
    async def test_single_page(self, fake, client):
        fake.listing("/workspaces", items("w", 2))
        assert len(await client.collect_all("/workspaces")) == 2
        assert len(fake.requests) == 1

    @pytest.mark.asyncio
    async def test_empty_listing(self, fake, client):
        fake.listing("/workspaces/WS/tags")
        assert await client.collect_all("/workspaces/WS/tags") == []

    @pytest.mark.asyncio
    async def test_repeated_cursor_raises(self, fake, client):
        def stuck(request):
            return httpx.Response(200, json={"data": items("x", 1), "next_page": {"offset": "same"}})

        fake.route("GET", "/tags", handler=stuck)

        with pytest.raises(PaginationLoop) as exc_info:
            await client.collect_all("/tags")
        assert exc_info.value.cursor == "same"
        assert len(fake.requests) == 2

    @pytest.mark.asyncio
    async def test_iter_pages_yields_pages_lazily(self, fake, client):
        fake.listing("/users", items("u", 1), items("v", 1))

        pages = iter_pages(client, "/users")
        first = await pages.__anext__()

        assert [i.gid for i in first.items] == ["u0"]
        assert len(fake.requests) == 1
        await pages.aclose()

    @pytest.mark.asyncio
    async def test_get_page_replays_cursor_verbatim(self, fake, client):
        fake.listing("/teams/T/users", items("u", 1), items("v", 1))

        page = await client.get_page("/teams/T/users", offset="cursor-1")

        assert [i.gid for i in page.items] == ["v0"]
        assert page.next_offset is None
        assert fake.requests[0].url.params["offset"] == "cursor-1"


class TestRequests:
    """Test request shaping and response handling."""

    @pytest.mark.asyncio
    async def test_bearer_token_and_base_url(self, fake, client):
        fake.resource("/users/me", {"gid": "U1", "name": "Me"})

        user = await client.get_resource("/users/me", kind="user")

        assert user.gid == "U1"
        request = fake.requests[0]
        assert request.headers["Authorization"] == "Bearer test-token"
        assert str(request.url).startswith(BASE_URL)

    @pytest.mark.asyncio
    async def test_body_is_wrapped_in_data(self, fake, client):
        fake.route("POST", "/tasks", body=data({"gid": "T1", "name": "New"}), status=201)

        task = await client.post_resource("/tasks", {"name": "New", "workspace": "WS"}, kind="task")

        assert task.gid == "T1"
        assert sent_body(fake.requests[0]) == {"name": "New", "workspace": "WS"}

    @pytest.mark.asyncio
    async def test_empty_response_body(self, fake, client):
        fake.route("DELETE", "/tasks/T1")
        assert await client.delete("/tasks/T1", kind="task", gid="T1") is None
        assert fake.requests[0].method == "DELETE"

    @pytest.mark.asyncio
    async def test_404_maps_to_remote_not_found(self, fake, client):
        fake.error("GET", "/tasks/T9", 404, "task: Unknown object: T9")

        with pytest.raises(RemoteNotFound) as exc_info:
            await client.get_resource("/tasks/T9", kind="task", gid="T9")

        assert exc_info.value.kind == "task"
        assert exc_info.value.gid == "T9"
        assert exc_info.value.message == "Unknown object: T9"

    @pytest.mark.asyncio
    async def test_403_maps_to_remote_rejected(self, fake, client):
        fake.error("GET", "/projects/P", 403, "Forbidden")

        with pytest.raises(RemoteRejected) as exc_info:
            await client.get_resource("/projects/P", kind="project", gid="P")
        assert exc_info.value.status == 403

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_transport_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = AsanaClient("t", base_url=BASE_URL, transport=httpx.MockTransport(refuse))

        with pytest.raises(TransportFailure) as exc_info:
            await client.get_resource("/tasks/T1", kind="task", gid="T1")
        assert isinstance(exc_info.value.cause, httpx.ConnectError)
        assert exc_info.value.gid == "T1"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self, fake, client):
        fake.route("GET", "/tasks/T1", handler=lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(MalformedResource):
            await client.get_resource("/tasks/T1", kind="task", gid="T1")

    @pytest.mark.asyncio
    async def test_resource_without_gid_is_malformed(self, fake, client):
        fake.resource("/tasks/T1", {"name": "no id"})

        with pytest.raises(MalformedResource, match="missing gid"):
            await client.get_resource("/tasks/T1", kind="task", gid="T1")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
