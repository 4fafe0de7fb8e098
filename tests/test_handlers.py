"""Tests for the MCP tool surface: tool schemas, handlers and error rendering."""
import json

import pytest
from pydantic import ValidationError

from asana_core.config import get_settings
from asana_core.dispatcher import GetParams, ResourceKind
from asana_core.errors import MissingRequiredContext, RemoteNotFound
from asana_core.models import Resource
from asana_mcp import formatters, handlers, server, tools

from conftest import data


def payload(content):
    """Parse the JSON text of a single TextContent result."""
    assert len(content) == 1
    return json.loads(content[0].text)


class TestTools:
    """Test tool definitions."""

    def test_every_tool_has_a_handler(self):
        names = {tool.name for tool in tools.get_tools()}
        assert names == set(server.HANDLER_MAP)

    def test_schemas_are_objects(self):
        for tool in tools.get_tools():
            assert tool.inputSchema["type"] == "object"
            for required in tool.inputSchema.get("required", []):
                assert required in tool.inputSchema["properties"]

    def test_get_lists_every_kind(self):
        get_tool = next(tool for tool in tools.get_tools() if tool.name == "asana_get")
        assert get_tool.inputSchema["properties"]["resource_type"]["enum"] == [k.value for k in ResourceKind]


class TestFormatters:
    def test_to_jsonable_encodes_nested_results(self):
        resources = [Resource.decode({"gid": "1", "name": "a"}), Resource.decode({"gid": "2"})]
        assert formatters.to_jsonable({"items": resources, "count": 2}) == {
            "items": [{"gid": "1", "name": "a"}, {"gid": "2"}],
            "count": 2,
        }

    def test_error_with_kind_and_gid(self):
        text = formatters.format_error(RemoteNotFound("task", "T1", "Unknown object"))
        assert text == "Error: task T1: Unknown object"

    def test_error_without_context_uses_type(self):
        text = formatters.format_error(MissingRequiredContext("query"))
        assert text == "Error: MissingRequiredContext: query is required"

    def test_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            GetParams.model_validate({"resource_type": "nonsense"})
        text = formatters.format_validation_error(exc_info.value)
        assert text.startswith("Error: invalid arguments: resource_type: ")


class TestHandlers:
    """Test argument parsing and result rendering."""

    @pytest.mark.asyncio
    async def test_workspaces(self, fake, dispatcher):
        fake.listing("/workspaces", [{"gid": "WS", "name": "Acme"}])

        result = payload(await handlers.handle_workspaces({}, dispatcher))

        assert result == [{"gid": "WS", "name": "Acme"}]

    @pytest.mark.asyncio
    async def test_get_ignores_null_arguments(self, fake, dispatcher):
        fake.resource("/tags/TG1", {"gid": "TG1", "name": "urgent"})

        result = payload(await handlers.handle_get(
            {"resource_type": "tag", "gid": "TG1", "depth": None, "opt_fields": None}, dispatcher
        ))

        assert result == {"gid": "TG1", "name": "urgent"}

    @pytest.mark.asyncio
    async def test_create_returns_created_resource(self, fake, dispatcher):
        fake.route("POST", "/tags", body=data({"gid": "TG2", "name": "new"}))

        result = payload(await handlers.handle_create({"resource_type": "tag", "name": "new"}, dispatcher))

        assert result["gid"] == "TG2"

    @pytest.mark.asyncio
    async def test_link_acknowledgement(self, fake, dispatcher):
        fake.route("POST", "/tasks/T1/addFollowers", body=data({"gid": "T1"}))

        result = payload(await handlers.handle_link({
            "action": "add", "relationship": "task_follower", "target_gid": "T1", "item_gids": ["U1"],
        }, dispatcher))

        assert result == {"success": True, "message": "Followers added to task"}

    @pytest.mark.asyncio
    async def test_task_search_always_searches_tasks(self, fake, dispatcher):
        fake.route("GET", "/workspaces/WS/tasks/search", body={"data": [{"gid": "T1"}], "next_page": None})

        result = payload(await handlers.handle_task_search(
            {"resource_type": "project", "text": "bug"}, dispatcher
        ))

        assert result == {"data": [{"gid": "T1"}], "next_page": None}

    @pytest.mark.asyncio
    async def test_resource_search(self, fake, dispatcher):
        fake.route("GET", "/workspaces/WS/typeahead", body={"data": [{"gid": "U1", "name": "Ada"}]})

        result = payload(await handlers.handle_resource_search(
            {"resource_type": "user", "query": "ada"}, dispatcher
        ))

        assert result["data"] == [{"gid": "U1", "name": "Ada"}]


class TestDispatchTool:
    """Test that failures come back as text, never as exceptions."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, dispatcher):
        content = await server.dispatch_tool("asana_teleport", {}, dispatcher)
        assert content[0].text == "Unknown tool: asana_teleport"

    @pytest.mark.asyncio
    async def test_validation_failure_is_rendered(self, fake, dispatcher):
        content = await server.dispatch_tool("asana_link", {
            "action": "remove", "relationship": "task_parent", "target_gid": "T1", "item_gid": "T0",
        }, dispatcher)

        assert content[0].text.startswith("Error: task_parent: task_parent does not support action 'remove'")
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_remote_error_is_rendered(self, fake, dispatcher):
        content = await server.dispatch_tool("asana_get", {"resource_type": "project", "gid": "P9"}, dispatcher)
        assert content[0].text.startswith("Error: project P9: ")

    @pytest.mark.asyncio
    async def test_bad_arguments_are_rendered(self, dispatcher):
        content = await server.dispatch_tool("asana_delete", {"resource_type": "workspace", "gid": "1"}, dispatcher)
        assert content[0].text.startswith("Error: invalid arguments: resource_type")

    @pytest.mark.asyncio
    async def test_unexpected_error_is_rendered(self):
        class Broken:
            async def get(self, params):
                raise RuntimeError("boom")

        content = await server.dispatch_tool("asana_get", {"resource_type": "me"}, Broken())
        assert content[0].text == "Error: RuntimeError: boom"

    @pytest.mark.asyncio
    async def test_missing_token_is_rendered(self, monkeypatch):
        monkeypatch.delenv("ASANA_TOKEN", raising=False)
        monkeypatch.delenv("ASANA_ACCESS_TOKEN", raising=False)
        monkeypatch.setattr(server, "_dispatcher", None)
        get_settings.cache_clear()
        try:
            content = await server.dispatch_tool("asana_workspaces", {})
        finally:
            get_settings.cache_clear()

        assert content[0].text == "Error: MissingToken: ASANA_TOKEN environment variable is not set"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
