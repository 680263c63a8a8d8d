"""Tests for the tool registry itself."""

import asyncio

import pytest
from pydantic import Field

from planner.chat.context import RunContext
from planner.chat.registry import ToolInput, ToolRegistry, registry


class EchoInput(ToolInput):
    event_id: str = Field(min_length=1)
    limit: int = Field(default=3, ge=1, le=5)


@pytest.fixture
def local_registry():
    reg = ToolRegistry()
    calls = []

    @reg.tool("echo", "Echo the arguments back.", EchoInput)
    async def echo(args, ctx):
        calls.append(args)
        return {"eventId": args.event_id, "limit": args.limit}

    reg.calls = calls
    return reg


class TestCall:
    def test_valid_call_uses_camel_case_input(self, local_registry):
        result = asyncio.run(local_registry.call("echo", {"eventId": "e1"}, RunContext(session=None)))
        assert result == {"eventId": "e1", "limit": 3}

    def test_invalid_input_never_reaches_the_tool(self, local_registry):
        result = asyncio.run(local_registry.call("echo", {"eventId": "e1", "limit": 9}, RunContext(session=None)))

        assert result["error"] == "invalid-input"
        assert result["tool"] == "echo"
        assert "limit" in result["detail"]
        assert local_registry.calls == []

    def test_missing_required_field(self, local_registry):
        result = asyncio.run(local_registry.call("echo", None, RunContext(session=None)))
        assert result["error"] == "invalid-input"

    def test_context_can_be_wrapped(self):
        reg = ToolRegistry()
        seen = []

        @reg.tool("whoami", "Report the request id.")
        async def whoami(args, ctx):
            seen.append(ctx)
            return {"requestId": ctx.request_id}

        ctx = RunContext(session=None, request_id="r1")
        result = asyncio.run(reg.call("whoami", {}, {"context": ctx}))

        assert result == {"requestId": "r1"}
        assert seen[0] is ctx

    def test_unknown_tool(self, local_registry):
        result = asyncio.run(local_registry.call("nope", {}, RunContext(session=None)))
        assert result == {"error": "unknown-tool", "tool": "nope"}

    def test_duplicate_names_are_refused(self, local_registry):
        with pytest.raises(ValueError):
            @local_registry.tool("echo", "again", EchoInput)
            async def again(args, ctx):
                return {}


class TestCatalogue:
    def test_all_tools_registered(self):
        expected = {
            "resolveEventById", "resolveEventBySlug", "resolveEventByName",
            "resolveGoodieById", "resolveGoodieBySlug", "resolveGoodieByName",
            "getEventInformation", "getGoodieInformation",
            "getEventsAdvanced", "getMyEvents", "getMyGoodies", "getEventParticipants", "getStats",
            "getEvents", "getGoodies",
            "joinEvent", "leaveEvent", "voteGoodie", "clearGoodieVote", "toggleCollectGoodie",
            "listEventComments", "createEventComment", "deleteMyEventComment",
            "listPosts", "createPost", "likePost", "addPostComment",
        }
        assert set(registry.names()) == expected

    def test_openai_format(self):
        tools = {t["function"]["name"]: t for t in registry.openai_tools()}
        params = tools["getEventParticipants"]["function"]["parameters"]

        assert tools["getEventParticipants"]["type"] == "function"
        assert params["type"] == "object"
        assert set(params["properties"]) == {"eventId", "limit"}
        assert params["required"] == ["eventId"]

    def test_no_argument_tools_have_object_schema(self):
        stats = next(t for t in registry.openai_tools() if t["function"]["name"] == "getStats")
        assert stats["function"]["parameters"]["type"] == "object"
        assert stats["function"]["parameters"]["properties"] == {}

    def test_mcp_format(self):
        tools = {t.name: t for t in registry.mcp_tools()}
        assert "voteGoodie" in tools
        assert "goodieId" in tools["voteGoodie"].inputSchema["properties"]
