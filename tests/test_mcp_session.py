"""Tests for JSON-RPC handling in an MCP session."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from woo_mcp_gateway.models.tool import FaultKind, ToolFault, ToolResult
from woo_mcp_gateway.services.mcp_session import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    SUPPORTED_PROTOCOL_VERSIONS,
    McpSession,
)

TOOLS = [{"name": "listProducts", "description": "List", "inputSchema": {"type": "object"}}]


@pytest.fixture
def call_tool():
    return AsyncMock(return_value=ToolResult.text("ok"))


@pytest.fixture
def session(call_tool):
    return McpSession(tenant_id="t1", list_tools=MagicMock(return_value=TOOLS), call_tool=call_tool)


class TestMcpSession:
    """Test MCP method dispatch."""

    @pytest.mark.asyncio
    async def test_initialize_echoes_supported_version(self, session):
        reply = await session.handle_message({
            "jsonrpc": "2.0",
            "id": 1,
            "method": "initialize",
            "params": {"protocolVersion": "2025-03-26", "capabilities": {}},
        })
        result = reply["result"]
        assert result["protocolVersion"] == "2025-03-26"
        assert result["capabilities"] == {"tools": {"listChanged": False}}
        assert result["serverInfo"]["name"]

    @pytest.mark.asyncio
    async def test_initialize_offers_latest_for_unknown_version(self, session):
        reply = await session.handle_message({
            "jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "1999-01-01"},
        })
        assert reply["result"]["protocolVersion"] == SUPPORTED_PROTOCOL_VERSIONS[0]

    @pytest.mark.asyncio
    async def test_ping(self, session):
        reply = await session.handle_message({"jsonrpc": "2.0", "id": "p", "method": "ping"})
        assert reply == {"jsonrpc": "2.0", "id": "p", "result": {}}

    @pytest.mark.asyncio
    async def test_tools_list(self, session):
        reply = await session.handle_message({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
        assert reply["result"] == {"tools": TOOLS}

    @pytest.mark.asyncio
    async def test_notification_gets_no_reply(self, session):
        reply = await session.handle_message({"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert reply is None

    @pytest.mark.asyncio
    async def test_unknown_method(self, session):
        reply = await session.handle_message({"jsonrpc": "2.0", "id": 3, "method": "resources/list"})
        assert reply["error"]["code"] == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [{"id": 1, "method": "ping"}, ["not", "an", "object"], "ping"])
    async def test_invalid_message(self, session, message):
        reply = await session.handle_message(message)
        assert reply["error"]["code"] == INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_params_must_be_object(self, session):
        reply = await session.handle_message({"jsonrpc": "2.0", "id": 4, "method": "tools/list", "params": [1]})
        assert reply["error"]["code"] == INVALID_PARAMS


class TestToolCalls:
    """Test tools/call translation."""

    @pytest.mark.asyncio
    async def test_success(self, session, call_tool):
        reply = await session.handle_message({
            "jsonrpc": "2.0",
            "id": 5,
            "method": "tools/call",
            "params": {"name": "listProducts", "arguments": {"a": 1}},
        })
        call_tool.assert_awaited_once_with("listProducts", {"a": 1})
        assert reply["result"] == {"content": [{"type": "text", "text": "ok"}]}

    @pytest.mark.asyncio
    async def test_missing_name(self, session, call_tool):
        reply = await session.handle_message({"jsonrpc": "2.0", "id": 6, "method": "tools/call", "params": {}})
        assert reply["error"]["code"] == INVALID_PARAMS
        call_tool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fault_becomes_invalid_params(self, session, call_tool):
        call_tool.return_value = ToolFault(
            kind=FaultKind.INVALID_ARGUMENTS,
            message="Invalid arguments for tool listProducts",
            tool_name="listProducts",
            errors=[{"loc": ("keyword",), "msg": "Field required", "type": "missing"}],
        )
        reply = await session.handle_message({
            "jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"name": "listProducts"},
        })
        error = reply["error"]
        assert error["code"] == INVALID_PARAMS
        assert error["data"]["kind"] == "invalid_arguments"
        assert error["data"]["tool"] == "listProducts"
        assert error["data"]["errors"][0]["type"] == "missing"

    @pytest.mark.asyncio
    async def test_error_result_stays_a_result(self, session, call_tool):
        call_tool.return_value = ToolResult.error("Error: nope")
        reply = await session.handle_message({
            "jsonrpc": "2.0", "id": 8, "method": "tools/call", "params": {"name": "listProducts"},
        })
        assert "error" not in reply
        assert reply["result"]["isError"] is True
