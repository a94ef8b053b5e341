"""MCP (Model Context Protocol) session: JSON-RPC 2.0 message handling for one request."""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from woo_mcp_gateway.infra.config import config
from woo_mcp_gateway.models.tool import ToolFault, ToolResult

logger = logging.getLogger(__name__)

# Newest first; the first entry is offered when the client asks for an unknown version
SUPPORTED_PROTOCOL_VERSIONS = ["2025-06-18", "2025-03-26", "2024-11-05"]

# JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602

ListTools = Callable[[], List[Dict[str, Any]]]
CallTool = Callable[[str, Any], Awaitable[Union[ToolResult, ToolFault]]]


def jsonrpc_success(rpc_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    """Build a JSON-RPC 2.0 success response."""
    return {"jsonrpc": "2.0", "id": rpc_id, "result": result}


def jsonrpc_error(rpc_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    """Build a JSON-RPC 2.0 error response."""
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": rpc_id, "error": error}


def is_request(msg: Dict[str, Any]) -> bool:
    """A request has both 'id' and 'method'; notifications have no 'id'."""
    return "id" in msg and "method" in msg


class McpSession:
    """Answers the MCP methods for exactly one request context.

    ``list_tools`` and ``call_tool`` are bound by the dispatcher; ``call_tool``
    already closes over the request's upstream client, so the session never
    sees tenant credentials.
    """

    def __init__(self, tenant_id: str, list_tools: ListTools, call_tool: CallTool):
        self.tenant_id = tenant_id
        self._list_tools = list_tools
        self._call_tool = call_tool
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    async def handle_message(self, msg: Any) -> Optional[Dict[str, Any]]:
        """
        Handle one JSON-RPC message.

        Returns:
            The JSON-RPC response, or None for notifications, responses, and
            anything that completes after the session was closed
        """
        if not isinstance(msg, dict) or msg.get("jsonrpc") != "2.0":
            rpc_id = msg.get("id") if isinstance(msg, dict) else None
            return jsonrpc_error(rpc_id, INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'")

        if not is_request(msg):
            # Notifications (e.g. notifications/initialized) and client responses need no reply
            logger.debug(f"Ignoring non-request message: {msg.get('method')}")
            return None

        if self._closed:
            logger.info("Session closed, dropping request", extra={"tenant_id": self.tenant_id})
            return None

        rpc_id = msg["id"]
        method = msg.get("method")
        params = msg.get("params") or {}
        if not isinstance(params, dict):
            return jsonrpc_error(rpc_id, INVALID_PARAMS, "params must be an object")

        if method == "initialize":
            return jsonrpc_success(rpc_id, self._initialize_result(params))

        if method == "ping":
            return jsonrpc_success(rpc_id, {})

        if method == "tools/list":
            return jsonrpc_success(rpc_id, {"tools": self._list_tools()})

        if method == "tools/call":
            return await self._handle_tool_call(rpc_id, params)

        return jsonrpc_error(rpc_id, METHOD_NOT_FOUND, f"Method not found: {method}")

    async def _handle_tool_call(self, rpc_id: Any, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        tool_name = params.get("name")
        if not isinstance(tool_name, str) or not tool_name:
            return jsonrpc_error(rpc_id, INVALID_PARAMS, "Missing required param: name")

        logger.info(
            f"Calling tool {tool_name}",
            extra={"tenant_id": self.tenant_id, "tool_name": tool_name},
        )
        outcome = await self._call_tool(tool_name, params.get("arguments"))

        if self._closed:
            # The connection went away while the tool was running
            logger.info(
                f"Discarding result of {tool_name}: session closed",
                extra={"tenant_id": self.tenant_id, "tool_name": tool_name},
            )
            return None

        if isinstance(outcome, ToolFault):
            data: Dict[str, Any] = {"kind": outcome.kind.value, "tool": outcome.tool_name}
            if outcome.errors:
                data["errors"] = outcome.errors
            return jsonrpc_error(rpc_id, INVALID_PARAMS, outcome.message, data)

        return jsonrpc_success(rpc_id, outcome.to_wire())

    @staticmethod
    def _initialize_result(params: Dict[str, Any]) -> Dict[str, Any]:
        requested = params.get("protocolVersion")
        if requested in SUPPORTED_PROTOCOL_VERSIONS:
            version = requested
        else:
            version = SUPPORTED_PROTOCOL_VERSIONS[0]
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": config.SERVER_NAME, "version": config.SERVER_VERSION},
        }
