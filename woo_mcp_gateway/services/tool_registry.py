"""Static tool registry: listing and invocation with a per-call failure boundary."""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from woo_mcp_gateway.infra.error_handler import classify_error
from woo_mcp_gateway.infra.metrics import tool_calls_total, tool_call_duration
from woo_mcp_gateway.models.tool import FaultKind, ToolDescriptor, ToolFault, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Ordered, immutable collection of tool descriptors keyed by name.

    One registry is built at startup and shared by every request. It holds no
    per-tenant state; the upstream client is passed into ``invoke``.
    """

    def __init__(self, tools: Iterable[ToolDescriptor]):
        by_name: Dict[str, ToolDescriptor] = {}
        for tool in tools:
            if tool.name in by_name:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            by_name[tool.name] = tool
        self._tools = by_name

    def list(self) -> List[Dict[str, Any]]:
        """Tool metadata (name, description, inputSchema) in registration order."""
        return [tool.metadata() for tool in self._tools.values()]

    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def invoke(self, name: str, client: Any, raw_args: Any) -> Union[ToolResult, ToolFault]:
        """
        Validate arguments and execute a tool for one request's client.

        Args:
            name: Tool name requested by the agent
            client: The request's upstream client
            raw_args: Unvalidated arguments (None is treated as no arguments)

        Returns:
            ToolResult from the tool (isError=True when the tool raised), or a
            ToolFault when the tool is unknown or the arguments are invalid
        """
        tool = self._tools.get(name)
        if tool is None:
            tool_calls_total.labels(tool_name="unknown", status="unknown_tool").inc()
            logger.warning(f"Unknown tool requested: {name}")
            return ToolFault(
                kind=FaultKind.UNKNOWN_TOOL,
                message=f"Unknown tool: {name}",
                tool_name=name,
            )

        try:
            args = tool.input_model.model_validate({} if raw_args is None else raw_args)
        except ValidationError as e:
            tool_calls_total.labels(tool_name=name, status="invalid_arguments").inc()
            errors = e.errors(include_url=False, include_context=False, include_input=False)
            logger.info(f"Invalid arguments for tool {name}", extra={"errors": errors})
            return ToolFault(
                kind=FaultKind.INVALID_ARGUMENTS,
                message=f"Invalid arguments for tool {name}",
                tool_name=name,
                errors=errors,
            )

        start_time = time.time()
        try:
            result = await tool.execute(client, args)
        except Exception as e:
            category = classify_error(e)
            tool_calls_total.labels(tool_name=name, status="exception").inc()
            logger.error(
                f"Tool {name} failed: {e}",
                extra={"tool_name": name, "error_category": category.value},
                exc_info=True,
            )
            return ToolResult.error(f"{tool.error_label}: {e}")
        finally:
            tool_call_duration.labels(tool_name=name).observe(time.time() - start_time)

        status = "tool_error" if result.is_error else "success"
        tool_calls_total.labels(tool_name=name, status=status).inc()
        return result
