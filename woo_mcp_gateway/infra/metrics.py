"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Protocol metrics
mcp_requests_total = Counter(
    "mcp_requests_total",
    "Total inbound MCP requests",
    ["method", "outcome"],  # outcome: served, missing_tenant, unknown_tenant, bad_request
)

active_request_contexts = Gauge(
    "active_request_contexts",
    "Number of request contexts currently in SESSION_ACTIVE",
)

# Tool metrics
tool_calls_total = Counter(
    "tool_calls_total",
    "Total tool calls",
    ["tool_name", "status"],  # status: success, tool_error, exception, unknown_tool, invalid_arguments
)

tool_call_duration = Histogram(
    "tool_call_duration_seconds",
    "Tool call duration in seconds",
    ["tool_name"],
)

# Upstream metrics
upstream_requests_total = Counter(
    "upstream_requests_total",
    "Total WooCommerce REST API calls",
    ["method", "status"],
)


def get_metrics_response() -> Response:
    """Get Prometheus metrics as HTTP response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
