"""MCP streamable-HTTP transport: POST carries JSON-RPC messages, GET opens an event stream."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.types import Receive, Scope, Send

from woo_mcp_gateway.infra.auth import get_dispatcher, get_tenant_id
from woo_mcp_gateway.infra.config import config
from woo_mcp_gateway.infra.metrics import mcp_requests_total
from woo_mcp_gateway.services.mcp_session import (
    INVALID_REQUEST,
    PARSE_ERROR,
    jsonrpc_error,
)
from woo_mcp_gateway.services.request_dispatcher import (
    DispatchFault,
    DispatchFaultKind,
    RequestContext,
    RequestDispatcher,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def open_context(dispatcher: RequestDispatcher, tenant_id: Optional[str], method: str) -> RequestContext:
    """
    Resolve the tenant for this request or reject it.

    Raises:
        HTTPException: 400 when the tenant header is missing, 404 when the
            tenant is unknown
    """
    outcome = dispatcher.open(tenant_id)
    if isinstance(outcome, DispatchFault):
        mcp_requests_total.labels(method=method, outcome=outcome.kind.value).inc()
        if outcome.kind == DispatchFaultKind.MISSING_TENANT:
            detail = f"Missing {config.TENANT_HEADER} header"
        else:
            detail = outcome.message
        raise HTTPException(status_code=outcome.status_code, detail=detail)
    return outcome


async def close_on_disconnect(request: Request, context: RequestContext, poll_interval: float) -> None:
    """Tear the context down as soon as the client goes away."""
    while context.is_active:
        await asyncio.sleep(poll_interval)
        if await request.is_disconnected():
            logger.info("Client disconnected", extra={"tenant_id": context.tenant_id})
            await context.aclose()
            return


async def event_stream(context: RequestContext, heartbeat_seconds: float) -> AsyncIterator[str]:
    """SSE comments keeping the stream open until the context closes."""
    try:
        yield ": stream open\n\n"
        while context.is_active:
            await asyncio.sleep(heartbeat_seconds)
            if not context.is_active:
                break
            yield f": heartbeat {datetime.now(timezone.utc).isoformat()}\n\n"
    finally:
        await context.aclose()


class ContextStreamingResponse(StreamingResponse):
    """Event stream that tears its request context down however the stream ends."""

    def __init__(self, content: Any, context: RequestContext, **kwargs):
        super().__init__(content, **kwargs)
        self.context = context

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.context.aclose()


@router.post("/mcp", tags=["MCP"])
async def mcp_post(
    request: Request,
    tenant_id: Optional[str] = Depends(get_tenant_id),
    dispatcher: RequestDispatcher = Depends(get_dispatcher),
):
    """
    Handle one JSON-RPC message or batch for the tenant named in the header.

    Answers 202 when the body holds only notifications.
    """
    context = open_context(dispatcher, tenant_id, "POST")
    watcher: Optional[asyncio.Task] = None
    try:
        try:
            payload = await request.json()
        except ValueError:
            mcp_requests_total.labels(method="POST", outcome="bad_request").inc()
            return JSONResponse(status_code=400, content=jsonrpc_error(None, PARSE_ERROR, "Parse error"))

        is_batch = isinstance(payload, list)
        messages = payload if is_batch else [payload]
        if not messages:
            mcp_requests_total.labels(method="POST", outcome="bad_request").inc()
            return JSONResponse(
                status_code=400,
                content=jsonrpc_error(None, INVALID_REQUEST, "Invalid Request: empty batch"),
            )

        # The body is fully read, so polling for disconnect no longer competes for it
        watcher = asyncio.create_task(
            close_on_disconnect(request, context, config.DISCONNECT_POLL_SECONDS)
        )

        replies: List[Dict[str, Any]] = []
        for message in messages:
            reply = await context.session.handle_message(message)
            if reply is not None:
                replies.append(reply)

        if not replies:
            mcp_requests_total.labels(method="POST", outcome="served").inc()
            return Response(status_code=202)

        if is_batch:
            mcp_requests_total.labels(method="POST", outcome="served").inc()
            return JSONResponse(content=replies)

        reply = replies[0]
        if reply.get("error", {}).get("code") == INVALID_REQUEST:
            mcp_requests_total.labels(method="POST", outcome="bad_request").inc()
            return JSONResponse(status_code=400, content=reply)

        mcp_requests_total.labels(method="POST", outcome="served").inc()
        return JSONResponse(content=reply)
    finally:
        if watcher is not None:
            watcher.cancel()
        await context.aclose()


@router.get("/mcp", tags=["MCP"])
async def mcp_get(
    tenant_id: Optional[str] = Depends(get_tenant_id),
    dispatcher: RequestDispatcher = Depends(get_dispatcher),
):
    """Open a server-to-client event stream for the tenant named in the header."""
    context = open_context(dispatcher, tenant_id, "GET")
    mcp_requests_total.labels(method="GET", outcome="served").inc()
    return ContextStreamingResponse(
        event_stream(context, config.SSE_HEARTBEAT_SECONDS),
        context=context,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
