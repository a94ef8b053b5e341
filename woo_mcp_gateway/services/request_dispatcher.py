"""Per-request tenant resolution, session binding and teardown."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Set, Union

from woo_mcp_gateway.infra.metrics import active_request_contexts
from woo_mcp_gateway.models.tenant import TenantRecord
from woo_mcp_gateway.services.mcp_session import McpSession
from woo_mcp_gateway.services.tenant_directory import TenantDirectory
from woo_mcp_gateway.services.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

ClientFactory = Callable[[TenantRecord], Any]
TeardownCallback = Callable[[], Awaitable[None]]

# Strong references to running teardowns so they are not collected mid-flight
_pending_teardowns: Set["asyncio.Task[None]"] = set()

# Longest tenant id echoed back in errors and logs
MAX_ECHOED_TENANT_ID = 64


def _shorten(tenant_id: str) -> str:
    if len(tenant_id) <= MAX_ECHOED_TENANT_ID:
        return tenant_id
    return f"{tenant_id[:MAX_ECHOED_TENANT_ID]}..."


class InFlightCalls:
    """Counts tool invocations still running against a request's upstream client."""

    def __init__(self):
        self._count = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def count(self) -> int:
        return self._count

    def enter(self) -> None:
        self._count += 1
        self._idle.clear()

    def leave(self) -> None:
        self._count -= 1
        if self._count == 0:
            self._idle.set()

    async def wait_idle(self) -> None:
        await self._idle.wait()


class DispatchState(str, Enum):
    """Lifecycle of one inbound request."""
    IDLE = "idle"
    TENANT_RESOLVING = "tenant_resolving"
    SESSION_ACTIVE = "session_active"
    CLOSING = "closing"
    CLOSED = "closed"


class DispatchFaultKind(str, Enum):
    MISSING_TENANT = "missing_tenant"
    UNKNOWN_TENANT = "unknown_tenant"


@dataclass(frozen=True)
class DispatchFault:
    """Explicit outcome for a request that never reaches SESSION_ACTIVE."""
    kind: DispatchFaultKind
    message: str

    @property
    def status_code(self) -> int:
        return 400 if self.kind == DispatchFaultKind.MISSING_TENANT else 404


@dataclass(eq=False)
class RequestContext:
    """Everything one inbound request owns: its tenant, client and session.

    Never shared between requests. ``aclose`` is the teardown hook; it runs
    its body once no matter how many times it is called.
    """
    tenant_id: str
    tenant: TenantRecord
    upstream_client: Any
    session: McpSession
    state: DispatchState = DispatchState.SESSION_ACTIVE
    in_flight: InFlightCalls = field(default_factory=InFlightCalls, repr=False)
    _teardown_callbacks: List[TeardownCallback] = field(default_factory=list, repr=False)
    _teardown: Optional["asyncio.Task[None]"] = field(default=None, repr=False)

    @property
    def is_active(self) -> bool:
        return self.state == DispatchState.SESSION_ACTIVE

    def on_close(self, callback: TeardownCallback) -> None:
        """Register an extra coroutine to run during teardown."""
        self._teardown_callbacks.append(callback)

    async def aclose(self) -> None:
        """
        Tear the context down. Safe to call any number of times, concurrently.

        Every caller waits for the same teardown; cancelling a caller does not
        interrupt the teardown itself.
        """
        if self._teardown is None:
            self._teardown = asyncio.ensure_future(self._run_teardown())
            _pending_teardowns.add(self._teardown)
            self._teardown.add_done_callback(_pending_teardowns.discard)
        await asyncio.shield(self._teardown)

    async def _run_teardown(self) -> None:
        self.state = DispatchState.CLOSING
        try:
            self.session.close()
            for callback in self._teardown_callbacks:
                try:
                    await callback()
                except Exception as e:
                    logger.error(
                        f"Teardown callback failed: {e}",
                        extra={"tenant_id": self.tenant_id},
                        exc_info=True,
                    )
            if self.in_flight.count:
                # Running tools keep the client until they finish; their results are dropped
                logger.info(
                    f"Waiting for {self.in_flight.count} tool call(s) before closing upstream client",
                    extra={"tenant_id": self.tenant_id},
                )
                await self.in_flight.wait_idle()
            try:
                await self.upstream_client.aclose()
            except Exception as e:
                logger.error(
                    f"Failed to close upstream client: {e}",
                    extra={"tenant_id": self.tenant_id},
                    exc_info=True,
                )
        finally:
            self.state = DispatchState.CLOSED
            active_request_contexts.dec()
            logger.debug("Request context closed", extra={"tenant_id": self.tenant_id})

    async def __aenter__(self) -> "RequestContext":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class RequestDispatcher:
    """Builds one RequestContext per inbound request.

    The directory and registry are shared, read-only collaborators; the client
    factory is called once per successfully resolved request and never for a
    request that fails tenant resolution.
    """

    def __init__(
        self,
        directory: TenantDirectory,
        registry: ToolRegistry,
        client_factory: ClientFactory,
    ):
        self.directory = directory
        self.registry = registry
        self.client_factory = client_factory

    def open(self, tenant_id: Optional[str]) -> Union[RequestContext, DispatchFault]:
        """
        Resolve the tenant and bind a fresh session and client to this request.

        Args:
            tenant_id: Raw value of the tenant header (None when absent)

        Returns:
            An active RequestContext, or a DispatchFault when the header is
            missing or names an unknown tenant
        """
        state = DispatchState.IDLE
        if tenant_id is None or not tenant_id.strip():
            logger.warning("Request rejected: missing tenant header", extra={"state": state.value})
            return DispatchFault(DispatchFaultKind.MISSING_TENANT, "Missing tenant header")

        state = DispatchState.TENANT_RESOLVING
        tenant = self.directory.resolve(tenant_id)
        if tenant is None:
            logger.warning(
                f"Tenant not found: {_shorten(tenant_id)}",
                extra={"tenant_id": _shorten(tenant_id), "state": state.value},
            )
            return DispatchFault(DispatchFaultKind.UNKNOWN_TENANT, f"Tenant not found: {_shorten(tenant_id)}")

        client = self.client_factory(tenant)
        registry = self.registry
        in_flight = InFlightCalls()

        async def call_tool(name: str, arguments: Any):
            in_flight.enter()
            try:
                return await registry.invoke(name, client, arguments)
            finally:
                in_flight.leave()

        session = McpSession(
            tenant_id=tenant.tenant_id,
            list_tools=registry.list,
            call_tool=call_tool,
        )
        context = RequestContext(
            tenant_id=tenant.tenant_id,
            tenant=tenant,
            upstream_client=client,
            session=session,
            in_flight=in_flight,
        )
        active_request_contexts.inc()
        logger.info(
            "Tenant authenticated",
            extra={"tenant_id": tenant.tenant_id, "state": context.state.value},
        )
        return context
