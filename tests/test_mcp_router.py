"""End-to-end tests for the MCP HTTP endpoint."""

import asyncio
import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel

from woo_mcp_gateway.api.routers.mcp import event_stream, mcp_post
from woo_mcp_gateway.infra.config import config
from woo_mcp_gateway.infra.error_handler import TenantConfigError
from woo_mcp_gateway.main import create_app
from woo_mcp_gateway.models.tool import ToolDescriptor, ToolResult
from woo_mcp_gateway.services.request_dispatcher import DispatchState, RequestDispatcher
from woo_mcp_gateway.services.tool_registry import ToolRegistry

HEADER = "X-Client-ID"


class SlowInput(BaseModel):
    pass


class SlowTool(ToolDescriptor):
    """Blocks until released, so a disconnect can arrive mid-call."""
    name = "slow"
    description = "Waits for the test to release it."
    input_model = SlowInput

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def execute(self, client, args):
        self.started.set()
        await self.release.wait()
        return ToolResult.text("finished")


class DisconnectingRequest:
    """Minimal request whose client goes away on demand."""

    def __init__(self, payload):
        self.payload = payload
        self.gone = False

    async def json(self):
        return self.payload

    async def is_disconnected(self):
        return self.gone


@pytest.fixture
def app(tenant_directory, client_factory):
    return create_app(tenant_directory=tenant_directory, client_factory=client_factory)


@pytest.fixture
def client(app):
    return TestClient(app)


def _rpc(method, params=None, rpc_id=1):
    message = {"jsonrpc": "2.0", "id": rpc_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


class TestMcpPost:
    """Test JSON-RPC over POST /mcp."""

    def test_list_products_for_known_tenant(self, client, client_factory):
        response = client.post(
            "/mcp",
            json=_rpc("tools/call", {"name": "listProducts", "arguments": {}}),
            headers={HEADER: "t1"},
        )

        assert response.status_code == 200
        body = response.json()
        products = json.loads(body["result"]["content"][0]["text"])
        assert products == [
            {"id": 1, "name": "Shirt", "price": "20", "permalink": "https://shop-one.example/p/1"},
        ]
        assert client_factory.call_count == 1
        assert client_factory.clients[0].tenant.tenant_id == "t1"
        assert client_factory.clients[0].close_count == 1

    def test_missing_tenant_header(self, client, client_factory):
        response = client.post("/mcp", json=_rpc("tools/list"))

        assert response.status_code == 400
        assert response.json() == {"detail": f"Missing {HEADER} header"}
        assert client_factory.call_count == 0

    def test_unknown_tenant(self, client, client_factory):
        response = client.post("/mcp", json=_rpc("tools/list"), headers={HEADER: "unknown"})

        assert response.status_code == 404
        assert response.json() == {"detail": "Tenant not found: unknown"}
        assert client_factory.call_count == 0

    def test_long_unknown_tenant_is_not_echoed_in_full(self, client):
        long_id = "a" * 4000
        response = client.post("/mcp", json=_rpc("tools/list"), headers={HEADER: long_id})

        assert response.status_code == 404
        assert long_id not in response.json()["detail"]
        assert len(response.json()["detail"]) < 100

    def test_tools_list_is_the_same_for_every_tenant(self, client, registry):
        names = []
        for tenant_id in ("t1", "t2"):
            response = client.post("/mcp", json=_rpc("tools/list"), headers={HEADER: tenant_id})
            assert response.status_code == 200
            names.append([tool["name"] for tool in response.json()["result"]["tools"]])
        assert names[0] == names[1] == registry.names()

    def test_notifications_only(self, client, client_factory):
        response = client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "method": "notifications/initialized"},
            headers={HEADER: "t1"},
        )

        assert response.status_code == 202
        assert client_factory.clients[0].close_count == 1

    def test_parse_error(self, client, client_factory):
        response = client.post(
            "/mcp",
            content=b"{not json",
            headers={HEADER: "t1", "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700
        assert client_factory.clients[0].close_count == 1

    def test_invalid_request(self, client):
        response = client.post("/mcp", json={"id": 1, "method": "ping"}, headers={HEADER: "t1"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32600

    def test_empty_batch(self, client):
        response = client.post("/mcp", json=[], headers={HEADER: "t1"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32600

    def test_batch(self, client, client_factory):
        response = client.post(
            "/mcp",
            json=[
                _rpc("initialize", {"protocolVersion": "2025-06-18"}, rpc_id=1),
                {"jsonrpc": "2.0", "method": "notifications/initialized"},
                _rpc("tools/call", {"name": "missingTool"}, rpc_id=2),
                _rpc("ping", rpc_id=3),
            ],
            headers={HEADER: "t2"},
        )

        assert response.status_code == 200
        replies = response.json()
        assert [reply["id"] for reply in replies] == [1, 2, 3]
        assert replies[1]["error"]["code"] == -32602
        assert replies[1]["error"]["data"]["kind"] == "unknown_tool"
        assert replies[2]["result"] == {}
        # One context per request, however many messages it carries
        assert client_factory.call_count == 1
        assert client_factory.clients[0].calls == []

    def test_invalid_arguments(self, client, client_factory):
        response = client.post(
            "/mcp",
            json=_rpc("tools/call", {"name": "searchProducts", "arguments": {}}),
            headers={HEADER: "t1"},
        )

        assert response.status_code == 200
        assert response.json()["error"]["code"] == -32602
        assert client_factory.clients[0].calls == []

    def test_request_id_header(self, client):
        response = client.post("/mcp", json=_rpc("ping"), headers={HEADER: "t1", "X-Request-ID": "req-1"})
        assert response.headers["X-Request-ID"] == "req-1"

    @pytest.mark.asyncio
    async def test_disconnect_mid_call_tears_down_and_drops_result(self, tenant_directory, client_factory):
        tool = SlowTool()
        dispatcher = RequestDispatcher(tenant_directory, ToolRegistry([tool]), client_factory)
        opened = []
        open_context = dispatcher.open

        def open_and_record(tenant_id):
            context = open_context(tenant_id)
            opened.append(context)
            return context

        dispatcher.open = open_and_record
        request = DisconnectingRequest(_rpc("tools/call", {"name": "slow", "arguments": {}}))

        with patch.object(config, "DISCONNECT_POLL_SECONDS", 0.01):
            handler = asyncio.create_task(mcp_post(request, tenant_id="t1", dispatcher=dispatcher))
            await asyncio.wait_for(tool.started.wait(), timeout=1)

            request.gone = True
            context = opened[0]
            for _ in range(100):
                if not context.is_active:
                    break
                await asyncio.sleep(0.01)
            assert context.state == DispatchState.CLOSING
            # The running tool still owns the client
            assert context.upstream_client.close_count == 0

            tool.release.set()
            response = await asyncio.wait_for(handler, timeout=1)

        assert response.status_code == 202
        assert context.state == DispatchState.CLOSED
        assert context.upstream_client.close_count == 1
        await asyncio.sleep(0)
        watchers = [
            task for task in asyncio.all_tasks()
            if getattr(task.get_coro(), "__name__", "") == "close_on_disconnect" and not task.done()
        ]
        assert watchers == []


class TestMcpGet:
    """Test the event stream endpoint."""

    def test_missing_tenant_header(self, client, client_factory):
        response = client.get("/mcp")

        assert response.status_code == 400
        assert client_factory.call_count == 0

    def test_unknown_tenant(self, client, client_factory):
        response = client.get("/mcp", headers={HEADER: "nobody"})

        assert response.status_code == 404
        assert client_factory.call_count == 0

    @pytest.mark.asyncio
    async def test_stream_ends_and_tears_down_when_context_closes(self, tenant_directory, registry, client_factory):
        dispatcher = RequestDispatcher(tenant_directory, registry, client_factory)
        context = dispatcher.open("t1")
        stream = event_stream(context, heartbeat_seconds=0.01)

        assert (await stream.__anext__()).startswith(":")
        assert (await stream.__anext__()).startswith(": heartbeat")

        await context.aclose()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        assert context.state == DispatchState.CLOSED
        assert context.upstream_client.close_count == 1

    @pytest.mark.asyncio
    async def test_closing_stream_tears_down(self, tenant_directory, registry, client_factory):
        dispatcher = RequestDispatcher(tenant_directory, registry, client_factory)
        context = dispatcher.open("t1")
        stream = event_stream(context, heartbeat_seconds=10)

        await stream.__anext__()
        await stream.aclose()

        assert context.state == DispatchState.CLOSED
        assert context.upstream_client.close_count == 1


class TestHealth:
    """Test health and metrics endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["endpoint"] == "/mcp"

    def test_ready_reports_tenants(self, client):
        response = client.get("/health/ready")
        assert response.json() == {"status": "ready", "tenants": 2}

    def test_live(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}

    def test_metrics(self, client):
        client.post("/mcp", json=_rpc("ping"), headers={HEADER: "t1"})
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "mcp_requests_total" in response.text


class TestStartup:
    """Test loading the tenant directory from configuration."""

    def test_loads_directory_on_startup(self, tenant_records, client_factory):
        app = create_app(client_factory=client_factory)
        with patch("woo_mcp_gateway.main.load_tenant_blob", return_value=json.dumps(tenant_records)):
            with TestClient(app) as client:
                assert client.get("/health/ready").json()["tenants"] == 2

    def test_invalid_configuration_aborts_startup(self, client_factory):
        app = create_app(client_factory=client_factory)
        with patch("woo_mcp_gateway.main.load_tenant_blob", return_value="[{broken"):
            with pytest.raises(TenantConfigError):
                with TestClient(app):
                    pass

    def test_not_ready_before_startup(self, client_factory):
        app = create_app(client_factory=client_factory)
        response = TestClient(app).get("/health/ready")
        assert response.status_code == 503
