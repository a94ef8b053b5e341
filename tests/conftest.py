"""Pytest configuration and fixtures."""

import os
from typing import Any, Dict, List, Optional, Tuple

import pytest
from dotenv import load_dotenv

# Load test environment variables
load_dotenv()

# Set test environment
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")

from woo_mcp_gateway.adapters.woo_client import UpstreamResponse  # noqa: E402
from woo_mcp_gateway.infra.error_handler import UpstreamError  # noqa: E402
from woo_mcp_gateway.models.tenant import TenantRecord  # noqa: E402
from woo_mcp_gateway.services.tenant_directory import TenantDirectory  # noqa: E402
from woo_mcp_gateway.services.tool_registry import ToolRegistry  # noqa: E402
from woo_mcp_gateway.tools import ALL_TOOLS  # noqa: E402


class FakeWooClient:
    """In-memory stand-in for WooClient.

    ``routes`` maps (METHOD, path) to a payload, or to an exception instance
    that is raised instead. Every call is recorded.
    """

    def __init__(self, tenant: Optional[TenantRecord] = None, routes: Optional[Dict[Tuple[str, str], Any]] = None):
        self.tenant = tenant
        self.store_url = tenant.upstream_base_url if tenant else "https://shop.example"
        self.checkout_path = tenant.checkout_path if tenant else "checkout"
        self.routes = dict(routes or {})
        self.calls: List[Tuple[str, str, Any]] = []
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    async def _handle(self, method: str, path: str, payload: Any) -> UpstreamResponse:
        self.calls.append((method, path, payload))
        outcome = self.routes.get((method, path))
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None and (method, path) not in self.routes:
            raise UpstreamError(f"No route for {method} {path}", status_code=404)
        return UpstreamResponse(data=outcome)

    async def get(self, path, params=None):
        return await self._handle("GET", path, params)

    async def post(self, path, body=None):
        return await self._handle("POST", path, body)

    async def put(self, path, body=None):
        return await self._handle("PUT", path, body)

    async def delete(self, path, params=None):
        return await self._handle("DELETE", path, params)

    async def aclose(self):
        self.close_count += 1


class RecordingFactory:
    """Client factory that remembers every client it built."""

    def __init__(self, routes_by_tenant: Optional[Dict[str, Dict[Tuple[str, str], Any]]] = None):
        self.routes_by_tenant = routes_by_tenant or {}
        self.clients: List[FakeWooClient] = []

    @property
    def call_count(self) -> int:
        return len(self.clients)

    def __call__(self, tenant: TenantRecord) -> FakeWooClient:
        client = FakeWooClient(tenant, self.routes_by_tenant.get(tenant.tenant_id))
        self.clients.append(client)
        return client


@pytest.fixture
def tenant_records():
    """Two stores with distinct credentials."""
    return [
        {
            "tenantId": "t1",
            "upstreamBaseUrl": "https://shop-one.example",
            "upstreamKey": "ck_one",
            "upstreamSecret": "cs_one",
        },
        {
            "clientId": "t2",
            "storeUrl": "https://shop-two.example/",
            "consumerKey": "ck_two",
            "consumerSecret": "cs_two",
            "checkoutPath": "/finalizar-compra/",
        },
    ]


@pytest.fixture
def tenant_directory(tenant_records):
    return TenantDirectory.from_records(tenant_records)


@pytest.fixture
def registry():
    return ToolRegistry(ALL_TOOLS)


@pytest.fixture
def fake_client():
    return FakeWooClient()


@pytest.fixture
def products_routes():
    """Per-tenant product catalogues, so isolation is observable."""
    return {
        "t1": {
            ("GET", "products"): [
                {"id": 1, "name": "Shirt", "price": "20", "permalink": "https://shop-one.example/p/1", "sku": "S1"},
            ],
        },
        "t2": {
            ("GET", "products"): [
                {"id": 2, "name": "Cap", "price": "10", "permalink": "https://shop-two.example/p/2", "sku": "C2"},
            ],
        },
    }


@pytest.fixture
def client_factory(products_routes):
    return RecordingFactory(products_routes)
