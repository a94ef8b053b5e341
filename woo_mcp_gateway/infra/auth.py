"""Tenant identification for inbound requests."""

from typing import Optional

from fastapi import Request, Security
from fastapi.security import APIKeyHeader

from woo_mcp_gateway.infra.config import config

# Missing headers are reported by the dispatcher, not by FastAPI
tenant_header = APIKeyHeader(
    name=config.TENANT_HEADER,
    auto_error=False,
    description="Identifier of the store this request acts on.",
)


async def get_tenant_id(tenant_id: Optional[str] = Security(tenant_header)) -> Optional[str]:
    """Raw tenant header value, or None when the header is absent."""
    return tenant_id


def get_dispatcher(request: Request):
    """The RequestDispatcher built at startup."""
    return request.app.state.dispatcher
