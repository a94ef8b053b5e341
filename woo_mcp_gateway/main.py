"""FastAPI application exposing WooCommerce tools over MCP to many stores."""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from woo_mcp_gateway.adapters.woo_client import create_woo_client
from woo_mcp_gateway.infra.config import config, load_tenant_blob
from woo_mcp_gateway.infra.logging import app_logger
from woo_mcp_gateway.infra.middleware import RequestIDMiddleware, RequestLoggingMiddleware, setup_cors
from woo_mcp_gateway.services.request_dispatcher import ClientFactory, RequestDispatcher
from woo_mcp_gateway.services.tenant_directory import TenantDirectory
from woo_mcp_gateway.services.tool_registry import ToolRegistry
from woo_mcp_gateway.tools import ALL_TOOLS


def create_app(
    tenant_directory: Optional[TenantDirectory] = None,
    client_factory: Optional[ClientFactory] = None,
    registry: Optional[ToolRegistry] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        tenant_directory: Preloaded directory; when omitted it is read from
            configuration at startup and startup fails if that is invalid
        client_factory: Upstream client factory (defaults to WooClient)
        registry: Tool registry (defaults to every built-in tool)
    """
    registry = registry or ToolRegistry(ALL_TOOLS)
    client_factory = client_factory or create_woo_client

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_logger.info("Application starting up")
        if getattr(app.state, "dispatcher", None) is None:
            # TenantConfigError propagates and aborts startup
            directory = TenantDirectory.from_json(load_tenant_blob())
            app.state.dispatcher = RequestDispatcher(directory, registry, client_factory)
        app_logger.info(
            "Gateway ready",
            extra={
                "tenant_count": len(app.state.dispatcher.directory),
                "tool_count": len(registry),
            },
        )

        yield

        app_logger.info("Application shutting down")

    app = FastAPI(
        title="WooCommerce MCP Gateway",
        description=(
            "Multi-tenant MCP server exposing WooCommerce store operations as tools. "
            f"Every request names its store in the `{config.TENANT_HEADER}` header."
        ),
        version=config.SERVER_VERSION,
        lifespan=lifespan,
        tags_metadata=[
            {"name": "MCP", "description": "Model Context Protocol streamable-HTTP endpoint"},
            {"name": "Health", "description": "Health check and monitoring endpoints"},
        ],
    )
    app.state.dispatcher = None
    if tenant_directory is not None:
        app.state.dispatcher = RequestDispatcher(tenant_directory, registry, client_factory)

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    setup_cors(app)

    from woo_mcp_gateway.api.routers import health, mcp

    app.include_router(health.router)
    app.include_router(mcp.router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        return JSONResponse(status_code=422, content={"detail": exc.errors()})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        error_id = str(uuid.uuid4())
        app_logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"error_id": error_id})
        return JSONResponse(
            status_code=500,
            content={"detail": f"Internal server error. Error ID: {error_id}"},
        )

    return app


def main():
    """Console entry point: serve the gateway with uvicorn."""
    import uvicorn

    uvicorn.run(
        "woo_mcp_gateway.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=config.PORT,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )


if __name__ == "__main__":
    main()
