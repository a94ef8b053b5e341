"""Health check API router."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from woo_mcp_gateway.infra.config import config
from woo_mcp_gateway.infra.metrics import get_metrics_response

router = APIRouter()


@router.get("/", tags=["Health"])
async def root():
    """Service banner."""
    return {
        "status": "ok",
        "service": config.SERVER_NAME,
        "transport": "streamable-http",
        "endpoint": "/mcp",
    }


@router.get("/health", tags=["Health"])
async def health_check():
    """Combined health check endpoint."""
    return {
        "status": "ok",
        "service": config.SERVER_NAME,
        "version": config.SERVER_VERSION,
    }


@router.get("/health/live", tags=["Health"])
async def liveness_probe():
    """Liveness probe - indicates if the process is running."""
    return {"status": "alive"}


@router.get("/health/ready", tags=["Health"])
async def readiness_probe(request: Request):
    """Readiness probe - checks that the tenant directory is loaded."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        return JSONResponse(status_code=503, content={"status": "not_ready"})
    return {"status": "ready", "tenants": len(dispatcher.directory)}


@router.get("/metrics", tags=["Health"])
async def metrics():
    """Prometheus metrics endpoint."""
    return get_metrics_response()
