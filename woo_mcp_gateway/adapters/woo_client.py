"""WooCommerce REST API client, one instance per request context."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from woo_mcp_gateway.infra.config import config
from woo_mcp_gateway.infra.error_handler import UpstreamError
from woo_mcp_gateway.infra.metrics import upstream_requests_total
from woo_mcp_gateway.models.tenant import TenantRecord

logger = logging.getLogger(__name__)


@dataclass
class UpstreamResponse:
    """Decoded upstream reply."""
    data: Any
    headers: Mapping[str, str] = field(default_factory=dict)
    status_code: int = 200


class WooClient:
    """Authenticated client for one store's WooCommerce REST API.

    Supports the four verbs the tools need. Construction performs no network
    I/O; the underlying connection pool is opened lazily by httpx and released
    by ``aclose()``.
    """

    def __init__(
        self,
        store_url: str,
        consumer_key: str,
        consumer_secret: str,
        api_version: str = "wc/v3",
        checkout_path: str = "checkout",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store_url = store_url.rstrip("/")
        self.api_url = f"{self.store_url}/wp-json/{api_version.strip('/')}"
        self.checkout_path = checkout_path.strip("/")

        auth = None
        params: Dict[str, str] = {}
        if self.store_url.lower().startswith("https://"):
            auth = httpx.BasicAuth(consumer_key, consumer_secret)
        else:
            # WooCommerce only accepts Basic auth over TLS
            params = {"consumer_key": consumer_key, "consumer_secret": consumer_secret}

        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            auth=auth,
            params=params,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> UpstreamResponse:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, body: Optional[Dict[str, Any]] = None) -> UpstreamResponse:
        return await self._request("POST", path, json=body or {})

    async def put(self, path: str, body: Optional[Dict[str, Any]] = None) -> UpstreamResponse:
        return await self._request("PUT", path, json=body or {})

    async def delete(self, path: str, params: Optional[Dict[str, Any]] = None) -> UpstreamResponse:
        return await self._request("DELETE", path, params=params)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> UpstreamResponse:
        if self._closed:
            raise UpstreamError("Upstream client is closed")

        try:
            response = await self._client.request(
                method,
                path.lstrip("/"),
                params=_encode_params(params),
                json=json,
            )
        except httpx.HTTPError as e:
            upstream_requests_total.labels(method=method, status="network_error").inc()
            logger.warning(
                f"Upstream request failed: {method} {path}: {e}",
                extra={"store_url": self.store_url},
            )
            raise UpstreamError(f"Upstream request failed: {e}") from e

        upstream_requests_total.labels(method=method, status=str(response.status_code)).inc()

        body = _decode_body(response)
        if response.is_error:
            raise UpstreamError(
                _error_message(response.status_code, body),
                status_code=response.status_code,
                body=body,
            )

        return UpstreamResponse(data=body, headers=response.headers, status_code=response.status_code)


def _encode_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Drop unset values and render booleans the way WordPress expects."""
    if not params:
        return None
    encoded: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        encoded[key] = value
    return encoded


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(status_code: int, body: Any) -> str:
    # WooCommerce errors look like {"code": "...", "message": "...", "data": {"status": 404}}
    if isinstance(body, dict) and body.get("message"):
        return f"{body['message']} (HTTP {status_code})"
    return f"Upstream API returned HTTP {status_code}"


def create_woo_client(tenant: TenantRecord) -> WooClient:
    """Upstream client factory: a fresh client bound to one tenant's credentials."""
    return WooClient(
        store_url=tenant.upstream_base_url,
        consumer_key=tenant.upstream_key,
        consumer_secret=tenant.upstream_secret,
        checkout_path=tenant.checkout_path,
        api_version=config.WOO_API_VERSION,
        timeout=config.UPSTREAM_TIMEOUT,
    )
