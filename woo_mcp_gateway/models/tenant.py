"""Tenant record model for the static tenant directory."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class TenantRecord(BaseModel):
    """Upstream connection credentials for one store.

    Accepts both the current keys (tenantId, upstreamBaseUrl, ...) and the
    legacy CLIENTS keys (clientId, storeUrl, consumerKey, consumerSecret).
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    tenant_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("tenantId", "clientId", "tenant_id"),
        description="Opaque tenant identifier sent in the tenant header",
    )
    upstream_base_url: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("upstreamBaseUrl", "storeUrl", "upstream_base_url"),
        description="Store root URL, e.g. https://shop.example",
    )
    upstream_key: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("upstreamKey", "consumerKey", "upstream_key"),
    )
    upstream_secret: str = Field(
        ...,
        min_length=1,
        repr=False,
        validation_alias=AliasChoices("upstreamSecret", "consumerSecret", "upstream_secret"),
    )
    checkout_path: str = Field(
        default="checkout",
        validation_alias=AliasChoices("checkoutPath", "checkout_path"),
        description="Store checkout page slug used for payment links",
    )

    @field_validator("upstream_base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("upstream base URL must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("checkout_path")
    @classmethod
    def _strip_checkout_path(cls, value: str) -> str:
        return value.strip("/") or "checkout"
