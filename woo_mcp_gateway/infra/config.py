"""Configuration management for the gateway process."""

import os
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
# This ensures dotenv works regardless of where the script is run from
project_root = Path(__file__).parent.parent.parent
env_file = project_root / ".env"

# override=False means existing environment variables take precedence
load_dotenv(dotenv_path=env_file, override=False)


class Config:
    """Application configuration read from the environment."""
    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    PORT: int = int(os.getenv("PORT", "3000"))
    SERVER_NAME: str = os.getenv("SERVER_NAME", "woo-mcp-gateway")
    SERVER_VERSION: str = os.getenv("SERVER_VERSION", "1.0.0")

    # Tenant directory: JSON list of tenant records.
    # CLIENTS is the legacy variable name and is only read when TENANTS is unset.
    TENANTS: Optional[str] = os.getenv("TENANTS") or os.getenv("CLIENTS")
    TENANTS_FILE: Optional[str] = os.getenv("TENANTS_FILE")
    TENANT_HEADER: str = os.getenv("TENANT_HEADER", "X-Client-ID")

    # Upstream WooCommerce REST API
    WOO_API_VERSION: str = os.getenv("WOO_API_VERSION", "wc/v3")
    UPSTREAM_TIMEOUT: float = float(os.getenv("UPSTREAM_TIMEOUT", "30"))

    # Transport
    SSE_HEARTBEAT_SECONDS: float = float(os.getenv("SSE_HEARTBEAT_SECONDS", "15"))
    DISCONNECT_POLL_SECONDS: float = float(os.getenv("DISCONNECT_POLL_SECONDS", "0.5"))


config = Config()


def load_tenant_blob(cfg: Config = config) -> str:
    """
    Return the serialized tenant directory from configuration.

    TENANTS_FILE wins over the inline TENANTS/CLIENTS variable.

    Raises:
        TenantConfigError: If nothing is configured or the file cannot be read
    """
    from woo_mcp_gateway.infra.error_handler import TenantConfigError

    if cfg.TENANTS_FILE:
        try:
            return Path(cfg.TENANTS_FILE).read_text(encoding="utf-8")
        except OSError as e:
            raise TenantConfigError(f"Cannot read tenant file {cfg.TENANTS_FILE}: {e}") from e

    if not cfg.TENANTS:
        raise TenantConfigError("No tenant configuration found. Set TENANTS (or TENANTS_FILE).")

    return cfg.TENANTS
