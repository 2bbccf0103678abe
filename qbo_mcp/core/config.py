"""Application configuration using Pydantic Settings."""

from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "QuickBooks Online MCP Server"
    debug: bool = False
    log_level: str = "INFO"

    # MCP transport
    mcp_transport: Literal["stdio", "http"] = "stdio"
    mcp_http_host: str = "0.0.0.0"
    mcp_http_port: int = 8080

    # Credential policy: "env" reads QBO_* variables once, "gateway" reads
    # X-Qbo-* headers on every call
    auth_mode: Literal["env", "gateway"] = "env"

    # Fixed credentials (env mode only)
    qbo_access_token: Optional[str] = None
    qbo_realm_id: Optional[str] = None

    # QuickBooks Online API
    qbo_api_base: str = "https://quickbooks.api.intuit.com/v3/company"
    qbo_minor_version: str = "73"
    qbo_request_timeout: float = 30.0  # seconds


# Create settings instance
settings = Settings()
