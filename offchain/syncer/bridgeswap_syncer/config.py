"""
Configuration for the bridge swap syncer.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Syncer configuration settings.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # API Server
    host: str = Field(
        default="127.0.0.1",
        description="API host (127.0.0.1 for local only, 0.0.0.0 for external - REQUIRES API_TOKEN)",
        alias="HOST",
    )
    port: int = Field(
        default=8000,
        description="API port (Railway sets PORT automatically)",
        validation_alias="PORT",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Authentication
    api_token: Optional[str] = Field(
        default=None,
        description="API token for authentication (REQUIRED for non-local/production use)"
    )
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="CORS allowed origins"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./bridge_swaps.db",
        description="SQLAlchemy database URL (sqlite or postgresql)",
        alias="DATABASE_URL",
    )

    # Indexers / upstream services
    btc_indexer_url: str = Field(
        default="https://blockstream.info/api",
        description="Esplora-compatible Bitcoin indexer",
    )
    evm_bridge_indexer_url: str = Field(
        default="https://lightning.space/v1/claim",
        description="GraphQL endpoint of the EVM lockup indexer",
    )
    swap_status_url: str = Field(
        default="https://lightning.space/v1/swap",
        description="Upstream swap service (LDS) base URL",
    )
    http_timeout: float = Field(default=20.0, description="HTTP timeout in seconds")
    status_chunk_size: int = Field(
        default=64,
        gt=0,
        description="Max swap ids per upstream status request",
    )

    # EVM RPC endpoints, e.g. EVM_RPC_URLS='{"4114": "https://rpc.mainnet.citrea.xyz"}'
    evm_rpc_urls: dict[int, str] = Field(
        default_factory=dict,
        description="EVM RPC URL per chain id (JSON object)",
    )
    block_height_cache_seconds: float = Field(
        default=5.0,
        ge=0,
        description="How long a fetched block height is reused",
    )

    # Periodic syncing (CLI `run`)
    sync_interval_seconds: int = Field(default=60, description="Seconds between sync cycles")
    watched_users: str = Field(
        default="",
        description="Comma-separated user addresses synced by `run`",
    )

    def watched_user_list(self) -> list[str]:
        return [u.strip().lower() for u in self.watched_users.split(",") if u.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
