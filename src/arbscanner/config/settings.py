"""
Application settings with environment variable support.

Uses Pydantic Settings for type-safe configuration with automatic
environment variable loading and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from arbscanner.config.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_INITIAL_QUOTE_BALANCE,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_UPDATE_PERIOD,
    ENDPOINT_WS,
    MAX_PAGE_LIMIT,
    MAX_UPDATE_PERIOD,
    MIN_UPDATE_PERIOD,
    WATCH_MAX_VOLUME,
    WATCH_MIN_PROFIT,
    WATCH_MIN_VOLUME,
    WATCH_REPORT_INTERVAL,
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables
    prefixed with SCANNER_ (e.g. SCANNER_PORT=9000).
    """

    model_config = SettingsConfigDict(
        env_prefix="SCANNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Server
    # =========================================================================

    host: str = Field(
        default="0.0.0.0",
        description="Interface the API server binds to",
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port the API server listens on",
    )

    # =========================================================================
    # Query Configuration
    # =========================================================================

    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        le=10_000,
        description="Number of opportunities generated per query",
    )

    default_page_limit: int = Field(
        default=DEFAULT_PAGE_LIMIT,
        ge=1,
        description="Page size used when the client sends none",
    )

    max_page_limit: int = Field(
        default=MAX_PAGE_LIMIT,
        ge=1,
        description="Largest page size a client may request",
    )

    # =========================================================================
    # Broadcast Configuration
    # =========================================================================

    default_update_period: float = Field(
        default=DEFAULT_UPDATE_PERIOD,
        gt=0.0,
        description="Seconds between price broadcasts for a new connection",
    )

    min_update_period: float = Field(
        default=MIN_UPDATE_PERIOD,
        gt=0.0,
        description="Shortest period a client may request",
    )

    max_update_period: float = Field(
        default=MAX_UPDATE_PERIOD,
        gt=0.0,
        description="Longest period a client may request",
    )

    random_seed: int | None = Field(
        default=None,
        description="Seed for the market simulation (None = nondeterministic)",
    )

    # =========================================================================
    # Ledger
    # =========================================================================

    initial_quote_balance: float = Field(
        default=DEFAULT_INITIAL_QUOTE_BALANCE,
        gt=0.0,
        description="Starting USDT balance on every exchange",
    )

    # =========================================================================
    # Client
    # =========================================================================

    server_url: str = Field(
        default="http://localhost:8000",
        description="Base URL the watcher client talks to",
    )

    watch_min_volume: float | None = Field(
        default=WATCH_MIN_VOLUME,
        ge=0.0,
        description="Watcher filter: minimum volume (0 or unset = unconstrained)",
    )

    watch_max_volume: float | None = Field(
        default=WATCH_MAX_VOLUME,
        ge=0.0,
        description="Watcher filter: maximum volume",
    )

    watch_min_profit: float | None = Field(
        default=WATCH_MIN_PROFIT,
        ge=0.0,
        description="Watcher filter: minimum profit",
    )

    watch_update_period: float | None = Field(
        default=None,
        gt=0.0,
        description="Broadcast period the watcher requests (None = server default)",
    )

    watch_report_interval: float = Field(
        default=WATCH_REPORT_INTERVAL,
        gt=0.0,
        description="Seconds between watcher summary lines",
    )

    # =========================================================================
    # Operation Mode
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional file that receives all log records",
    )

    use_uvloop: bool = Field(
        default=True,
        description="Use uvloop for improved async performance",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("server_url", mode="after")
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        """Require an http(s) URL without a trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("server_url must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_bounds(self) -> "Settings":
        """Ensure period and page bounds are consistent."""
        if self.min_update_period > self.max_update_period:
            raise ValueError("min_update_period must not exceed max_update_period")
        if not self.min_update_period <= self.default_update_period <= self.max_update_period:
            raise ValueError("default_update_period must lie within the period bounds")
        if self.default_page_limit > self.max_page_limit:
            raise ValueError("default_page_limit must not exceed max_page_limit")
        return self

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def ws_url(self) -> str:
        """WebSocket URL derived from the server URL."""
        scheme, rest = self.server_url.split("://", 1)
        ws_scheme = "wss" if scheme == "https" else "ws"
        return f"{ws_scheme}://{rest}{ENDPOINT_WS}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return Settings()
