"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``HYETAEK_`` prefix; upstream credentials and logging
settings use their canonical environment variable names via
``validation_alias``.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_DATA_DIR = Path(__file__).resolve().parents[1] / "data"


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the Hyetaek pipeline.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``HYETAEK_``; the upstream API key
    and logging keys use their standard names (configured via
    ``validation_alias``).
    """

    model_config = SettingsConfigDict(
        env_prefix="HYETAEK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"
    data_dir: Path = _DEFAULT_DATA_DIR

    # ── Upstream source API (행정안전부 공공서비스 정보) ─────────────────
    public_data_api_key: str | None = Field(default=None, validation_alias="PUBLIC_DATA_API_KEY")
    public_data_base_url: str = "https://api.odcloud.kr/api/gov24/v3/serviceList"
    public_data_per_page: int = Field(default=100, ge=1, le=1000)
    public_data_page_delay: float = 0.1  # seconds between page requests

    # ── Detail crawler (gov.kr) ────────────────────────────────────────
    detail_base_url: str = "https://www.gov.kr/portal/rcvfvrSvc/dtlEx"
    crawl_delay_seconds: float = Field(default=0.5, ge=0.0)
    crawl_checkpoint_every: int = Field(default=100, ge=1)
    crawl_retry_attempts: int = Field(default=2, ge=1)
    http_timeout_seconds: float = 30.0

    # ── Enrichment ─────────────────────────────────────────────────────
    summary_max_length: int = Field(default=50, ge=1)

    # ── Catalog ────────────────────────────────────────────────────────
    # Record ids left out of listings (JSON list in the environment).
    hidden_benefit_ids: list[str] = Field(default_factory=list)

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")
    cors_origins: str = ""  # comma-separated, production only

    # ── Admin API Key ──────────────────────────────────────────────────
    admin_api_key: str = Field(default="", validation_alias="ADMIN_API_KEY")

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Scheduling ─────────────────────────────────────────────────────
    ingestion_interval_hours: int = 24
    enable_auto_ingestion: bool = False

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# Module-level singleton -- import ``settings`` everywhere.
settings = Settings()
