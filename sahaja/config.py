"""Client settings loaded from environment variables via pydantic-settings."""

from enum import StrEnum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class LogFormat(StrEnum):
    json = "json"
    console = "console"


class Settings(BaseSettings):
    """Central configuration — all values sourced from env vars or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── Remote API ──────────────────────────────────────────────────────────
    api_base_url: str = "http://localhost:3000"
    api_prefix: str = "/api/V1"

    # ── Timeouts ────────────────────────────────────────────────────────────
    request_timeout_seconds: float = 15.0
    farmer_lookup_timeout_seconds: float = 12.0
    summary_timeout_seconds: float = 10.0

    # ── Response cache ──────────────────────────────────────────────────────
    cache_ttl_seconds: float = 300.0

    # ── Queries ─────────────────────────────────────────────────────────────
    escalation_min_age_seconds: float = 120.0

    # ── Redis (optional dashboard snapshots) ────────────────────────────────
    redis_url: str = ""

    # ── Observability ───────────────────────────────────────────────────────
    log_level: str = "info"
    log_format: LogFormat = LogFormat.json

    @property
    def api_root(self) -> str:
        return f"{self.api_base_url.rstrip('/')}{self.api_prefix}"


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance (cached after first call)."""
    return Settings()
