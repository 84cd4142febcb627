"""
Settings for the API and worker processes.

Values come from the environment or a local .env file. Both processes
import the same `config` instance, so a deployment only has to agree on
one set of variables (the job store location above all).
"""

import sys
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


TRUTHY = frozenset({"true", "1", "yes", "on"})


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class AppConfig(BaseSettings):
    """Typed view of the service environment, validated on import."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===== Generation (LLM) =====
    ANTHROPIC_API_KEY: str | None = Field(
        default=None,
        description="Anthropic API key for Claude (required by the worker)"
    )

    MODEL_NAME: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for both suggestion analysis and test synthesis"
    )

    TEMPERATURE: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature; low so repeated requests give similar tests"
    )

    MAX_TOKENS: int = Field(
        default=4096,
        ge=100,
        le=16000,
        description="Response token cap per generator call"
    )

    GENERATION_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        ge=0.0,
        description="Upper bound on a single generator call. 0 disables the timeout."
    )

    # ===== Job Store =====
    JOB_STORE_BACKEND: Literal["redis", "sqlite"] = Field(
        default="redis",
        description="Job store implementation: redis (shared, multi-host) or sqlite (single host / dev)"
    )

    REDIS_URL: str | None = Field(
        default=None,
        description="Redis URL (redis:// or rediss://) for the redis job store"
    )

    REDIS_KEY_PREFIX: str = Field(
        default="testgen",
        description="Namespace prefix for every key the job store writes"
    )

    SQLITE_JOB_DB_PATH: str = Field(
        default="./generation_jobs.db",
        description="Path to the SQLite job database (sqlite backend only)"
    )

    RESULT_TTL_SECONDS: int = Field(
        default=86400,
        ge=1,
        description="How long completed jobs stay queryable (24 hours)"
    )

    FAILURE_TTL_SECONDS: int = Field(
        default=604800,
        ge=1,
        description="How long failed jobs stay queryable (7 days)"
    )

    RETENTION_SWEEP_SECONDS: int = Field(
        default=3600,
        ge=10,
        description="Interval between expired-job sweeps on stores that need one"
    )

    # ===== Worker =====
    WORKER_POLL_INTERVAL: float = Field(
        default=2.0,
        gt=0.0,
        le=60.0,
        description="Seconds a worker sleeps when every subscribed queue is empty"
    )

    WORKER_CONCURRENCY: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Number of independent claim loops per worker process"
    )

    # ===== Service =====
    ENVIRONMENT: str = Field(
        default="development",
        description="Deployment name reported at startup (development, staging, production)"
    )

    DEBUG: bool = Field(
        default=False,
        description="Expose exception details in 500 responses"
    )

    DEV_MODE: bool = Field(
        default=True,
        description="Dev mode: admin routes are open when no API keys are configured"
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Threshold for the testgen.* loggers"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Bind address for `python -m testgen.api.main`"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1024,
        le=65535,
        description="Bind port for `python -m testgen.api.main`"
    )

    APP_BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Public base URL of the API (CORS fallback in production)"
    )

    # ===== Admin access =====
    API_KEYS: str | None = Field(
        default=None,
        description="Comma-separated admin API keys"
    )

    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated CORS origins; '*' is honoured only in dev mode"
    )

    RATE_LIMIT_PER_MINUTE: int = Field(
        default=60,
        ge=0,
        le=1000,
        description="Max admin requests per minute per API key (0 = unlimited)"
    )

    @field_validator("DEBUG", "DEV_MODE", mode="before")
    @classmethod
    def parse_flag(cls, v):
        """Platform env vars arrive as strings such as "1" or "off"."""
        if isinstance(v, str):
            return v.strip().lower() in TRUTHY
        return bool(v)

    @property
    def api_keys_list(self) -> list[str]:
        return _split_csv(self.API_KEYS)

    @property
    def allowed_origins_list(self) -> list[str]:
        origins = _split_csv(self.ALLOWED_ORIGINS)
        if origins != ["*"] or self.DEV_MODE:
            return origins
        print(
            f"WARNING: ALLOWED_ORIGINS='*' ignored outside dev mode; allowing {self.APP_BASE_URL} only",
            file=sys.stderr
        )
        return [self.APP_BASE_URL]

    @property
    def auth_required(self) -> bool:
        """Admin routes need a key unless dev mode is on and none are configured."""
        return not self.DEV_MODE or bool(self.api_keys_list)

    @property
    def generation_configured(self) -> bool:
        return self.ANTHROPIC_API_KEY is not None

    @property
    def generation_timeout(self) -> float | None:
        """Generator timeout in seconds, or None when disabled."""
        return self.GENERATION_TIMEOUT_SECONDS or None


config = AppConfig()
