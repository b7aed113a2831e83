"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def _require_positive(name: str, value: float) -> float:
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


class CheckConfig(BaseModel):
    """Worker pool and per-check deadlines (YAML section: check.*)."""

    workers: int = Field(default=8, description="Number of pool workers.")
    queue_size: int = Field(default=10_000, description="Task queue capacity.")
    result_queue_size: int = Field(default=100, description="Result queue capacity.")

    default_timeout_seconds: float = Field(
        default=15.0,
        description="Deadline for one API-based check.",
    )
    heavy_timeout_seconds: float = Field(
        default=30.0,
        description="Deadline for one browser-based check (all stages).",
    )
    long_timeout_seconds: float = Field(
        default=10.0,
        description="Deadline for the navigation stage of a browser check.",
    )
    name_timeout_seconds: float = Field(
        default=3.0,
        description="Deadline for the name-extraction stage of a browser check.",
    )
    heavy_max_concurrent: int = Field(
        default=2,
        description="Max browser-based checks running at once.",
    )

    @field_validator(
        "workers",
        "queue_size",
        "result_queue_size",
        "heavy_max_concurrent",
    )
    @classmethod
    def _validate_counts(cls, v: int, info: Any) -> int:
        return int(_require_positive(info.field_name, v))

    @field_validator(
        "default_timeout_seconds",
        "heavy_timeout_seconds",
        "long_timeout_seconds",
        "name_timeout_seconds",
    )
    @classmethod
    def _validate_timeouts(cls, v: float, info: Any) -> float:
        return _require_positive(info.field_name, v)


class BatchConfig(BaseModel):
    """Chunked submission settings (YAML section: batch.*)."""

    chunk_size: int = Field(default=500, description="URLs submitted per chunk.")
    chunk_pause_seconds: float = Field(
        default=0.5,
        description="Pause between chunks.",
    )
    submit_attempts: int = Field(
        default=5,
        description="Submit attempts before a task is reported as not submitted.",
    )
    submit_backoff_seconds: float = Field(
        default=0.3,
        description="Initial delay between submit attempts (doubles each time).",
    )
    drain_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Upper bound for collecting results. None = unbounded.",
    )

    @field_validator("chunk_size", "submit_attempts")
    @classmethod
    def _validate_counts(cls, v: int, info: Any) -> int:
        return int(_require_positive(info.field_name, v))

    @field_validator("chunk_pause_seconds", "submit_backoff_seconds")
    @classmethod
    def _validate_delays(cls, v: float, info: Any) -> float:
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/check/batch/playwright/logging/api).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="sharesniffer", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP client (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=5.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Per-request HTTP timeout in seconds.",
    )
    http_max_connections: int = Field(
        default=100,
        validation_alias=AliasChoices(
            "http_max_connections",
            AliasPath("http", "max_connections"),
        ),
        description="Connection pool size shared by all checkers.",
    )
    http_max_keepalive_connections: int = Field(
        default=20,
        validation_alias=AliasChoices(
            "http_max_keepalive_connections",
            AliasPath("http", "max_keepalive_connections"),
        ),
        description="Idle keep-alive connections kept in the pool.",
    )
    http_keepalive_expiry_seconds: float = Field(
        default=90.0,
        validation_alias=AliasChoices(
            "http_keepalive_expiry_seconds",
            AliasPath("http", "keepalive_expiry_seconds"),
        ),
        description="Idle connection lifetime.",
    )
    http_retry_count: int = Field(
        default=1,
        validation_alias=AliasChoices(
            "http_retry_count",
            AliasPath("http", "retry_count"),
        ),
        description="Retries after the first attempt.",
    )
    http_backoff_seconds: float = Field(
        default=1.0,
        validation_alias=AliasChoices(
            "http_backoff_seconds",
            AliasPath("http", "backoff_seconds"),
        ),
        description="Backoff unit; retry n waits n * unit.",
    )
    http_user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent for outgoing HTTP requests.",
    )

    # Playwright (YAML section: playwright.*)
    playwright_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "playwright_enabled",
            AliasPath("playwright", "enabled"),
        ),
        description="Register browser-based checkers.",
    )
    playwright_headless: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "playwright_headless",
            AliasPath("playwright", "headless"),
        ),
        description="Run Playwright headless.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # HTTP API (YAML section: api.*)
    api_host: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("api_host", AliasPath("api", "host")),
        description="Bind host for the HTTP API.",
    )
    api_port: int = Field(
        default=60204,
        validation_alias=AliasChoices("api_port", AliasPath("api", "port")),
        description="Bind port for the HTTP API.",
    )
    api_max_batch_urls: int = Field(
        default=10_000,
        validation_alias=AliasChoices(
            "api_max_batch_urls",
            AliasPath("api", "max_batch_urls"),
        ),
        description="Largest URL list accepted by POST /batch.",
    )

    check: CheckConfig = Field(default_factory=CheckConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)

    @field_validator(
        "http_timeout_seconds",
        "http_keepalive_expiry_seconds",
        "http_max_connections",
        "http_max_keepalive_connections",
    )
    @classmethod
    def _validate_http_positive(cls, v: float, info: Any) -> float:
        return _require_positive(info.field_name, v)

    @field_validator("http_retry_count")
    @classmethod
    def _validate_retry_count(cls, v: int) -> int:
        if v < 0:
            raise ValueError("http_retry_count must be >= 0")
        return v

    @field_validator("http_backoff_seconds")
    @classmethod
    def _validate_backoff(cls, v: float) -> float:
        if v < 0:
            raise ValueError("http_backoff_seconds must be >= 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "max_connections": self.http_max_connections,
                "max_keepalive_connections": self.http_max_keepalive_connections,
                "keepalive_expiry_seconds": self.http_keepalive_expiry_seconds,
                "retry_count": self.http_retry_count,
                "backoff_seconds": self.http_backoff_seconds,
                "user_agent": self.http_user_agent,
            },
            "playwright": {
                "enabled": self.playwright_enabled,
                "headless": self.playwright_headless,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "api": {
                "host": self.api_host,
                "port": self.api_port,
                "max_batch_urls": self.api_max_batch_urls,
            },
            "check": self.check.model_dump(),
            "batch": self.batch.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read SHARESNIFFER_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - SHARESNIFFER_HTTP_TIMEOUT_SECONDS
    - SHARESNIFFER_CHECK_WORKERS
    - SHARESNIFFER_CHECK_HEAVY_MAX_CONCURRENT
    - SHARESNIFFER_LOG_LEVEL
    """

    model_config = SettingsConfigDict(
        env_prefix="SHARESNIFFER_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_retry_count: Optional[int] = None
    http_backoff_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None
    http_max_connections: Optional[int] = None
    http_max_keepalive_connections: Optional[int] = None
    http_keepalive_expiry_seconds: Optional[float] = None

    playwright_enabled: Optional[bool] = None
    playwright_headless: Optional[bool] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    api_host: Optional[str] = None
    api_port: Optional[int] = None
    api_max_batch_urls: Optional[int] = None

    check_workers: Optional[int] = None
    check_queue_size: Optional[int] = None
    check_result_queue_size: Optional[int] = None
    check_default_timeout_seconds: Optional[float] = None
    check_heavy_timeout_seconds: Optional[float] = None
    check_long_timeout_seconds: Optional[float] = None
    check_name_timeout_seconds: Optional[float] = None
    check_heavy_max_concurrent: Optional[int] = None

    batch_chunk_size: Optional[int] = None
    batch_chunk_pause_seconds: Optional[float] = None
    batch_submit_attempts: Optional[int] = None
    batch_submit_backoff_seconds: Optional[float] = None
    batch_drain_timeout_seconds: Optional[float] = None

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
