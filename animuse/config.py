"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from typing import Literal

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    # Service settings
    host: str
    port: int
    database_url: str
    admin_token: str | None
    log_level: str

    # Remote source (Convex deployment)
    convex_url: str | None
    convex_deploy_key: str | None
    fetch_limit: int
    fetch_empty_as_error: bool

    # Cache settings
    cache_ttl_hours: int
    cache_schema_version: str
    cache_key_prefix: str

    # Filter worker pool
    filter_workers: int
    filter_task_timeout: float
    filter_pool_mode: Literal["process", "thread", "inline"]

    # Background refresh
    refresh_enabled: bool
    refresh_interval_hours: int
    refresh_sources: list[str]

    @property
    def cache_ttl_millis(self) -> int:
        return self.cache_ttl_hours * 60 * 60 * 1000

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        host = os.getenv("HOST", "0.0.0.0")
        port_str = os.getenv("PORT", "8000")
        try:
            port = int(port_str)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got: {port_str}")

        database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./animuse_cache.db")
        admin_token = os.getenv("ADMIN_TOKEN") or None
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        convex_url = os.getenv("CONVEX_URL") or None
        convex_deploy_key = os.getenv("CONVEX_DEPLOY_KEY") or None

        fetch_limit_str = os.getenv("FETCH_LIMIT", "100")
        try:
            fetch_limit = int(fetch_limit_str)
        except ValueError:
            fetch_limit = 100

        fetch_empty_as_error = _env_bool("FETCH_EMPTY_AS_ERROR", "true")

        ttl_str = os.getenv("CACHE_TTL_HOURS", "24")
        try:
            cache_ttl_hours = int(ttl_str)
        except ValueError:
            cache_ttl_hours = 24
        if cache_ttl_hours <= 0:
            raise ConfigurationError("CACHE_TTL_HOURS must be positive")

        cache_schema_version = os.getenv("CACHE_SCHEMA_VERSION", "1")
        cache_key_prefix = os.getenv("CACHE_KEY_PREFIX", "animuse")

        workers_str = os.getenv("FILTER_WORKERS", "2")
        try:
            filter_workers = int(workers_str)
        except ValueError:
            filter_workers = 2
        if filter_workers < 1:
            raise ConfigurationError("FILTER_WORKERS must be at least 1")

        timeout_str = os.getenv("FILTER_TASK_TIMEOUT", "10")
        try:
            filter_task_timeout = float(timeout_str)
        except ValueError:
            filter_task_timeout = 10.0

        filter_pool_mode = os.getenv("FILTER_POOL_MODE", "process").lower()
        if filter_pool_mode not in ("process", "thread", "inline"):
            raise ConfigurationError(
                "FILTER_POOL_MODE must be 'process', 'thread' or 'inline'"
            )

        refresh_enabled = _env_bool("REFRESH_ENABLED", "true")

        interval_str = os.getenv("REFRESH_INTERVAL_HOURS", "24")
        try:
            refresh_interval_hours = int(interval_str)
        except ValueError:
            refresh_interval_hours = 24

        sources_str = os.getenv(
            "REFRESH_SOURCES",
            "ghibli,madhouse,mappa,bones,kyoto-animation",
        )
        refresh_sources = [s.strip().lower() for s in sources_str.split(",") if s.strip()]

        return cls(
            host=host,
            port=port,
            database_url=database_url,
            admin_token=admin_token,
            log_level=log_level,
            convex_url=convex_url,
            convex_deploy_key=convex_deploy_key,
            fetch_limit=fetch_limit,
            fetch_empty_as_error=fetch_empty_as_error,
            cache_ttl_hours=cache_ttl_hours,
            cache_schema_version=cache_schema_version,
            cache_key_prefix=cache_key_prefix,
            filter_workers=filter_workers,
            filter_task_timeout=filter_task_timeout,
            filter_pool_mode=filter_pool_mode,  # type: ignore[arg-type]
            refresh_enabled=refresh_enabled,
            refresh_interval_hours=refresh_interval_hours,
            refresh_sources=refresh_sources,
        )


config = Config.from_env()
