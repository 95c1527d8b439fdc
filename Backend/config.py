"""
Runtime configuration for the discovery API.

Settings are read from the environment once, when the application is built,
and passed to ``create_app``. Building a new app is the only way to pick up
changed values.
"""

import os
from dataclasses import dataclass, field

from fastapi import Request


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


@dataclass(frozen=True)
class Settings:
    """Immutable application settings."""

    database_url: str = "sqlite:///biodex.db"
    redis_url: str = ""
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"
    rate_limit_enabled: bool = True
    db_pool_size: int = 20
    db_max_overflow: int = 10
    highscores_cache_ttl: int = 5
    catalog_cache_ttl: int = 300

    @classmethod
    def from_env(cls) -> "Settings":
        """
        If DATABASE_URL is set -> Postgres/PostGIS.
        Else -> local SQLite for dev (spatial endpoints unavailable).
        """
        return cls(
            database_url=os.getenv("DATABASE_URL", "").strip() or cls.database_url,
            redis_url=os.getenv("REDIS_URL", "").strip(),
            cors_origins=_env_list("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
            db_pool_size=_env_int("DB_POOL_SIZE", 20),
            db_max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
            highscores_cache_ttl=_env_int("HIGHSCORES_CACHE_TTL", 5),
            catalog_cache_ttl=_env_int("CATALOG_CACHE_TTL", 300),
        )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def get_settings(request: Request) -> Settings:
    """Dependency returning the settings the running app was built with."""
    return request.app.state.settings
