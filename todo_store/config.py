"""
Runtime configuration for the todo store.

Settings are read from environment variables. An optional dotenv file
``.config/.env.<APP_ENV>`` is loaded first, then ``.env``; values already
present in the environment always win.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from todo_store.errors import ProvisioningError

_POSTGRES_VARS = ("POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_DB")

# Bare "postgresql://" resolves to psycopg 3 on newer SQLAlchemy releases
POSTGRES_DRIVER = "postgresql+psycopg2"


@dataclass(frozen=True)
class PoolSettings:
    """Connection pool sizing and timeouts (seconds)."""

    min_connections: int = 1
    max_connections: int = 10
    acquire_timeout: float = 30.0
    idle_timeout: float = 300.0

    def __post_init__(self) -> None:
        if self.min_connections < 0:
            raise ProvisioningError("min_connections must be >= 0")
        if self.max_connections < 1 or self.max_connections < self.min_connections:
            raise ProvisioningError(
                f"max_connections must be >= max(1, min_connections); got {self.max_connections}"
            )
        if self.acquire_timeout <= 0:
            raise ProvisioningError("acquire_timeout must be positive")
        if self.idle_timeout <= 0:
            raise ProvisioningError("idle_timeout must be positive")


@dataclass(frozen=True)
class Settings:
    database_url: str
    pool: PoolSettings = field(default_factory=PoolSettings)
    echo: bool = False
    log_level: str = "INFO"
    app_env: str = "local"


def load_env_files(app_env: Optional[str] = None, base_dir: Optional[Path] = None) -> None:
    """Load ``.config/.env.<app_env>`` and ``.env`` without overriding the environment."""
    app_env = app_env or os.getenv("APP_ENV", "local")
    base = base_dir or Path.cwd()
    load_dotenv(base / ".config" / f".env.{app_env}", override=False)
    load_dotenv(base / ".env", override=False)


def get_database_url(env: Mapping[str, str] = os.environ) -> str:
    # If DATABASE_URL is explicitly set, use it
    if env.get("DATABASE_URL"):
        return env["DATABASE_URL"]

    missing = [name for name in _POSTGRES_VARS if not env.get(name)]
    if missing:
        raise ProvisioningError(f"Missing required database environment variables: {', '.join(missing)}")

    return (
        f"{POSTGRES_DRIVER}://{env['POSTGRES_USER']}:{env['POSTGRES_PASSWORD']}"
        f"@{env['POSTGRES_HOST']}:{env['POSTGRES_PORT']}/{env['POSTGRES_DB']}"
    )


def _env_number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ProvisioningError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def get_settings(env: Optional[Mapping[str, str]] = None, *, load_files: bool = True) -> Settings:
    """Build settings from ``env`` (defaults to ``os.environ``)."""
    if env is None:
        if load_files:
            load_env_files()
        env = os.environ

    pool = PoolSettings(
        min_connections=_env_number(env, "DB_POOL_MIN", 1, int),
        max_connections=_env_number(env, "DB_POOL_MAX", 10, int),
        acquire_timeout=_env_number(env, "DB_POOL_ACQUIRE_TIMEOUT", 30.0, float),
        idle_timeout=_env_number(env, "DB_POOL_IDLE_TIMEOUT", 300.0, float),
    )
    return Settings(
        database_url=get_database_url(env),
        pool=pool,
        echo=_env_bool(env, "DB_ECHO"),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        app_env=env.get("APP_ENV", "local"),
    )


def configure_logging(level_name: str = "INFO") -> int:
    """Configure root logging once; returns the numeric level applied."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logging.getLogger("todo_store").setLevel(level)
    return level
