"""
Startup wiring for the todo store.

``bootstrap`` runs the provisioning and migration steps exclusively, before
any repository exists, then hands out a repository bound to a fresh pool.
Provisioning and migration failures propagate: the caller must not serve
traffic against an unreachable or unmigrated schema.
"""
from __future__ import annotations

import logging
from typing import Optional

from todo_store.config import Settings, configure_logging, get_settings
from todo_store.db import migrator
from todo_store.db.database import build_engine, ping
from todo_store.db.pool import ConnectionPool
from todo_store.db.repositories import AsyncTodoRepository, TodoRepository

logger = logging.getLogger(__name__)


class TodoService:
    """Holds the pool and the repositories built on it."""

    def __init__(self, settings: Settings, pool: ConnectionPool):
        self.settings = settings
        self.pool = pool
        self.repository = TodoRepository(pool)
        self.async_repository = AsyncTodoRepository(self.repository)

    def close(self) -> None:
        self.pool.dispose()
        logger.info("pool_disposed")

    def __enter__(self) -> "TodoService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def bootstrap(settings: Optional[Settings] = None, *, warm: bool = False, setup_logging: bool = True) -> TodoService:
    """Create the database, migrate it, build the pool and verify the schema."""
    settings = settings or get_settings()
    if setup_logging:
        configure_logging(settings.log_level)

    migrator.create_database(settings.database_url)

    engine = build_engine(settings.database_url, settings.pool, echo=settings.echo)
    try:
        ping(engine)
        applied = migrator.run_migrations(engine)
        migrator.verify_schema(engine)
    except Exception:
        engine.dispose()
        raise

    pool = ConnectionPool(engine, settings.pool)
    if warm:
        pool.warm()
    logger.info(
        "todo_store_ready migrations_applied=%d pool_min=%d pool_max=%d",
        len(applied),
        settings.pool.min_connections,
        settings.pool.max_connections,
    )
    return TodoService(settings, pool)
