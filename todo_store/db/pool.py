"""
Leased connections over a SQLAlchemy engine pool.

Every lease is paired with a guaranteed release: ``acquire()`` and
``session()`` are context managers that commit on normal exit, roll back on
any exception (cancellation included) and always hand the connection back.
Connections that fail with a disconnect are invalidated by SQLAlchemy and
never re-enter the pool; replacements are opened lazily. Idle replacement
is configured on the engine by ``build_engine``.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from sqlalchemy import exc
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import Session

from todo_store.config import PoolSettings, Settings
from todo_store.db.database import build_engine
from todo_store.errors import PoolExhausted, StorageError

logger = logging.getLogger(__name__)


class ConnectionPool:
    """Bounded registry of database connections with scoped leases."""

    def __init__(self, engine: Engine, settings: Optional[PoolSettings] = None):
        self.engine = engine
        self.settings = settings or PoolSettings()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionPool":
        engine = build_engine(settings.database_url, settings.pool, echo=settings.echo)
        return cls(engine, settings.pool)

    # ---------- leasing ----------

    def lease(self) -> Connection:
        """Check out a raw connection; pair with ``release``."""
        try:
            return self.engine.connect()
        except exc.TimeoutError as e:
            logger.warning(
                "pool_exhausted max_connections=%s timeout=%ss",
                self.settings.max_connections,
                self.settings.acquire_timeout,
            )
            raise PoolExhausted(
                f"No connection available within {self.settings.acquire_timeout}s "
                f"(max_connections={self.settings.max_connections})"
            ) from e
        except exc.DBAPIError as e:
            logger.error("pool_connect_failed error=%s", e.orig)
            raise StorageError(f"Cannot open database connection: {e.orig}", retryable=True) from e

    def release(self, conn: Connection) -> None:
        """Return ``conn`` to the pool, rolling back any open transaction."""
        try:
            if conn.in_transaction():
                conn.rollback()
        finally:
            conn.close()

    @contextmanager
    def acquire(self) -> Iterator[Connection]:
        """Lease a connection inside a transaction for the duration of the block."""
        conn = self.lease()
        try:
            with conn.begin():
                yield conn
        except exc.DBAPIError as e:
            retryable = bool(e.connection_invalidated) or isinstance(e, exc.OperationalError)
            logger.error("storage_error retryable=%s error=%s", retryable, e.orig)
            raise StorageError(f"Database operation failed: {e.orig}", retryable=retryable) from e
        except exc.SQLAlchemyError as e:
            logger.error("storage_error error=%s", e)
            raise StorageError(f"Database operation failed: {e}") from e
        finally:
            self.release(conn)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Lease a connection and expose it as an ORM session.

        The session joins the lease's transaction; pending changes are flushed
        when the block exits and committed with the lease.
        """
        with self.acquire() as conn:
            session = Session(bind=conn, autoflush=False, expire_on_commit=False)
            try:
                yield session
                session.flush()
            finally:
                session.close()

    # ---------- maintenance ----------

    def warm(self) -> int:
        """Open ``min_connections`` connections up front; returns how many were opened."""
        conns = []
        try:
            for _ in range(self.settings.min_connections):
                conns.append(self.lease())
        finally:
            for conn in conns:
                self.release(conn)
        return len(conns)

    def status(self) -> Dict[str, int]:
        pool = self.engine.pool
        stats = {}
        for name in ("size", "checkedin", "checkedout", "overflow"):
            probe = getattr(pool, name, None)
            stats[name] = probe() if callable(probe) else 0
        return stats

    def dispose(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "ConnectionPool":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()
