"""
Database engine construction.

Builds the SQLAlchemy engine from a URL and pool settings. PostgreSQL and
file-backed SQLite get a bounded ``QueuePool``; in-memory SQLite uses
``StaticPool`` so every checkout sees the same database.
"""
import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import (
    ArgumentError,
    DisconnectionError,
    NoSuchModuleError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.pool import QueuePool, StaticPool

from todo_store.config import POSTGRES_DRIVER, PoolSettings
from todo_store.errors import ProvisioningError

logger = logging.getLogger(__name__)

_LAST_CHECKIN = "todo_store_last_checkin"


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def is_memory_sqlite(url: str) -> bool:
    if not is_sqlite(url):
        return False
    database = make_url(url).database
    return database in (None, "", ":memory:")


def normalize_url(url: str) -> str:
    """Pin bare ``postgresql://`` URLs to the psycopg2 driver."""
    parsed = make_url(url)
    if parsed.drivername == "postgresql":
        parsed = parsed.set(drivername=POSTGRES_DRIVER)
        return parsed.render_as_string(hide_password=False)
    return url


def engine_kwargs(url: str, pool: PoolSettings, echo: bool = False) -> Dict[str, Any]:
    """Return ``create_engine`` keyword arguments for ``url``."""
    kwargs: Dict[str, Any] = {"echo": echo}
    if is_memory_sqlite(url):
        # In-memory SQLite with StaticPool so the schema persists across connections
        kwargs["connect_args"] = {"check_same_thread": False}
        kwargs["poolclass"] = StaticPool
        return kwargs

    if is_sqlite(url):
        # busy timeout: writers wait for the file lock as long as for a pooled connection
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": pool.acquire_timeout}

    # QueuePool treats pool_size=0 as unbounded, so keep at least one persistent slot
    pool_size = max(pool.min_connections, 1)
    kwargs.update(
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=pool.max_connections - pool_size,
        pool_timeout=pool.acquire_timeout,
        pool_pre_ping=not is_sqlite(url),
    )
    return kwargs


def build_engine(url: str, pool: Optional[PoolSettings] = None, *, echo: bool = False) -> Engine:
    """Create the engine; malformed URLs and missing drivers are provisioning faults."""
    pool = pool or PoolSettings()
    try:
        url = normalize_url(url)
        engine = create_engine(url, **engine_kwargs(url, pool, echo))
    except (ArgumentError, NoSuchModuleError, ImportError) as exc:
        raise ProvisioningError(f"Cannot build engine for {_safe_url(url)}: {exc}") from exc
    if is_sqlite(url):
        enable_sqlite_transactions(engine)
    if not isinstance(engine.pool, StaticPool):
        # The single StaticPool connection is the in-memory database itself
        install_idle_check(engine, pool.idle_timeout)
    logger.debug("engine_built url=%s pool=%s", _safe_url(url), pool)
    return engine


def install_idle_check(engine: Engine, idle_timeout: float) -> None:
    """Replace pooled connections that sat idle longer than ``idle_timeout`` seconds.

    Called once per engine by ``build_engine``.
    """

    @event.listens_for(engine, "checkin")
    def _on_checkin(dbapi_connection, connection_record):
        if dbapi_connection is not None:
            connection_record.info[_LAST_CHECKIN] = time.monotonic()

    @event.listens_for(engine, "checkout")
    def _on_checkout(dbapi_connection, connection_record, connection_proxy):
        last = connection_record.info.pop(_LAST_CHECKIN, None)
        if last is not None and time.monotonic() - last > idle_timeout:
            logger.debug("pool_idle_recycle idle=%.1fs", time.monotonic() - last)
            # The pool invalidates this record and retries with a fresh connection
            raise DisconnectionError("connection idle longer than idle_timeout")


def ping(engine: Engine) -> None:
    """Open one connection and run ``select 1``; raise ProvisioningError when unreachable."""
    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
    except OperationalError as exc:
        raise ProvisioningError(f"Database unreachable at {_safe_url(str(engine.url))}: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        raise ProvisioningError(f"Database check failed: {exc}") from exc


def enable_sqlite_transactions(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN on SQLite so DDL is transactional.

    pysqlite otherwise autocommits DDL and defers BEGIN until the first DML
    statement, which would let a failed migration keep half its changes.
    ``BEGIN IMMEDIATE`` takes the write lock up front, so concurrent writers
    queue on the busy timeout instead of deadlocking on a lock upgrade.
    """

    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _safe_url(url: str) -> str:
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<invalid url>"
