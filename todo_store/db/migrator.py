"""
Schema migration store.

Wraps Alembic: revisions ship in ``todo_store/migrations`` and the applied
head is tracked in the ``alembic_version`` table. ``run_migrations`` applies
pending revisions one at a time, each in its own transaction, so a failing
revision leaves the schema at the previous revision.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError, DBAPIError, NoSuchModuleError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from todo_store.config import Settings
from todo_store.db import models
from todo_store.db.database import enable_sqlite_transactions, is_memory_sqlite, is_sqlite, normalize_url
from todo_store.errors import MigrationError, ProvisioningError, StorageError

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"

EngineOrUrl = Union[Engine, str]

_DUPLICATE_DATABASE = "42P04"


def make_alembic_config(database_url: str, script_location: Optional[Union[str, Path]] = None) -> Config:
    """Return an Alembic config pointing at the packaged migrations."""
    cfg = Config()
    cfg.set_main_option("script_location", str(script_location or MIGRATIONS_DIR))
    # ConfigParser interpolation treats '%' specially
    cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return cfg


@contextmanager
def _engine_for(target: EngineOrUrl) -> Iterator[Engine]:
    if isinstance(target, Engine):
        yield target
        return
    engine = create_engine(normalize_url(target), poolclass=NullPool)
    if is_sqlite(target):
        enable_sqlite_transactions(engine)
    try:
        yield engine
    finally:
        engine.dispose()


def _config_for(engine: Engine, script_location) -> Config:
    return make_alembic_config(engine.url.render_as_string(hide_password=False), script_location)


def _linear_revisions(cfg: Config) -> List[str]:
    """Revision ids from base to head, oldest first."""
    script = ScriptDirectory.from_config(cfg)
    heads = script.get_heads()
    if not heads:
        return []
    if len(heads) > 1:
        raise MigrationError(",".join(heads), RuntimeError("migration history has multiple heads"))
    revs = list(script.walk_revisions(base="base", head=heads[0]))
    revs.reverse()
    return [r.revision for r in revs]


def _current_heads(engine: Engine) -> tuple:
    try:
        with engine.connect() as conn:
            return MigrationContext.configure(conn).get_current_heads()
    except DBAPIError as exc:
        raise ProvisioningError(f"Cannot read migration state: {exc.orig}") from exc


# ---------- provisioning ----------

def create_database(database_url: Union[str, Settings]) -> bool:
    """Ensure the target database exists. Returns True when it had to be created."""
    if isinstance(database_url, Settings):
        database_url = database_url.database_url
    try:
        url = make_url(normalize_url(database_url))
    except ArgumentError as exc:
        raise ProvisioningError(f"Malformed database URL: {exc}") from exc

    if is_sqlite(database_url):
        if is_memory_sqlite(database_url):
            return False
        path = Path(url.database)
        existed = path.exists()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(database_url, poolclass=NullPool)
            with engine.connect():
                pass
            engine.dispose()
        except (OSError, SQLAlchemyError) as exc:
            raise ProvisioningError(f"Cannot create SQLite database at {path}: {exc}") from exc
        if not existed:
            logger.info("database_created path=%s", path)
        return not existed

    if url.get_backend_name() != "postgresql":
        raise ProvisioningError(f"create_database does not support backend {url.get_backend_name()!r}")

    name = url.database
    try:
        admin = create_engine(url.set(database="postgres"), isolation_level="AUTOCOMMIT", poolclass=NullPool)
    except (NoSuchModuleError, ImportError) as exc:
        raise ProvisioningError(f"No driver for {url.drivername!r}: {exc}") from exc
    try:
        with admin.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": name}
            ).scalar() is not None
            if exists:
                return False
            quoted = conn.dialect.identifier_preparer.quote(name)
            try:
                conn.execute(text(f"CREATE DATABASE {quoted}"))
            except DBAPIError as exc:
                if getattr(exc.orig, "pgcode", None) == _DUPLICATE_DATABASE:
                    return False
                raise
        logger.info("database_created name=%s", name)
        return True
    except DBAPIError as exc:
        raise ProvisioningError(f"Cannot provision database {name!r}: {exc.orig}") from exc
    finally:
        admin.dispose()


# ---------- migrations ----------

def pending_revisions(target: EngineOrUrl, script_location=None) -> List[str]:
    """Revisions not yet recorded in ``alembic_version``, oldest first."""
    with _engine_for(target) as engine:
        cfg = _config_for(engine, script_location)
        ordered = _linear_revisions(cfg)
        heads = _current_heads(engine)
    if not heads:
        return ordered
    current = heads[0]
    if current not in ordered:
        raise MigrationError(current, RuntimeError(f"database is at unknown revision {current!r}"))
    return ordered[ordered.index(current) + 1:]


def current_revision(target: EngineOrUrl) -> Optional[str]:
    with _engine_for(target) as engine:
        heads = _current_heads(engine)
    return heads[0] if heads else None


def run_migrations(target: EngineOrUrl, script_location=None, revision: str = "head") -> List[str]:
    """Apply pending revisions in order up to ``revision``; returns the ids applied by this call."""
    applied: List[str] = []
    with _engine_for(target) as engine:
        cfg = _config_for(engine, script_location)
        pending = pending_revisions(engine, script_location)
        if revision != "head":
            if revision not in _linear_revisions(cfg):
                raise MigrationError(revision, RuntimeError(f"unknown revision {revision!r}"))
            # Already at or past the requested revision leaves nothing to apply
            pending = pending[: pending.index(revision) + 1] if revision in pending else []
        if not pending:
            logger.info("migrations_up_to_date head=%s", current_revision(engine))
            return applied
        for step in pending:
            try:
                with engine.begin() as conn:
                    cfg.attributes["connection"] = conn
                    command.upgrade(cfg, step)
            except Exception as exc:
                logger.error("migration_failed revision=%s error=%s", step, exc)
                raise MigrationError(step, exc) from exc
            finally:
                cfg.attributes.pop("connection", None)
            logger.info("migration_applied revision=%s", step)
            applied.append(step)
    return applied


def downgrade(target: EngineOrUrl, revision: str = "base", script_location=None) -> None:
    """Revert the schema to ``revision`` in one transaction."""
    with _engine_for(target) as engine:
        cfg = _config_for(engine, script_location)
        try:
            with engine.begin() as conn:
                cfg.attributes["connection"] = conn
                command.downgrade(cfg, revision)
        except Exception as exc:
            raise MigrationError(revision, exc) from exc
        finally:
            cfg.attributes.pop("connection", None)
    logger.info("migration_downgraded target=%s", revision)


def verify_schema(target: EngineOrUrl, script_location=None) -> None:
    """Check once at startup that the live schema matches the mapped models.

    Raises StorageError when the database is behind the migration head or a
    mapped column is missing.
    """
    with _engine_for(target) as engine:
        cfg = _config_for(engine, script_location)
        ordered = _linear_revisions(cfg)
        expected = ordered[-1] if ordered else None
        heads = _current_heads(engine)
        current = heads[0] if heads else None
        if current != expected:
            raise StorageError(f"Schema is at revision {current!r}, expected {expected!r}")

        inspector = inspect(engine)
        for table in models.Base.metadata.sorted_tables:
            if not inspector.has_table(table.name):
                raise StorageError(f"Table {table.name!r} is missing")
            live = {col["name"] for col in inspector.get_columns(table.name)}
            missing = sorted(col.name for col in table.columns if col.name not in live)
            if missing:
                raise StorageError(f"Table {table.name!r} is missing columns: {', '.join(missing)}")
    logger.info("schema_verified revision=%s", expected)
