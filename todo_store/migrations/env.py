import os
from logging.config import fileConfig

from sqlalchemy import create_engine
from sqlalchemy import pool

from alembic import context

from todo_store.db.database import enable_sqlite_transactions, normalize_url
from todo_store.db.models import Base

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging when run from the alembic CLI.
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _database_url() -> str:
    url = config.get_main_option("sqlalchemy.url") or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("Set DATABASE_URL or sqlalchemy.url to run migrations")
    return url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Emits the SQL for the pending revisions instead of executing it.
    """
    context.configure(
        url=normalize_url(_database_url()),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode.

    The migration store passes a connection that already holds the
    per-revision transaction; the alembic CLI falls back to a fresh engine.
    """
    connection = config.attributes.get("connection")
    if connection is not None:
        _run_with_connection(connection)
        return

    url = normalize_url(_database_url())
    connectable = create_engine(url, poolclass=pool.NullPool)
    if url.startswith("sqlite"):
        enable_sqlite_transactions(connectable)
    with connectable.connect() as connection:
        _run_with_connection(connection)
        connection.commit()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
