import os
import uuid

import pytest
from sqlalchemy import text
from sqlalchemy.engine.url import make_url
from testcontainers.postgres import PostgresContainer

from todo_store.config import PoolSettings
from todo_store.db.database import build_engine
from todo_store.db.migrator import create_database, run_migrations
from todo_store.db.pool import ConnectionPool
from todo_store.db.repositories import TodoRepository


# Session-wide Postgres server: TEST_DATABASE_URL when set, otherwise a test container
@pytest.fixture(scope="session")
def postgres_url():
    explicit = os.getenv("TEST_DATABASE_URL")
    if explicit:
        yield explicit
        return
    if os.getenv("SKIP_DOCKER_TESTS") == "1":
        pytest.skip("SKIP_DOCKER_TESTS=1")

    image = os.getenv("TEST_POSTGRES_IMAGE", "postgres:16-alpine")
    container = PostgresContainer(image)
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"Could not start Postgres test container: {exc}")
    try:
        yield container.get_connection_url()
    finally:
        container.stop()


@pytest.fixture
def fresh_database_url(postgres_url):
    """A brand-new, empty database on the shared server."""
    url = make_url(postgres_url).set(database=f"todo_test_{uuid.uuid4().hex[:12]}")
    rendered = url.render_as_string(hide_password=False)
    assert create_database(rendered) is True
    return rendered


# Apply migrations once for the shared database
@pytest.fixture(scope="session")
def migrated_postgres_url(postgres_url):
    create_database(postgres_url)
    run_migrations(postgres_url)
    return postgres_url


@pytest.fixture
def pg_pool(migrated_postgres_url):
    settings = PoolSettings(min_connections=2, max_connections=6, acquire_timeout=5.0, idle_timeout=60.0)
    pool = ConnectionPool(build_engine(migrated_postgres_url, settings), settings)
    with pool.acquire() as conn:
        conn.execute(text("TRUNCATE todos"))
    try:
        yield pool
    finally:
        pool.dispose()


@pytest.fixture
def pg_repo(pg_pool):
    return TodoRepository(pg_pool)
