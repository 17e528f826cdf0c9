import pytest

from todo_store.config import PoolSettings
from todo_store.db.database import build_engine
from todo_store.db.migrator import run_migrations
from todo_store.db.pool import ConnectionPool
from todo_store.db.repositories import InMemoryTodoRepository, TodoRepository


@pytest.fixture
def db_url(tmp_path):
    """Fresh file-backed SQLite database per test."""
    return f"sqlite:///{tmp_path / 'todos.db'}"


@pytest.fixture
def migrated_url(db_url):
    run_migrations(db_url)
    return db_url


@pytest.fixture
def pool_settings():
    return PoolSettings(min_connections=1, max_connections=4, acquire_timeout=2.0, idle_timeout=60.0)


@pytest.fixture
def pool(migrated_url, pool_settings):
    p = ConnectionPool(build_engine(migrated_url, pool_settings), pool_settings)
    try:
        yield p
    finally:
        p.dispose()


@pytest.fixture(params=["database", "memory"])
def repo(request):
    """Both repository implementations honour the same contract."""
    if request.param == "memory":
        return InMemoryTodoRepository()
    return TodoRepository(request.getfixturevalue("pool"))
