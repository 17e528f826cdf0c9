import pytest
from sqlalchemy import create_engine, inspect

from todo_store.config import PoolSettings, Settings
from todo_store.db import migrator
from todo_store.errors import MigrationError
from todo_store.service import bootstrap
from tests.scenarios import crud_scenario, migrations_with_broken_revision

pytestmark = pytest.mark.integration


def _tables(url):
    engine = create_engine(url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_create_database_is_idempotent(fresh_database_url):
    assert migrator.create_database(fresh_database_url) is False


def test_run_migrations_twice_applies_nothing_the_second_time(fresh_database_url):
    assert migrator.run_migrations(fresh_database_url) == ["0001", "0002"]
    assert migrator.run_migrations(fresh_database_url) == []
    migrator.verify_schema(fresh_database_url)


@pytest.mark.slow
def test_upgrade_and_downgrade_cycle(fresh_database_url):
    """Migrations upgrade from base to head and cleanly downgrade back to base."""
    migrator.run_migrations(fresh_database_url)
    migrator.downgrade(fresh_database_url, "base")
    assert "todos" not in _tables(fresh_database_url)
    migrator.run_migrations(fresh_database_url)
    migrator.downgrade(fresh_database_url, "base")
    assert migrator.run_migrations(fresh_database_url) == ["0001", "0002"]


def test_failed_revision_rolls_back_its_ddl(fresh_database_url, tmp_path):
    scripts = migrations_with_broken_revision(tmp_path)
    with pytest.raises(MigrationError) as excinfo:
        migrator.run_migrations(fresh_database_url, script_location=scripts)
    assert excinfo.value.failed_id == "0003"
    assert migrator.current_revision(fresh_database_url) == "0002"
    assert "broken_side_table" not in _tables(fresh_database_url)


def test_bootstrap_against_postgres(fresh_database_url):
    settings = Settings(database_url=fresh_database_url, pool=PoolSettings(min_connections=2, max_connections=4))
    with bootstrap(settings, warm=True) as service:
        crud_scenario(service.repository)
