import pytest
from sqlalchemy import create_engine, inspect

from todo_store.config import Settings
from todo_store.db import migrator
from todo_store.errors import MigrationError, ProvisioningError, StorageError
from tests.scenarios import migrations_with_broken_revision


def _tables(url):
    engine = create_engine(url)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_create_database_creates_sqlite_file(tmp_path):
    path = tmp_path / "nested" / "dir" / "todos.db"
    url = f"sqlite:///{path}"
    assert migrator.create_database(url) is True
    assert path.exists()
    assert migrator.create_database(url) is False


def test_create_database_memory_is_noop():
    assert migrator.create_database("sqlite:///:memory:") is False


def test_create_database_rejects_unsupported_backend():
    with pytest.raises(ProvisioningError):
        migrator.create_database("mysql://user:pw@localhost/todos")


def test_create_database_unreachable_server():
    with pytest.raises(ProvisioningError):
        migrator.create_database("postgresql://user:pw@127.0.0.1:1/todos")


def test_run_migrations_applies_in_order(db_url):
    assert migrator.pending_revisions(db_url) == ["0001", "0002"]
    assert migrator.current_revision(db_url) is None

    assert migrator.run_migrations(db_url) == ["0001", "0002"]

    assert migrator.current_revision(db_url) == "0002"
    assert migrator.pending_revisions(db_url) == []
    assert {"todos", "alembic_version"} <= _tables(db_url)


def test_run_migrations_is_idempotent(db_url):
    migrator.run_migrations(db_url)
    assert migrator.run_migrations(db_url) == []
    assert migrator.current_revision(db_url) == "0002"


def test_run_migrations_resumes_from_partial_state(db_url):
    migrator.run_migrations(db_url)
    migrator.downgrade(db_url, "0001")
    assert migrator.pending_revisions(db_url) == ["0002"]
    assert migrator.run_migrations(db_url) == ["0002"]


def test_downgrade_to_base_and_back(db_url):
    migrator.run_migrations(db_url)
    migrator.downgrade(db_url, "base")
    assert migrator.current_revision(db_url) is None
    assert "todos" not in _tables(db_url)
    assert migrator.run_migrations(db_url) == ["0001", "0002"]


def test_failed_revision_is_rolled_back(db_url, tmp_path):
    scripts = migrations_with_broken_revision(tmp_path)

    with pytest.raises(MigrationError) as excinfo:
        migrator.run_migrations(db_url, script_location=scripts)

    assert excinfo.value.failed_id == "0003"
    assert excinfo.value.cause is not None
    # earlier revisions stay applied, nothing from 0003 survives
    assert migrator.current_revision(db_url) == "0002"
    tables = _tables(db_url)
    assert "todos" in tables
    assert "broken_side_table" not in tables
    assert migrator.pending_revisions(db_url, script_location=scripts) == ["0003"]


def test_run_migrations_accepts_engine(migrated_url):
    engine = create_engine(migrated_url)
    try:
        assert migrator.run_migrations(engine) == []
        assert migrator.current_revision(engine) == "0002"
    finally:
        engine.dispose()


def test_verify_schema_passes_on_migrated_database(migrated_url):
    migrator.verify_schema(migrated_url)


def test_verify_schema_rejects_unmigrated_database(db_url):
    with pytest.raises(StorageError):
        migrator.verify_schema(db_url)


def test_verify_schema_rejects_database_behind_head(migrated_url):
    migrator.downgrade(migrated_url, "0001")
    with pytest.raises(StorageError) as excinfo:
        migrator.verify_schema(migrated_url)
    assert "0001" in str(excinfo.value)


def test_run_migrations_stops_at_requested_revision(db_url):
    assert migrator.run_migrations(db_url, revision="0001") == ["0001"]
    assert migrator.current_revision(db_url) == "0001"
    assert migrator.run_migrations(db_url, revision="0001") == []
    assert migrator.run_migrations(db_url) == ["0002"]


def test_run_migrations_rejects_unknown_revision(db_url):
    with pytest.raises(MigrationError) as excinfo:
        migrator.run_migrations(db_url, revision="9999")
    assert excinfo.value.failed_id == "9999"
    assert migrator.current_revision(db_url) is None


def test_create_database_accepts_settings(tmp_path):
    path = tmp_path / "from_settings.db"
    assert migrator.create_database(Settings(database_url=f"sqlite:///{path}")) is True
    assert path.exists()
