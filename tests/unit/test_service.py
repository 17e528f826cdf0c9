import pytest

from todo_store.config import PoolSettings, Settings
from todo_store.db import migrator
from todo_store.errors import MigrationError, ProvisioningError
from todo_store.service import bootstrap
from tests.scenarios import crud_scenario, migrations_with_broken_revision


def _settings(url, **pool):
    return Settings(database_url=url, pool=PoolSettings(**pool) if pool else PoolSettings())


def test_bootstrap_provisions_migrates_and_serves(tmp_path):
    url = f"sqlite:///{tmp_path / 'data' / 'todos.db'}"
    with bootstrap(_settings(url, min_connections=2, max_connections=4), warm=True) as service:
        assert migrator.current_revision(url) == "0002"
        assert service.pool.status()["checkedin"] == 2
        crud_scenario(service.repository)


def test_bootstrap_is_repeatable(tmp_path):
    url = f"sqlite:///{tmp_path / 'todos.db'}"
    with bootstrap(_settings(url)) as service:
        kept = service.repository.create("survives restart")
    with bootstrap(_settings(url)) as service:
        assert migrator.pending_revisions(url) == []
        assert service.repository.get(kept.id).title == "survives restart"


def test_bootstrap_in_memory_database():
    with bootstrap(_settings("sqlite:///:memory:")) as service:
        todo = service.repository.create("ephemeral")
        assert service.repository.list() == [todo]


def test_bootstrap_aborts_when_server_unreachable():
    with pytest.raises(ProvisioningError):
        bootstrap(_settings("postgresql://user:pw@127.0.0.1:1/todos"))


def test_bootstrap_aborts_on_failed_migration(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'todos.db'}"
    scripts = migrations_with_broken_revision(tmp_path)
    monkeypatch.setattr(migrator, "MIGRATIONS_DIR", scripts)
    with pytest.raises(MigrationError) as excinfo:
        bootstrap(_settings(url))
    assert excinfo.value.failed_id == "0003"
