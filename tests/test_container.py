import pytest

from awesome_search.config.settings import Settings
from awesome_search.container import Container, configure_container
from awesome_search.core.protocols.snapshot_source import SnapshotSourceProtocol
from awesome_search.core.services.query_engine import QueryEngine
from awesome_search.core.services.refresh_service import RefreshService
from awesome_search.core.services.snapshot_manager import SnapshotManager
from awesome_search.infrastructure.stores import SqliteSnapshotSource


@pytest.fixture
def configured(db_path, tmp_path):
    settings = Settings(awesome_db_path=str(db_path), metadata_path=str(tmp_path / "meta.json"))
    return configure_container(settings, Container())


def test_services_share_one_snapshot_manager(configured):
    manager = configured.resolve(SnapshotManager)
    configured.resolve(RefreshService).refresh()

    assert manager.is_ready
    assert configured.resolve(QueryEngine).search("redux").total == 2


def test_source_comes_from_settings(configured, db_path):
    source = configured.resolve(SnapshotSourceProtocol)
    assert isinstance(source, SqliteSnapshotSource)
    assert source.path == db_path


def test_override_pins_instance(configured):
    manager = SnapshotManager()
    configured.override(SnapshotManager, manager)

    assert configured.resolve(SnapshotManager) is manager
    assert configured.resolve(QueryEngine)._snapshots is manager


def test_register_replaces_built_instance(configured):
    first = configured.resolve(SnapshotManager)
    configured.register(SnapshotManager, SnapshotManager)
    assert configured.resolve(SnapshotManager) is not first


def test_transient_registration():
    target = Container()
    target.register(SnapshotManager, SnapshotManager, singleton=False)
    assert target.resolve(SnapshotManager) is not target.resolve(SnapshotManager)


def test_reset_rebuilds(configured):
    first = configured.resolve(SnapshotManager)
    configured.reset()
    assert configured.resolve(SnapshotManager) is not first


def test_unregistered_interface():
    target = Container()
    assert SnapshotManager not in target
    with pytest.raises(KeyError, match="SnapshotManager is not registered"):
        target.resolve(SnapshotManager)
