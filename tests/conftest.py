"""Common test fixtures for the notebook store."""

import tempfile
from pathlib import Path

import pytest

from notebook_store.config import NotebookConfig
from notebook_store.models.db_models import init_db
from notebook_store.observability import metrics
from notebook_store.services.bulk_service import BulkService
from notebook_store.services.notebook_service import NotebookService
from notebook_store.services.query_service import QueryService
from notebook_store.services.transfer_service import TransferService
from notebook_store.storage.folder_repository import FolderRepository
from notebook_store.storage.note_repository import NoteRepository
from notebook_store.storage.settings_repository import SettingsRepository
from notebook_store.storage.version_log import VersionLog


@pytest.fixture
def temp_dir():
    """Create a temporary directory for the database."""
    with tempfile.TemporaryDirectory() as db_dir:
        yield Path(db_dir)


@pytest.fixture
def test_config(temp_dir):
    """Configuration pointing at a file database in a temporary directory."""
    return NotebookConfig(
        base_dir=temp_dir,
        database_path=Path("notebook.db"),
        busy_timeout_ms=10000,
    )


@pytest.fixture
def engine(test_config):
    """Engine with the schema created."""
    engine = init_db(test_config)
    yield engine
    engine.dispose()


@pytest.fixture
def version_log(engine):
    return VersionLog(engine)


@pytest.fixture
def note_repository(engine, test_config, version_log):
    """Create a test note repository."""
    return NoteRepository(engine, test_config, version_log)


@pytest.fixture
def folder_repository(engine):
    return FolderRepository(engine)


@pytest.fixture
def settings_repository(engine):
    return SettingsRepository(engine)


@pytest.fixture
def query_service(engine):
    return QueryService(engine)


@pytest.fixture
def bulk_service(note_repository, folder_repository):
    return BulkService(note_repository, folder_repository)


@pytest.fixture
def transfer_service(engine):
    return TransferService(engine)


@pytest.fixture
def notebook_service(test_config, engine):
    """Service facade sharing the test engine."""
    return NotebookService(test_config, engine=engine)


@pytest.fixture
def second_service(temp_dir):
    """An independent store in its own database file (import target)."""
    config = NotebookConfig(base_dir=temp_dir, database_path=Path("other.db"))
    service = NotebookService(config)
    yield service
    service.close()


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector isolated between tests."""
    metrics.reset()
    yield
    metrics.reset()
