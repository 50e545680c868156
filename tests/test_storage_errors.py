"""Tests that database failures on write paths surface as StorageError."""
from contextlib import contextmanager

import pytest

from notebook_store.exceptions import ErrorCode, StorageError
from notebook_store.models.db_models import DBSetting, init_db
from notebook_store.storage.folder_repository import FolderRepository
from notebook_store.storage.note_repository import NoteRepository
from notebook_store.storage.settings_repository import SettingsRepository


@contextmanager
def held_write_lock(engine):
    """Hold the SQLite write lock from a separate connection."""
    with engine.connect() as conn:
        conn.exec_driver_sql("BEGIN IMMEDIATE")
        try:
            yield
        finally:
            conn.rollback()


@pytest.fixture
def impatient_engine(test_config, engine):
    """Second engine on the same file that gives up on a busy database quickly."""
    impatient = init_db(test_config.model_copy(update={"busy_timeout_ms": 100}))
    yield impatient
    impatient.dispose()


class TestLockedDatabase:
    """Writes blocked by another connection's write lock."""

    def test_create_raises_storage_error(self, engine, impatient_engine):
        repo = NoteRepository(impatient_engine)

        with held_write_lock(engine):
            with pytest.raises(StorageError) as exc_info:
                repo.create("A", "x")

        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED
        assert exc_info.value.operation == "create_note"
        assert repo.count_notes() == 0

    def test_update_raises_storage_error(self, engine, note_repository, impatient_engine):
        note = note_repository.create("A", "x")
        repo = NoteRepository(impatient_engine)

        with held_write_lock(engine):
            with pytest.raises(StorageError) as exc_info:
                repo.update(note.id, {"content": "y"})

        assert exc_info.value.operation == "update_note"
        stored = note_repository.get(note.id)
        assert stored.version == 1
        assert stored.content == "x"
        assert [v.version for v in note_repository.list_versions(note.id)] == [1]

    def test_update_succeeds_after_lock_released(self, engine, note_repository, impatient_engine):
        note = note_repository.create("A", "x")
        repo = NoteRepository(impatient_engine)

        with held_write_lock(engine):
            with pytest.raises(StorageError):
                repo.update(note.id, {"content": "y"})

        assert repo.update(note.id, {"content": "y"}).version == 2

    def test_trash_and_delete_raise_storage_error(self, engine, note_repository, impatient_engine):
        note = note_repository.create("A", "x")
        repo = NoteRepository(impatient_engine)

        with held_write_lock(engine):
            with pytest.raises(StorageError):
                repo.soft_delete(note.id)
            with pytest.raises(StorageError) as exc_info:
                repo.permanently_delete(note.id)
            assert exc_info.value.code == ErrorCode.STORAGE_DELETE_FAILED

        assert note_repository.get(note.id).deleted is False

    def test_folder_writes_raise_storage_error(self, engine, folder_repository, impatient_engine):
        folder = folder_repository.create("Inbox")
        repo = FolderRepository(impatient_engine)

        with held_write_lock(engine):
            with pytest.raises(StorageError) as exc_info:
                repo.create("Other")
            assert exc_info.value.operation == "create_folder"
            with pytest.raises(StorageError):
                repo.rename(folder.id, "Renamed")
            with pytest.raises(StorageError):
                repo.delete(folder.id)

        assert [f.name for f in folder_repository.list()] == ["Inbox"]

    def test_setting_writes_raise_storage_error(self, engine, settings_repository, impatient_engine):
        settings_repository.set("theme", "dark")
        repo = SettingsRepository(impatient_engine)

        with held_write_lock(engine):
            with pytest.raises(StorageError):
                repo.set("theme", "light")
            with pytest.raises(StorageError):
                repo.delete("theme")

        assert settings_repository.get_value("theme") == "dark"


class TestUnstorableValues:
    """Values the database layer cannot serialize."""

    def test_non_json_metadata_rolls_back_create(self, note_repository):
        with pytest.raises(StorageError) as exc_info:
            note_repository.create("A", metadata={"when": object()})

        assert exc_info.value.operation == "create_note"
        assert note_repository.count_notes() == 0


class TestExportReadFailure:
    """Export over a schema it cannot read."""

    def test_missing_table_raises_storage_error(self, engine, transfer_service):
        DBSetting.__table__.drop(engine)

        with pytest.raises(StorageError) as exc_info:
            transfer_service.export()

        assert exc_info.value.code == ErrorCode.STORAGE_READ_FAILED
        assert exc_info.value.operation == "export"
