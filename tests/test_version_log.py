"""Tests for the append-only version log."""
import pytest

from notebook_store.exceptions import StorageError
from notebook_store.models.db_models import DBNote, get_session_factory


class TestVersionLog:
    """Tests for VersionLog reads and the density guard."""

    def test_head_version_tracks_updates(self, note_repository, version_log, engine):
        note = note_repository.create("A")
        note_repository.update(note.id, {"content": "b"})

        with get_session_factory(engine)() as session:
            assert version_log.head_version(session, note.id) == 2
            assert version_log.head_version(session, "nope") == 0

    def test_list_versions_newest_first(self, note_repository, version_log):
        note = note_repository.create("A", "1")
        note_repository.update(note.id, {"content": "2"})
        note_repository.update(note.id, {"content": "3"})

        assert [v.content for v in version_log.list_versions(note.id)] == ["3", "2", "1"]

    def test_get_version_unknown_returns_none(self, note_repository, version_log):
        note = note_repository.create("A")
        assert version_log.get_version(note.id, 2) is None
        assert version_log.get_version("nope", 1) is None

    def test_count(self, note_repository, version_log):
        a = note_repository.create("A")
        note_repository.create("B")
        note_repository.update(a.id, {"title": "A2"})

        assert version_log.count(a.id) == 2
        assert version_log.count() == 3

    def test_snapshot_is_immutable(self, note_repository, version_log):
        note = note_repository.create("A", "x")
        snapshot = version_log.get_version(note.id, 1)

        with pytest.raises(Exception):
            snapshot.content = "changed"

        note_repository.update(note.id, {"content": "y"})
        assert version_log.get_version(note.id, 1).content == "x"

    def test_append_rejects_gap(self, note_repository, version_log, engine):
        note = note_repository.create("A")

        with get_session_factory(engine)() as session:
            db_note = session.get(DBNote, note.id)
            db_note.version = 3
            with pytest.raises(StorageError):
                version_log.append(session, db_note)
            session.rollback()

        assert version_log.count(note.id) == 1

    def test_append_rejects_rewrite(self, note_repository, version_log, engine):
        note = note_repository.create("A")

        with get_session_factory(engine)() as session:
            db_note = session.get(DBNote, note.id)
            with pytest.raises(StorageError):
                version_log.append(session, db_note)
            session.rollback()

    def test_saved_at_matches_note_update_time(self, note_repository, version_log):
        note = note_repository.create("A")
        updated = note_repository.update(note.id, {"content": "y"})
        assert version_log.get_version(note.id, 2).saved_at == updated.updated_at
