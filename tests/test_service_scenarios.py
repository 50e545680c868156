"""End-to-end scenarios through the NotebookService facade."""
import pytest

from notebook_store.exceptions import ValidationError
from notebook_store.models.schema import NoteCreate


class TestNoteLifecycle:
    """Create, edit, trash and restore a note through the facade."""

    def test_edit_trash_and_restore_version(self, notebook_service):
        svc = notebook_service
        note = svc.create_note({"title": "A", "content": "x"})
        assert note.version == 1

        edited = svc.update_note(note.id, {"content": "y"})
        assert edited.version == 2
        assert {v.version: v.content for v in svc.list_versions(note.id)} == {1: "x", 2: "y"}
        assert note.id in {n.id for n in svc.query_notes()}

        svc.soft_delete_note(note.id)
        assert note.id in {n.id for n in svc.query_notes({"trash_only": True})}
        assert note.id not in {n.id for n in svc.query_notes({"trash_only": False})}

        restored = svc.restore_version(note.id, 1)
        assert restored.content == "x"
        assert restored.version == 3
        history = svc.list_versions(note.id)
        assert [v.version for v in history] == [3, 2, 1]
        assert history[0].content == "x"

    def test_bulk_trash_skips_unknown_ids(self, notebook_service):
        svc = notebook_service
        id1 = svc.create_note({"title": "one"}).id
        id2 = svc.create_note({"title": "two"}).id

        svc.bulk_set_trash({id1, id2, "missing"}, True)

        assert svc.get_note(id1).deleted is True
        assert svc.get_note(id2).deleted is True

    def test_folder_and_search_query(self, notebook_service):
        svc = notebook_service
        f = svc.create_folder("F")
        g = svc.create_folder("G")
        category = svc.create_note({"title": "Category A", "folder_id": f.id})
        svc.create_note({"title": "dog", "folder_id": f.id})
        svc.create_note({"title": "cat food", "folder_id": g.id})

        results = svc.query_notes({"folder_id": f.id, "search_text": "cat"})
        assert [n.id for n in results] == [category.id]

    def test_delete_folder_uncategorizes_notes(self, notebook_service):
        svc = notebook_service
        folder = svc.create_folder("Temp")
        x = svc.create_note({"title": "X", "folder_id": folder.id})
        y = svc.create_note({"title": "Y", "folder_id": folder.id})

        assert svc.delete_folder(folder.id) == 2

        assert svc.get_note(x.id).folder_id is None
        assert svc.get_note(y.id).folder_id is None
        assert folder.id not in {f.id for f in svc.list_folders()}
        assert len(svc.query_notes({"folder_id": "all"})) == 2

    def test_restore_then_export(self, notebook_service):
        svc = notebook_service
        note = svc.create_note({"title": "A", "content": "first"})
        svc.update_note(note.id, {"content": "second"})
        svc.restore_version(note.id, 1)

        dataset = svc.export_data()
        exported = next(n for n in dataset.notes if n.id == note.id)
        head = next(
            v for v in dataset.versions
            if v.note_id == note.id and v.version == exported.version
        )
        assert exported.version > 1
        assert head.content == "first"

    def test_permanent_delete_and_move(self, notebook_service):
        svc = notebook_service
        folder = svc.create_folder("Archive")
        keep = svc.create_note({"title": "keep"})
        drop = svc.create_note({"title": "drop"})

        assert svc.bulk_move_to_folder([keep.id], folder.id) == 1
        assert svc.permanently_delete_note(drop.id) is True
        assert svc.bulk_permanently_delete([drop.id]) == 0
        assert svc.get_note(keep.id).folder_id == folder.id


class TestBoundaryRecords:
    """Plain-record conversion at the facade boundary."""

    def test_create_from_model(self, notebook_service):
        note = notebook_service.create_note(NoteCreate(title="Model", content="c"))
        assert note.content == "c"

    def test_unknown_field_rejected(self, notebook_service):
        with pytest.raises(ValidationError):
            notebook_service.create_note({"title": "A", "tags": ["x"]})

    def test_wrong_type_rejected(self, notebook_service):
        with pytest.raises(ValidationError) as exc_info:
            notebook_service.create_note({"title": "A", "metadata": "tags"})
        assert exc_info.value.field == "metadata"

    def test_non_record_rejected(self, notebook_service):
        with pytest.raises(ValidationError):
            notebook_service.create_note(["A", "x"])

    def test_model_dump_gives_plain_records(self, notebook_service):
        note = notebook_service.create_note({"title": "A", "metadata": {"pinned": True}})
        record = note.model_dump(mode="json")
        assert record["metadata"] == {"pinned": True}
        assert record["deleted"] is False
        assert isinstance(record["updated_at"], str)

    def test_bad_query_record_rejected(self, notebook_service):
        with pytest.raises(ValidationError):
            notebook_service.query_notes({"folder": "x"})


class TestStats:
    """Tests for get_stats."""

    def test_counts(self, notebook_service):
        svc = notebook_service
        svc.create_folder("F")
        a = svc.create_note({"title": "A"})
        svc.create_note({"title": "B"})
        svc.update_note(a.id, {"content": "edited"})
        svc.soft_delete_note(a.id)
        svc.set_setting("theme", "dark")

        stats = svc.get_stats()

        assert stats["notes"] == 2
        assert stats["active_notes"] == 1
        assert stats["trashed_notes"] == 1
        assert stats["folders"] == 1
        assert stats["versions"] == 3
        assert stats["settings"] == 1
