"""Tests for note queries: folder, search text and trash filters."""
import time

import pytest

from notebook_store.models.schema import NoteQuery


@pytest.fixture
def two_folders(folder_repository):
    return folder_repository.create("F"), folder_repository.create("G")


class TestFolderFilter:
    """Tests for the folder filter."""

    def test_exact_folder_match(self, note_repository, query_service, two_folders):
        f, g = two_folders
        in_f = note_repository.create("in f", folder_id=f.id)
        note_repository.create("in g", folder_id=g.id)
        note_repository.create("loose")

        assert [n.id for n in query_service.query(folder_id=f.id)] == [in_f.id]

    @pytest.mark.parametrize("folder_id", [None, "all"])
    def test_wildcard_matches_every_folder(
        self, note_repository, query_service, two_folders, folder_id
    ):
        f, _ = two_folders
        note_repository.create("in f", folder_id=f.id)
        note_repository.create("loose")

        assert len(query_service.query(folder_id=folder_id)) == 2

    def test_unknown_folder_matches_nothing(self, note_repository, query_service):
        note_repository.create("loose")
        assert query_service.query(folder_id="nope") == []


class TestSearchText:
    """Tests for the free-text filter."""

    def test_matches_title_or_content_case_insensitively(
        self, note_repository, query_service
    ):
        by_title = note_repository.create("Shopping LIST", "milk")
        by_content = note_repository.create("Errands", "a list of things")
        note_repository.create("Other", "nothing here")

        ids = {n.id for n in query_service.query(search_text="list")}
        assert ids == {by_title.id, by_content.id}

    def test_non_ascii_case_folding(self, note_repository, query_service):
        title_match = note_repository.create("Über Notes", "")
        content_match = note_repository.create("Street", "GROSSE STRASSE")

        assert [n.id for n in query_service.query(search_text="über")] == [title_match.id]
        assert [n.id for n in query_service.query(search_text="große")] == [content_match.id]

    def test_like_wildcards_are_literal(self, note_repository, query_service):
        literal = note_repository.create("Progress", "100% done")
        note_repository.create("Other", "1000 done")

        assert [n.id for n in query_service.query(search_text="0%")] == [literal.id]
        assert query_service.query(search_text="_") == []

    def test_empty_search_matches_everything(self, note_repository, query_service):
        note_repository.create("A")
        note_repository.create("B")
        assert len(query_service.query(search_text="")) == 2


class TestTrashFilter:
    """Tests for the active/trash split."""

    def test_active_and_trash_are_disjoint(self, note_repository, query_service):
        active = note_repository.create("Active")
        trashed = note_repository.create("Trashed")
        note_repository.soft_delete(trashed.id)

        assert [n.id for n in query_service.query()] == [active.id]
        assert [n.id for n in query_service.query(trash_only=True)] == [trashed.id]

    def test_filters_combine(self, note_repository, query_service, two_folders):
        f, _ = two_folders
        match = note_repository.create("cat notes", folder_id=f.id)
        note_repository.soft_delete(match.id)
        note_repository.create("cat active", folder_id=f.id)

        results = query_service.query(folder_id=f.id, search_text="CAT", trash_only=True)
        assert [n.id for n in results] == [match.id]


class TestOrderingAndCount:
    """Tests for result order, structured queries and count."""

    def test_most_recently_updated_first(self, note_repository, query_service):
        first = note_repository.create("first")
        time.sleep(0.01)
        second = note_repository.create("second")
        time.sleep(0.01)
        note_repository.update(first.id, {"content": "touched"})

        assert [n.id for n in query_service.query()] == [first.id, second.id]

    def test_query_notes_record(self, note_repository, query_service, two_folders):
        f, _ = two_folders
        note = note_repository.create("x", folder_id=f.id)
        criteria = NoteQuery(folder_id=f.id)
        assert [n.id for n in query_service.query_notes(criteria)] == [note.id]

    def test_count_matches_query(self, note_repository, query_service):
        for i in range(3):
            note_repository.create(f"alpha {i}")
        note_repository.create("beta")

        assert query_service.count(search_text="alpha") == 3
        assert query_service.count() == 4
        assert query_service.count(trash_only=True) == 0


class TestSearchScenario:
    """Folder and search filters over a small mixed corpus."""

    def test_folder_and_search_intersection(
        self, note_repository, query_service, two_folders
    ):
        f, g = two_folders
        category = note_repository.create("Category A", folder_id=f.id)
        note_repository.create("dog", folder_id=f.id)
        note_repository.create("cat food", folder_id=g.id)

        results = query_service.query(folder_id=f.id, search_text="cat")
        assert [n.id for n in results] == [category.id]
