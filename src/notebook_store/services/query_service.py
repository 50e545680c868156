"""Read-only note queries: folder, free-text and trash filters."""

import logging
from typing import Any, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.engine import Engine

from notebook_store.models.db_models import DBNote, get_session_factory
from notebook_store.models.schema import ALL_FOLDERS, Note, NoteQuery
from notebook_store.storage.note_repository import NoteRepository
from notebook_store.utils import escape_like_pattern

logger = logging.getLogger(__name__)


class QueryService:
    """Filters notes by folder, search text and trash status.

    All filters combine with AND. Results are ordered most recently touched
    first and are not paginated. Queries never take note locks, so a result
    may lag a write that is committing concurrently.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = get_session_factory(engine)

    @staticmethod
    def _apply_filters(
        query: Any,
        folder_id: Optional[str],
        search_text: Optional[str],
        trash_only: bool,
    ) -> Any:
        """Add the WHERE clauses for one query."""
        if folder_id is not None and folder_id != ALL_FOLDERS:
            query = query.where(DBNote.folder_id == folder_id)
        if search_text:
            pattern = f"%{escape_like_pattern(search_text.casefold())}%"
            query = query.where(
                or_(
                    func.casefold(DBNote.title).like(pattern, escape="\\"),
                    func.casefold(DBNote.content).like(pattern, escape="\\"),
                )
            )
        query = query.where(DBNote.is_deleted.is_(bool(trash_only)))
        return query

    def query(
        self,
        folder_id: Optional[str] = None,
        search_text: Optional[str] = None,
        trash_only: bool = False,
    ) -> List[Note]:
        """Find notes matching every supplied filter.

        Args:
            folder_id: Exact folder match; None or "all" matches any folder.
            search_text: Case-insensitive substring of the title or content.
                LIKE wildcards in it are matched literally.
            trash_only: False for active notes only, True for trashed only.

        Returns:
            Matching notes, most recently updated first.
        """
        with self.session_factory() as session:
            query = self._apply_filters(
                select(DBNote), folder_id, search_text, trash_only
            )
            query = query.order_by(DBNote.updated_at.desc(), DBNote.id)
            rows = session.scalars(query).all()
            notes = [NoteRepository.to_model(row) for row in rows]

        logger.debug(
            f"Query folder={folder_id} search={search_text!r} "
            f"trash_only={trash_only}: {len(notes)} notes"
        )
        return notes

    def query_notes(self, criteria: NoteQuery) -> List[Note]:
        """Run a query described by a structured ``NoteQuery`` record."""
        return self.query(
            folder_id=criteria.folder_id,
            search_text=criteria.search_text,
            trash_only=criteria.trash_only,
        )

    def count(
        self,
        folder_id: Optional[str] = None,
        search_text: Optional[str] = None,
        trash_only: bool = False,
    ) -> int:
        """Count notes matching the same filters as ``query`` without loading them."""
        with self.session_factory() as session:
            query = self._apply_filters(
                select(func.count(DBNote.id)), folder_id, search_text, trash_only
            )
            return session.scalar(query) or 0
