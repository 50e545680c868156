"""Append-only log of note snapshots.

Each note owns a dense sequence of snapshots numbered 1..note.version.
Writes always happen inside the session of the note mutation that produced
them, so a note and its newest snapshot are committed (or rolled back)
together.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from notebook_store.exceptions import ErrorCode, StorageError
from notebook_store.models.db_models import DBNote, DBNoteVersion, get_session_factory
from notebook_store.models.schema import NoteVersion, ensure_timezone_aware

logger = logging.getLogger(__name__)


class VersionLog:
    """Storage for immutable per-note version snapshots."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = get_session_factory(engine)

    @staticmethod
    def head_version(session: Session, note_id: str) -> int:
        """Highest snapshot number stored for a note (0 when none)."""
        return session.scalar(
            select(func.coalesce(func.max(DBNoteVersion.version), 0)).where(
                DBNoteVersion.note_id == note_id
            )
        )

    def append(self, session: Session, db_note: DBNote) -> DBNoteVersion:
        """Record the current state of ``db_note`` as its snapshot.

        The note's ``version`` must already have been advanced to the number
        of the snapshot being written. The caller commits.

        Raises:
            StorageError: If the write would leave a gap or overwrite an
                existing snapshot.
        """
        head = self.head_version(session, db_note.id)
        if db_note.version != head + 1:
            raise StorageError(
                f"Version log for note {db_note.id} is at {head}, "
                f"cannot append version {db_note.version}",
                operation="append_version",
                code=ErrorCode.STORAGE_WRITE_FAILED,
            )

        snapshot = DBNoteVersion(
            note_id=db_note.id,
            version=db_note.version,
            title=db_note.title,
            content=db_note.content,
            snapshot_metadata=dict(db_note.note_metadata or {}),
            saved_at=db_note.updated_at,
        )
        session.add(snapshot)
        logger.debug(f"Appended version {db_note.version} for note {db_note.id}")
        return snapshot

    def list_versions(self, note_id: str) -> List[NoteVersion]:
        """All snapshots of a note, newest first."""
        with self.session_factory() as session:
            rows = session.scalars(
                select(DBNoteVersion)
                .where(DBNoteVersion.note_id == note_id)
                .order_by(DBNoteVersion.version.desc())
            ).all()
            return [self.to_model(row) for row in rows]

    def get_version(self, note_id: str, version: int) -> Optional[NoteVersion]:
        """One snapshot, or None when that (note, version) pair is unknown."""
        with self.session_factory() as session:
            row = session.get(DBNoteVersion, (note_id, version))
            return self.to_model(row) if row else None

    def count(self, note_id: Optional[str] = None) -> int:
        """Number of snapshots for one note, or in the whole store."""
        with self.session_factory() as session:
            query = select(func.count()).select_from(DBNoteVersion)
            if note_id is not None:
                query = query.where(DBNoteVersion.note_id == note_id)
            return session.scalar(query) or 0

    @staticmethod
    def delete_for_note(session: Session, note_id: str) -> int:
        """Remove a note's whole history. Only permanent deletion calls this."""
        result = session.execute(
            delete(DBNoteVersion).where(DBNoteVersion.note_id == note_id)
        )
        return result.rowcount or 0

    @staticmethod
    def to_model(row: DBNoteVersion) -> NoteVersion:
        """Convert a snapshot row to its pydantic model."""
        return NoteVersion(
            note_id=row.note_id,
            version=row.version,
            title=row.title,
            content=row.content,
            metadata=dict(row.snapshot_metadata or {}),
            saved_at=ensure_timezone_aware(row.saved_at),
        )
