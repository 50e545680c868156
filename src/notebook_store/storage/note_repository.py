"""Repository for note storage and retrieval.

Notes live in the ``notes`` table; every content-affecting write also
appends a snapshot to the version log inside the same transaction. Writes to
one note are serialized with a per-note lock, while writes to different
notes proceed independently.
"""

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from notebook_store.config import NotebookConfig
from notebook_store.exceptions import (
    ErrorCode,
    NoteNotFoundError,
    ValidationError,
    VersionNotFoundError,
)
from notebook_store.models.db_models import DBFolder, DBNote
from notebook_store.models.schema import (
    Note,
    NoteUpdate,
    NoteVersion,
    ensure_timezone_aware,
    generate_id,
    utc_now,
)
from notebook_store.storage.base import Repository
from notebook_store.storage.version_log import VersionLog

logger = logging.getLogger(__name__)


class NoteRepository(Repository[Note]):
    """Repository for notes and their version history.

    Versioning policy:
    - ``create`` writes snapshot 1.
    - ``update`` always advances the version and appends a snapshot, even
      when the only change is the ``deleted`` flag.
    - ``soft_delete``, ``restore`` and folder detaching refresh
      ``updated_at`` but never touch the version log.
    """

    def __init__(
        self,
        engine: Engine,
        config: Optional[NotebookConfig] = None,
        version_log: Optional[VersionLog] = None,
    ):
        """Initialize the repository.

        Args:
            engine: SQLAlchemy engine shared by all repositories.
            config: Store configuration (title validation mode). Defaults
                are used if None.
            version_log: Version log to write snapshots to. Created on the
                same engine if None.
        """
        super().__init__(engine)
        self.config = config or NotebookConfig()
        self.versions = version_log or VersionLog(engine)

        # Per-note locks (WeakValueDictionary so locks are garbage collected
        # once no thread holds them)
        self._note_locks: weakref.WeakValueDictionary[str, threading.RLock] = (
            weakref.WeakValueDictionary()
        )
        self._note_locks_lock = threading.Lock()  # Protects _note_locks dict access

        logger.info(
            f"NoteRepository initialized: title_required={self.config.title_required}"
        )

    # =========================================================================
    # Locking and conversion helpers
    # =========================================================================

    def _get_note_lock(self, note_id: str) -> threading.RLock:
        """Get or create the lock for a specific note.

        Args:
            note_id: The ID of the note to lock.

        Returns:
            A reentrant lock for the specified note.
        """
        with self._note_locks_lock:
            lock = self._note_locks.get(note_id)
            if lock is None:
                lock = threading.RLock()
                self._note_locks[note_id] = lock
            return lock

    @contextmanager
    def note_lock(self, note_id: str) -> Iterator[None]:
        """Hold the single-writer lock of one note.

        Reentrant, so operations composed from several repository calls
        (restore a version, bulk items) can hold it across those calls.
        """
        lock = self._get_note_lock(note_id)
        with lock:
            yield

    @staticmethod
    def to_model(db_note: DBNote) -> Note:
        """Convert a note row to its pydantic model."""
        return Note(
            id=db_note.id,
            title=db_note.title,
            content=db_note.content,
            folder_id=db_note.folder_id,
            metadata=dict(db_note.note_metadata or {}),
            created_at=ensure_timezone_aware(db_note.created_at),
            updated_at=ensure_timezone_aware(db_note.updated_at),
            deleted=bool(db_note.is_deleted),
            version=db_note.version,
        )

    def _check_title(self, title: Optional[str]) -> str:
        if title is None:
            title = ""
        if not isinstance(title, str):
            raise ValidationError("Title must be a string", field="title", value=title)
        if self.config.title_required and not title.strip():
            raise ValidationError(
                "Title is required",
                field="title",
                code=ErrorCode.NOTE_TITLE_REQUIRED,
            )
        return title

    @staticmethod
    def _check_folder(session: Session, folder_id: Optional[str]) -> None:
        if folder_id is None:
            return
        if session.get(DBFolder, folder_id) is None:
            raise ValidationError(
                f"Folder '{folder_id}' does not exist",
                field="folder_id",
                value=folder_id,
            )

    @staticmethod
    def _check_metadata(metadata: Any) -> Dict[str, Any]:
        if metadata is None:
            return {}
        if not isinstance(metadata, dict):
            raise ValidationError(
                "Metadata must be a mapping", field="metadata", value=metadata
            )
        return dict(metadata)

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, id: str) -> Note:
        """Get a note by ID, including notes in the trash.

        Raises:
            NoteNotFoundError: If the note does not exist.
        """
        with self.session_factory() as session:
            db_note = session.get(DBNote, id)
            if db_note is None:
                raise NoteNotFoundError(id)
            return self.to_model(db_note)

    def exists(self, id: str) -> bool:
        with self.session_factory() as session:
            return session.get(DBNote, id) is not None

    def list(self) -> List[Note]:
        """All notes, active and trashed, oldest first."""
        with self.session_factory() as session:
            rows = session.scalars(
                select(DBNote).order_by(DBNote.created_at, DBNote.id)
            ).all()
            return [self.to_model(row) for row in rows]

    def count_notes(self, include_deleted: bool = True) -> int:
        """Number of stored notes, optionally excluding the trash."""
        with self.session_factory() as session:
            query = select(func.count(DBNote.id))
            if not include_deleted:
                query = query.where(DBNote.is_deleted.is_(False))
            return session.scalar(query) or 0

    def list_versions(self, note_id: str) -> List[NoteVersion]:
        """Version history of a note, newest first.

        Raises:
            NoteNotFoundError: If the note does not exist.
        """
        if not self.exists(note_id):
            raise NoteNotFoundError(note_id)
        return self.versions.list_versions(note_id)

    def get_version(self, note_id: str, version: int) -> NoteVersion:
        """One snapshot of a note.

        Raises:
            NoteNotFoundError: If the note does not exist.
            VersionNotFoundError: If the note has no such version.
        """
        if not self.exists(note_id):
            raise NoteNotFoundError(note_id)
        snapshot = self.versions.get_version(note_id, version)
        if snapshot is None:
            raise VersionNotFoundError(note_id, version)
        return snapshot

    # =========================================================================
    # Writes
    # =========================================================================

    def create(
        self,
        title: Optional[str],
        content: Optional[str] = "",
        folder_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Note:
        """Create a note and record it as version 1.

        Raises:
            ValidationError: If the title is required but blank, the content
                is not a string, the folder does not exist, or metadata is
                not a mapping.
            StorageError: If the database write fails.
        """
        title = self._check_title(title)
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise ValidationError("Content must be a string", field="content")
        metadata = self._check_metadata(metadata)

        now = utc_now()
        with self.write_session("create_note") as session:
            self._check_folder(session, folder_id)
            db_note = DBNote(
                id=generate_id(),
                title=title,
                content=content,
                folder_id=folder_id,
                note_metadata=metadata,
                created_at=now,
                updated_at=now,
                is_deleted=False,
                version=1,
            )
            session.add(db_note)
            session.flush()
            self.versions.append(session, db_note)
        note = self.to_model(db_note)

        logger.info(f"Created note {note.id}")
        return note

    def update(
        self,
        note_id: str,
        changes: Union[NoteUpdate, Dict[str, Any]],
        check_title: bool = True,
    ) -> Note:
        """Apply a partial update and append the resulting snapshot.

        Args:
            note_id: Note to update.
            changes: Fields to change. Fields that are not supplied keep
                their stored value.
            check_title: Apply the configured title requirement. Version
                restores turn this off so any recorded state can come back.

        Raises:
            NoteNotFoundError: If the note does not exist.
            ValidationError: If a supplied field is invalid.
            StorageError: If the database write fails.
        """
        if isinstance(changes, dict):
            try:
                changes = NoteUpdate.model_validate(changes)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid note update: {e}") from e

        provided = changes.provided_fields()

        with self.note_lock(note_id):
            with self.write_session("update_note") as session:
                db_note = session.get(DBNote, note_id)
                if db_note is None:
                    raise NoteNotFoundError(note_id)

                if "title" in provided:
                    if changes.title is None:
                        raise ValidationError("Title cannot be null", field="title")
                    db_note.title = (
                        self._check_title(changes.title) if check_title else changes.title
                    )
                if "content" in provided:
                    if changes.content is None:
                        raise ValidationError("Content cannot be null", field="content")
                    db_note.content = changes.content
                if "folder_id" in provided:
                    self._check_folder(session, changes.folder_id)
                    db_note.folder_id = changes.folder_id
                if "metadata" in provided:
                    db_note.note_metadata = self._check_metadata(changes.metadata)
                if "deleted" in provided:
                    if changes.deleted is None:
                        raise ValidationError("Deleted flag cannot be null", field="deleted")
                    db_note.is_deleted = changes.deleted

                db_note.version = db_note.version + 1
                db_note.updated_at = utc_now()
                self.versions.append(session, db_note)
            note = self.to_model(db_note)

        logger.debug(f"Updated note {note_id} to version {note.version}")
        return note

    def _set_trash(self, note_id: str, deleted: bool) -> bool:
        with self.note_lock(note_id):
            operation = "soft_delete" if deleted else "restore"
            with self.write_session(operation) as session:
                db_note = session.get(DBNote, note_id)
                if db_note is None:
                    logger.debug(f"Note {note_id} not found, trash change skipped")
                    return False
                if bool(db_note.is_deleted) == deleted:
                    return True
                db_note.is_deleted = deleted
                db_note.updated_at = utc_now()
        logger.info(f"{'Trashed' if deleted else 'Restored'} note {note_id}")
        return True

    def soft_delete(self, note_id: str) -> bool:
        """Move a note to the trash without recording a version.

        Idempotent: trashing a trashed note or an unknown ID succeeds.

        Returns:
            True if the note exists (and is now in the trash).
        """
        return self._set_trash(note_id, True)

    def restore(self, note_id: str) -> bool:
        """Take a note out of the trash without recording a version.

        Idempotent: restoring an active note or an unknown ID succeeds.

        Returns:
            True if the note exists (and is now active).
        """
        return self._set_trash(note_id, False)

    def permanently_delete(self, note_id: str) -> bool:
        """Remove a note and its whole version history.

        Deleting an unknown ID is a success.

        Returns:
            True if a note was removed.
        """
        with self.note_lock(note_id):
            with self.write_session(
                "permanently_delete", code=ErrorCode.STORAGE_DELETE_FAILED
            ) as session:
                if session.get(DBNote, note_id) is None:
                    return False
                removed_versions = self.versions.delete_for_note(session, note_id)
                session.execute(delete(DBNote).where(DBNote.id == note_id))
        logger.info(
            f"Permanently deleted note {note_id} ({removed_versions} versions)"
        )
        return True

    @staticmethod
    def detach_folder(session: Session, folder_id: str) -> int:
        """Move every note of a folder to uncategorized.

        A structural relocation: ``updated_at`` is refreshed but no version
        is recorded. Runs in the caller's session so it commits together
        with the folder removal.

        Returns:
            Number of notes detached.
        """
        result = session.execute(
            update(DBNote)
            .where(DBNote.folder_id == folder_id)
            .values(folder_id=None, updated_at=utc_now())
        )
        return result.rowcount or 0
