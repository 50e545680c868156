"""Set-wise state transitions and version restores.

Bulk operations are sequences of single-note operations, each serialized
on its own note lock. They are atomic per item, not across the batch, and
unknown identifiers are skipped.
"""

import logging
from typing import Iterable, Optional

from notebook_store.exceptions import ValidationError
from notebook_store.models.schema import Note, NoteUpdate
from notebook_store.storage.folder_repository import FolderRepository
from notebook_store.storage.note_repository import NoteRepository
from notebook_store.utils import normalize_id_batch

logger = logging.getLogger(__name__)


class BulkService:
    """Coordinates batch trash changes, moves and version restores."""

    def __init__(
        self,
        notes: NoteRepository,
        folders: Optional[FolderRepository] = None,
    ):
        self.notes = notes
        self.folders = folders or FolderRepository(notes.engine)

    def bulk_set_trash(self, note_ids: Iterable[str], to_trash: bool) -> int:
        """Move many notes into or out of the trash.

        Args:
            note_ids: Identifiers to change. Unknown IDs are skipped.
            to_trash: True to soft-delete, False to restore.

        Returns:
            Number of existing notes now in the requested state.

        Raises:
            BulkOperationError: If ``note_ids`` is not a collection of
                non-empty strings.
        """
        ids = normalize_id_batch(note_ids, "bulk_set_trash")
        apply = self.notes.soft_delete if to_trash else self.notes.restore

        applied = 0
        for note_id in ids:
            if apply(note_id):
                applied += 1

        skipped = len(ids) - applied
        logger.info(
            f"bulk_set_trash(to_trash={to_trash}): {applied} applied, "
            f"{skipped} unknown IDs skipped"
        )
        return applied

    def bulk_move_to_folder(
        self, note_ids: Iterable[str], folder_id: Optional[str]
    ) -> int:
        """Move many notes to a folder (or to uncategorized with None).

        Each move goes through the versioned update path.

        Returns:
            Number of notes moved.

        Raises:
            BulkOperationError: If ``note_ids`` is malformed.
            ValidationError: If the target folder does not exist. Checked
                before any note is touched.
        """
        ids = normalize_id_batch(note_ids, "bulk_move_to_folder")
        if folder_id is not None and not self.folders.exists(folder_id):
            raise ValidationError(
                f"Folder '{folder_id}' does not exist",
                field="folder_id",
                value=folder_id,
            )

        moved = 0
        for note_id in ids:
            with self.notes.note_lock(note_id):
                if not self.notes.exists(note_id):
                    continue
                self.notes.update(note_id, NoteUpdate(folder_id=folder_id))
                moved += 1

        logger.info(f"bulk_move_to_folder({folder_id}): moved {moved} of {len(ids)}")
        return moved

    def bulk_permanently_delete(self, note_ids: Iterable[str]) -> int:
        """Permanently delete many notes with their histories.

        Returns:
            Number of notes removed.
        """
        ids = normalize_id_batch(note_ids, "bulk_permanently_delete")
        removed = sum(1 for note_id in ids if self.notes.permanently_delete(note_id))
        logger.info(f"bulk_permanently_delete: removed {removed} of {len(ids)}")
        return removed

    def restore_version(self, note_id: str, version: int) -> Note:
        """Bring back the title, content and metadata of an earlier version.

        The restored state is recorded as a new head version; version
        numbers are never reused or rewound. The trash flag and folder are
        left as they are.

        Raises:
            NoteNotFoundError: If the note does not exist.
            VersionNotFoundError: If the note has no such version.
        """
        with self.notes.note_lock(note_id):
            snapshot = self.notes.get_version(note_id, version)
            note = self.notes.update(
                note_id,
                NoteUpdate(
                    title=snapshot.title,
                    content=snapshot.content,
                    metadata=snapshot.metadata,
                ),
                check_title=False,
            )

        logger.info(
            f"Restored note {note_id} to version {version} as version {note.version}"
        )
        return note
