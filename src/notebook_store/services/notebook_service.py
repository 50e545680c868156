"""Service facade for the notebook store.

``NotebookService`` is the single entry point for outer layers such as HTTP
handlers. It wires one SQLAlchemy engine into every repository and service,
converts plain records at the boundary, and traces each operation.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Engine

from notebook_store.config import NotebookConfig
from notebook_store.exceptions import NotebookError, ValidationError
from notebook_store.models.db_models import init_db
from notebook_store.models.schema import (
    Dataset,
    Folder,
    ImportResult,
    Note,
    NoteCreate,
    NoteQuery,
    NoteUpdate,
    NoteVersion,
    Notification,
    NotificationType,
    Setting,
)
from notebook_store.observability import traced
from notebook_store.services.bulk_service import BulkService
from notebook_store.services.notification_center import NotificationCenter
from notebook_store.services.query_service import QueryService
from notebook_store.services.transfer_service import DatasetLike, TransferService
from notebook_store.storage.folder_repository import FolderRepository
from notebook_store.storage.note_repository import NoteRepository
from notebook_store.storage.settings_repository import SettingsRepository
from notebook_store.storage.version_log import VersionLog

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]


def _parse_record(model: Any, record: Any, what: str) -> Any:
    """Validate a boundary record into ``model``.

    Raises:
        ValidationError: If the record has unknown fields or wrong types.
    """
    if isinstance(record, model):
        return record
    if not isinstance(record, Mapping):
        raise ValidationError(f"{what} must be a record", value=type(record).__name__)
    try:
        return model.model_validate(dict(record))
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or None
        raise ValidationError(
            f"Invalid {what}: {first['msg']}", field=field
        ) from e


class NotebookService:
    """Facade over notes, folders, queries, bulk operations and transfer."""

    def __init__(
        self,
        config: Optional[NotebookConfig] = None,
        engine: Optional[Engine] = None,
    ):
        """Wire the store.

        Args:
            config: Store configuration. Defaults are used if None.
            engine: An existing engine to share. Created from ``config``
                with ``init_db`` if None.
        """
        self.config = config or NotebookConfig()
        self.engine = engine if engine is not None else init_db(self.config)

        self.version_log = VersionLog(self.engine)
        self.notes = NoteRepository(self.engine, self.config, self.version_log)
        self.folders = FolderRepository(self.engine)
        self.settings = SettingsRepository(self.engine)
        self.queries = QueryService(self.engine)
        self.bulk = BulkService(self.notes, self.folders)
        self.transfer = TransferService(self.engine)
        self.notifications = NotificationCenter(self.config.notification_limit)

    def close(self) -> None:
        """Release pooled database connections."""
        self.engine.dispose()

    # =========================================================================
    # Notes
    # =========================================================================

    @traced("create_note")
    def create_note(self, record: Union[NoteCreate, Record]) -> Note:
        """Create a note from a ``{title, content, folder_id, metadata}`` record."""
        data = _parse_record(NoteCreate, record, "note record")
        return self.notes.create(
            data.title,
            content=data.content,
            folder_id=data.folder_id,
            metadata=data.metadata,
        )

    @traced("get_note")
    def get_note(self, note_id: str) -> Note:
        return self.notes.get(note_id)

    @traced("update_note")
    def update_note(self, note_id: str, record: Union[NoteUpdate, Record]) -> Note:
        """Partially update a note. Only the keys present in ``record`` change."""
        changes = _parse_record(NoteUpdate, record, "note update")
        return self.notes.update(note_id, changes)

    @traced("soft_delete_note")
    def soft_delete_note(self, note_id: str) -> bool:
        return self.notes.soft_delete(note_id)

    @traced("restore_note")
    def restore_note(self, note_id: str) -> bool:
        return self.notes.restore(note_id)

    @traced("permanently_delete_note")
    def permanently_delete_note(self, note_id: str) -> bool:
        return self.notes.permanently_delete(note_id)

    @traced("list_versions")
    def list_versions(self, note_id: str) -> List[NoteVersion]:
        """Version history of a note, newest first."""
        return self.notes.list_versions(note_id)

    @traced("get_version")
    def get_version(self, note_id: str, version: int) -> NoteVersion:
        return self.notes.get_version(note_id, version)

    @traced("restore_version")
    def restore_version(self, note_id: str, version: int) -> Note:
        return self.bulk.restore_version(note_id, version)

    # =========================================================================
    # Queries
    # =========================================================================

    @traced("query_notes")
    def query_notes(
        self, criteria: Optional[Union[NoteQuery, Record]] = None
    ) -> List[Note]:
        """Run a ``{folder_id?, search_text?, trash_only?}`` query.

        An empty or missing record lists every active note.
        """
        query = _parse_record(NoteQuery, criteria or {}, "query")
        return self.queries.query_notes(query)

    # =========================================================================
    # Folders
    # =========================================================================

    @traced("create_folder")
    def create_folder(self, name: str) -> Folder:
        return self.folders.create(name)

    @traced("get_folder")
    def get_folder(self, folder_id: str) -> Folder:
        return self.folders.get(folder_id)

    @traced("list_folders")
    def list_folders(self) -> List[Folder]:
        return self.folders.list()

    @traced("rename_folder")
    def rename_folder(self, folder_id: str, name: str) -> Folder:
        return self.folders.rename(folder_id, name)

    @traced("delete_folder")
    def delete_folder(self, folder_id: str) -> int:
        """Delete a folder; its notes become uncategorized.

        Returns:
            Number of notes that were detached.
        """
        return self.folders.delete(folder_id)

    # =========================================================================
    # Bulk operations
    # =========================================================================

    @traced("bulk_set_trash")
    def bulk_set_trash(self, note_ids: Iterable[str], to_trash: bool) -> int:
        return self.bulk.bulk_set_trash(note_ids, to_trash)

    @traced("bulk_move_to_folder")
    def bulk_move_to_folder(
        self, note_ids: Iterable[str], folder_id: Optional[str]
    ) -> int:
        return self.bulk.bulk_move_to_folder(note_ids, folder_id)

    @traced("bulk_permanently_delete")
    def bulk_permanently_delete(self, note_ids: Iterable[str]) -> int:
        return self.bulk.bulk_permanently_delete(note_ids)

    # =========================================================================
    # Import / export
    # =========================================================================

    @traced("export_data")
    def export_data(self) -> Dataset:
        return self.transfer.export()

    @traced("export_to_file")
    def export_to_file(self, path: Union[str, Path]) -> Path:
        return self.transfer.export_to_file(path)

    def _notify_import(self, result: ImportResult, replace: bool) -> None:
        verb = "Replaced store with" if replace else "Imported"
        self.notifications.add(
            f"{verb} {result.notes_added} notes and {result.folders_added} folders"
            + (f" ({result.notes_skipped} notes already present)" if result.notes_skipped else ""),
            NotificationType.SUCCESS,
        )

    @traced("import_data")
    def import_data(self, payload: DatasetLike, replace: bool = False) -> ImportResult:
        """Import a dataset, merging by default.

        Args:
            payload: A Dataset or an export-shaped mapping.
            replace: Wipe the store first instead of merging.

        Raises:
            FormatError: If the payload is structurally invalid.
        """
        try:
            if replace:
                result = self.transfer.import_replace(payload)
            else:
                result = self.transfer.import_merge(payload)
        except NotebookError as e:
            self.notifications.add(f"Import failed: {e.message}", NotificationType.ERROR)
            raise
        self._notify_import(result, replace)
        return result

    @traced("import_from_file")
    def import_from_file(
        self, path: Union[str, Path], replace: bool = False
    ) -> ImportResult:
        try:
            result = self.transfer.import_from_file(path, replace=replace)
        except NotebookError as e:
            self.notifications.add(f"Import failed: {e.message}", NotificationType.ERROR)
            raise
        self._notify_import(result, replace)
        return result

    # =========================================================================
    # Settings
    # =========================================================================

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.settings.get_value(key, default)

    @traced("set_setting")
    def set_setting(self, key: str, value: Optional[str]) -> Setting:
        return self.settings.set(key, value)

    def list_settings(self) -> List[Setting]:
        return self.settings.list()

    @traced("delete_setting")
    def delete_setting(self, key: str) -> bool:
        return self.settings.delete(key)

    # =========================================================================
    # Notifications
    # =========================================================================

    def add_notification(
        self, message: str, type: Union[NotificationType, str] = NotificationType.INFO
    ) -> Notification:
        return self.notifications.add(message, type)

    def list_notifications(self, unread_only: bool = False) -> List[Notification]:
        return self.notifications.list(unread_only=unread_only)

    def mark_notification_read(self, notification_id: str) -> bool:
        return self.notifications.mark_read(notification_id)

    def clear_notifications(self) -> int:
        return self.notifications.clear()

    # =========================================================================
    # Stats
    # =========================================================================

    @traced("get_stats")
    def get_stats(self) -> Dict[str, Any]:
        """Counts of notes, trash, folders, versions and settings."""
        total = self.notes.count_notes(include_deleted=True)
        active = self.notes.count_notes(include_deleted=False)
        return {
            "notes": total,
            "active_notes": active,
            "trashed_notes": total - active,
            "folders": len(self.folders.list()),
            "versions": self.version_log.count(),
            "settings": len(self.settings.list()),
            "notifications": len(self.notifications),
        }
