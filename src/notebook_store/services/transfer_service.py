"""Whole-store export and import.

Export produces a ``Dataset`` describing one consistent moment of the
store. Import merges a dataset back in with insert-if-absent semantics: an
identity already present locally is never overwritten, and re-importing the
same dataset changes nothing. A structurally invalid dataset is rejected as
a whole before anything is written.
"""

import json
import logging
from collections import Counter, defaultdict
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Set, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notebook_store.exceptions import ErrorCode, FormatError, StorageError
from notebook_store.models.db_models import DBFolder, DBNote, DBNoteVersion, DBSetting
from notebook_store.models.schema import Dataset, ImportResult
from notebook_store.storage.folder_repository import FolderRepository
from notebook_store.storage.note_repository import NoteRepository
from notebook_store.storage.version_log import VersionLog

logger = logging.getLogger(__name__)

DatasetLike = Union[Dataset, Mapping[str, Any]]


class TransferService:
    """Serializes the store to a portable dataset and merges datasets back."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._folders = FolderRepository(engine)

    @contextmanager
    def _transaction(self, write: bool) -> Iterator[Session]:
        """Session pinned to one explicit SQLite transaction.

        Reads then see a single snapshot of all tables. Writes take the
        database write lock up front (BEGIN IMMEDIATE) so validation and
        inserts run against the same state.
        """
        with self.engine.connect() as conn:
            conn.exec_driver_sql("BEGIN IMMEDIATE" if write else "BEGIN")
            session = Session(bind=conn, expire_on_commit=False)
            try:
                yield session
                if write:
                    session.flush()
                    conn.commit()
                else:
                    conn.rollback()
            except BaseException:
                conn.rollback()
                raise
            finally:
                session.close()

    # =========================================================================
    # Export
    # =========================================================================

    def export(self) -> Dataset:
        """Snapshot every folder, note, version and setting.

        Raises:
            StorageError: If the snapshot cannot be read.
        """
        try:
            return self._export()
        except SQLAlchemyError as e:
            logger.error(f"Export failed: {e}")
            raise StorageError(
                "Export failed",
                operation="export",
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

    def _export(self) -> Dataset:
        with self._transaction(write=False) as session:
            folders = session.scalars(
                select(DBFolder).order_by(DBFolder.created_at, DBFolder.id)
            ).all()
            notes = session.scalars(
                select(DBNote).order_by(DBNote.created_at, DBNote.id)
            ).all()
            versions = session.scalars(
                select(DBNoteVersion).order_by(
                    DBNoteVersion.note_id, DBNoteVersion.version
                )
            ).all()
            settings = session.scalars(select(DBSetting).order_by(DBSetting.key)).all()

            dataset = Dataset(
                folders=[self._folders._db_to_model(row) for row in folders],
                notes=[NoteRepository.to_model(row) for row in notes],
                versions=[VersionLog.to_model(row) for row in versions],
                settings=[
                    {"key": row.key, "value": row.value} for row in settings
                ],
            )

        logger.info(
            f"Exported {len(dataset.folders)} folders, {len(dataset.notes)} notes, "
            f"{len(dataset.versions)} versions, {len(dataset.settings)} settings"
        )
        return dataset

    def export_json(self, indent: int = 2) -> str:
        """Export as a JSON document."""
        return json.dumps(self.export().model_dump(mode="json"), indent=indent)

    def export_to_file(self, path: Union[str, Path]) -> Path:
        """Export to a JSON file.

        Returns:
            Path to exported file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.export_json())
        logger.info(f"Exported notebook to {path}")
        return path

    # =========================================================================
    # Import
    # =========================================================================

    @staticmethod
    def parse_dataset(payload: Any) -> Dataset:
        """Turn a payload into a Dataset.

        Raises:
            FormatError: If the payload is not a mapping or a field has the
                wrong shape.
        """
        if isinstance(payload, Dataset):
            return payload
        if not isinstance(payload, Mapping):
            raise FormatError(
                "Import payload must be an object with folders, notes and versions",
                problems=[f"payload is {type(payload).__name__}"],
            )
        try:
            return Dataset.model_validate(dict(payload))
        except PydanticValidationError as e:
            problems = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise FormatError(
                "Import payload is malformed", problems=problems, original_error=e
            ) from e

    @staticmethod
    def _duplicates(values: List[Any]) -> List[Any]:
        return [value for value, seen in Counter(values).items() if seen > 1]

    def _structural_problems(
        self,
        dataset: Dataset,
        local_folders: Set[str],
        local_notes: Set[str],
    ) -> List[str]:
        """Collect every reason the dataset cannot be merged.

        Args:
            dataset: Parsed payload.
            local_folders: Folder IDs already in the store.
            local_notes: Note IDs already in the store.
        """
        problems: List[str] = []

        for folder_id in self._duplicates([f.id for f in dataset.folders]):
            problems.append(f"duplicate folder id {folder_id}")
        for note_id in self._duplicates([n.id for n in dataset.notes]):
            problems.append(f"duplicate note id {note_id}")
        for note_id, version in self._duplicates(
            [(v.note_id, v.version) for v in dataset.versions]
        ):
            problems.append(f"duplicate version {version} of note {note_id}")
        for key in self._duplicates([s.key for s in dataset.settings]):
            problems.append(f"duplicate setting key {key}")

        known_folders = local_folders | {f.id for f in dataset.folders}
        for note in dataset.notes:
            if note.folder_id is not None and note.folder_id not in known_folders:
                problems.append(
                    f"note {note.id} references unknown folder {note.folder_id}"
                )

        known_notes = local_notes | {n.id for n in dataset.notes}
        incoming_versions: Dict[str, Set[int]] = defaultdict(set)
        for snapshot in dataset.versions:
            if snapshot.note_id not in known_notes:
                problems.append(
                    f"version {snapshot.version} references unknown note {snapshot.note_id}"
                )
            incoming_versions[snapshot.note_id].add(snapshot.version)

        # A note that will be inserted must bring its complete history
        for note in dataset.notes:
            if note.id in local_notes:
                continue
            expected = set(range(1, note.version + 1))
            if incoming_versions.get(note.id, set()) != expected:
                problems.append(
                    f"note {note.id} at version {note.version} does not carry "
                    f"versions 1..{note.version}"
                )

        return problems

    @staticmethod
    def _insert(
        session: Session,
        dataset: Dataset,
        local_folders: Set[str],
        local_notes: Set[str],
        local_settings: Set[str],
    ) -> ImportResult:
        result = ImportResult()

        for folder in dataset.folders:
            if folder.id in local_folders:
                result.folders_skipped += 1
                continue
            session.add(
                DBFolder(id=folder.id, name=folder.name, created_at=folder.created_at)
            )
            result.folders_added += 1
        session.flush()

        inserted_notes: Set[str] = set()
        for note in dataset.notes:
            if note.id in local_notes:
                result.notes_skipped += 1
                continue
            session.add(
                DBNote(
                    id=note.id,
                    title=note.title,
                    content=note.content,
                    folder_id=note.folder_id,
                    note_metadata=dict(note.metadata),
                    created_at=note.created_at,
                    updated_at=note.updated_at,
                    is_deleted=note.deleted,
                    version=note.version,
                )
            )
            inserted_notes.add(note.id)
            result.notes_added += 1
        session.flush()

        # Local notes keep their own history; only new notes get snapshots
        for snapshot in dataset.versions:
            if snapshot.note_id not in inserted_notes:
                result.versions_skipped += 1
                continue
            session.add(
                DBNoteVersion(
                    note_id=snapshot.note_id,
                    version=snapshot.version,
                    title=snapshot.title,
                    content=snapshot.content,
                    snapshot_metadata=dict(snapshot.metadata),
                    saved_at=snapshot.saved_at,
                )
            )
            result.versions_added += 1

        for setting in dataset.settings:
            if setting.key in local_settings:
                result.settings_skipped += 1
                continue
            session.add(DBSetting(key=setting.key, value=setting.value))
            result.settings_added += 1

        return result

    @staticmethod
    def _local_ids(session: Session) -> Tuple[Set[str], Set[str], Set[str]]:
        return (
            set(session.scalars(select(DBFolder.id))),
            set(session.scalars(select(DBNote.id))),
            set(session.scalars(select(DBSetting.key))),
        )

    def import_merge(self, payload: DatasetLike) -> ImportResult:
        """Merge a dataset into the store, inserting only unknown identities.

        Args:
            payload: A Dataset or a mapping shaped like the export payload.

        Returns:
            Per-collection counts of inserted and skipped rows.

        Raises:
            FormatError: If the dataset is structurally invalid. Nothing is
                written in that case.
            StorageError: If the database rejects the write. The whole import
                is rolled back.
        """
        dataset = self.parse_dataset(payload)
        try:
            with self._transaction(write=True) as session:
                local_folders, local_notes, local_settings = self._local_ids(session)
                problems = self._structural_problems(dataset, local_folders, local_notes)
                if problems:
                    raise FormatError(
                        f"Import rejected: {len(problems)} structural problem(s)",
                        problems=problems,
                    )
                result = self._insert(
                    session, dataset, local_folders, local_notes, local_settings
                )
        except SQLAlchemyError as e:
            logger.error(f"Import failed, rolled back: {e}")
            raise StorageError(
                "Import failed",
                operation="import_merge",
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

        logger.info(
            f"Imported {result.folders_added} folders, {result.notes_added} notes, "
            f"{result.versions_added} versions, {result.settings_added} settings "
            f"({result.notes_skipped} notes already present)"
        )
        return result

    def import_replace(self, payload: DatasetLike) -> ImportResult:
        """Replace the entire store with a dataset.

        Destructive: every local folder, note, version and setting is removed
        first. Validation runs before anything is deleted.

        Raises:
            FormatError: If the dataset is structurally invalid.
            StorageError: If the database rejects the write.
        """
        dataset = self.parse_dataset(payload)
        problems = self._structural_problems(dataset, set(), set())
        if problems:
            raise FormatError(
                f"Import rejected: {len(problems)} structural problem(s)",
                problems=problems,
            )

        try:
            with self._transaction(write=True) as session:
                session.execute(delete(DBNoteVersion))
                session.execute(delete(DBNote))
                session.execute(delete(DBFolder))
                session.execute(delete(DBSetting))
                result = self._insert(session, dataset, set(), set(), set())
        except SQLAlchemyError as e:
            logger.error(f"Replace import failed, rolled back: {e}")
            raise StorageError(
                "Import failed",
                operation="import_replace",
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

        logger.warning(
            f"Replaced store contents with {result.notes_added} notes "
            f"and {result.folders_added} folders"
        )
        return result

    def import_from_file(
        self, path: Union[str, Path], replace: bool = False
    ) -> ImportResult:
        """Import a JSON file written by ``export_to_file``.

        Raises:
            FormatError: If the file is not valid JSON or not a valid dataset.
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except json.JSONDecodeError as e:
            raise FormatError(
                f"Import file {path.name} is not valid JSON",
                code=ErrorCode.IMPORT_FILE_UNREADABLE,
                original_error=e,
            ) from e

        if replace:
            return self.import_replace(payload)
        return self.import_merge(payload)
