"""Repository for folder storage and retrieval."""
import logging
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine

from notebook_store.exceptions import ErrorCode, FolderNotFoundError, ValidationError
from notebook_store.models.db_models import DBFolder, DBNote
from notebook_store.models.schema import Folder, ensure_timezone_aware, generate_id, utc_now
from notebook_store.storage.base import Repository
from notebook_store.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)


class FolderRepository(Repository[Folder]):
    """Repository for folders.

    Folder references from notes are weak: deleting a folder moves its
    notes to uncategorized in the same transaction and never deletes them.
    """

    def __init__(self, engine: Engine):
        """Initialize the repository.

        Args:
            engine: SQLAlchemy engine shared by all repositories.
        """
        super().__init__(engine)
        logger.info("FolderRepository initialized")

    @staticmethod
    def _check_name(name: Optional[str]) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(
                "Folder name cannot be empty",
                field="name",
                code=ErrorCode.FOLDER_NAME_REQUIRED,
            )
        return name

    def create(self, name: str) -> Folder:
        """Create a new folder.

        Args:
            name: Display name. Need not be unique.

        Returns:
            Created folder.

        Raises:
            ValidationError: If the name is empty.
            StorageError: If the database write fails.
        """
        name = self._check_name(name)
        with self.write_session("create_folder") as session:
            db_folder = DBFolder(id=generate_id(), name=name, created_at=utc_now())
            session.add(db_folder)
        folder = self._db_to_model(db_folder)

        logger.info(f"Created folder: {folder.id} ({folder.name})")
        return folder

    def get(self, id: str) -> Folder:
        """Get a folder by ID.

        Raises:
            FolderNotFoundError: If the folder does not exist.
        """
        with self.session_factory() as session:
            db_folder = session.get(DBFolder, id)
            if not db_folder:
                raise FolderNotFoundError(id)
            return self._db_to_model(db_folder)

    def exists(self, id: str) -> bool:
        """Check if a folder exists."""
        with self.session_factory() as session:
            return session.get(DBFolder, id) is not None

    def list(self) -> List[Folder]:
        """Get all folders sorted case-insensitively by name."""
        with self.session_factory() as session:
            result = session.execute(
                select(DBFolder).order_by(
                    func.casefold(DBFolder.name), DBFolder.created_at, DBFolder.id
                )
            )
            return [self._db_to_model(db) for db in result.scalars().all()]

    def rename(self, id: str, name: str) -> Folder:
        """Rename a folder.

        Raises:
            ValidationError: If the new name is empty.
            FolderNotFoundError: If the folder does not exist.
        """
        name = self._check_name(name)
        with self.write_session("rename_folder") as session:
            db_folder = session.get(DBFolder, id)
            if not db_folder:
                raise FolderNotFoundError(id)
            db_folder.name = name
        folder = self._db_to_model(db_folder)

        logger.info(f"Renamed folder: {id} -> {name}")
        return folder

    def delete(self, id: str) -> int:
        """Delete a folder and move its notes to uncategorized.

        The detach and the folder removal commit together. Deleting an
        unknown folder is a no-op.

        Returns:
            Number of notes that were detached.
        """
        with self.write_session(
            "delete_folder", code=ErrorCode.STORAGE_DELETE_FAILED
        ) as session:
            if session.get(DBFolder, id) is None:
                logger.debug(f"Folder {id} not found, nothing to delete")
                return 0
            detached = NoteRepository.detach_folder(session, id)
            session.execute(delete(DBFolder).where(DBFolder.id == id))

        logger.info(f"Deleted folder: {id} (detached {detached} notes)")
        return detached

    def get_note_count(self, id: str, include_deleted: bool = False) -> int:
        """Get number of notes in a folder.

        Args:
            id: Folder ID.
            include_deleted: Also count notes in the trash.
        """
        with self.session_factory() as session:
            query = select(func.count(DBNote.id)).where(DBNote.folder_id == id)
            if not include_deleted:
                query = query.where(DBNote.is_deleted.is_(False))
            return session.scalar(query) or 0

    def _db_to_model(self, db_folder: DBFolder) -> Folder:
        """Convert DBFolder to Folder model."""
        return Folder(
            id=db_folder.id,
            name=db_folder.name,
            created_at=ensure_timezone_aware(db_folder.created_at),
        )
