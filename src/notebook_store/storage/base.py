"""Base repository interface for the notebook store."""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Generic, Iterator, List, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notebook_store.exceptions import ErrorCode, StorageError
from notebook_store.models.db_models import get_session_factory

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """Common shape of the store's repositories.

    Every repository shares one SQLAlchemy engine and opens a short-lived
    session per operation.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = get_session_factory(engine)

    @contextmanager
    def write_session(
        self, operation: str, code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED
    ) -> Iterator[Session]:
        """Session for one write operation, committed when the block exits.

        Any SQLAlchemy error raised inside the block (explicit flushes,
        autoflushes and the commit itself) rolls the session back and is
        re-raised as StorageError.

        Args:
            operation: Operation name recorded on the StorageError.
            code: Error code for the StorageError (deletes use
                STORAGE_DELETE_FAILED).
        """
        with self.session_factory() as session:
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"{operation} failed: {e}")
                raise StorageError(
                    f"Failed to {operation.replace('_', ' ')}",
                    operation=operation,
                    code=code,
                    original_error=e,
                ) from e

    @abstractmethod
    def get(self, id: str) -> T:
        """Get an entity by ID, raising a NotFoundError when absent."""

    @abstractmethod
    def exists(self, id: str) -> bool:
        """Check whether an entity with this ID exists."""

    @abstractmethod
    def list(self) -> List[T]:
        """Return every entity in the repository's natural order."""
