"""Custom exceptions for the notebook store.

Provides a structured exception hierarchy with error codes and
machine-readable error information so the transport layer can map
failures to responses without inspecting message strings.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Note errors (1xxx)
    NOTE_NOT_FOUND = 1001
    NOTE_TITLE_REQUIRED = 1004

    # Version errors (2xxx)
    VERSION_NOT_FOUND = 2001

    # Folder errors (3xxx)
    FOLDER_NOT_FOUND = 3001
    FOLDER_NAME_REQUIRED = 3002

    # Storage errors (4xxx)
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_DELETE_FAILED = 4003

    # Bulk operation errors (45xx)
    BULK_OPERATION_INVALID_INPUT = 4504

    # Import/export errors (5xxx)
    IMPORT_FORMAT_INVALID = 5001
    IMPORT_FILE_UNREADABLE = 5002

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001
    SETTING_KEY_REQUIRED = 7006
    NOTIFICATION_MESSAGE_REQUIRED = 7007


class NotebookError(Exception):
    """Base exception for all notebook store errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class ValidationError(NotebookError):
    """Raised when caller input is malformed or a required field is missing."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class NotFoundError(NotebookError):
    """Raised when an identifier does not resolve to a stored entity."""


class NoteNotFoundError(NotFoundError):
    """Raised when a note cannot be found."""

    def __init__(self, note_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Note with ID '{note_id}' not found",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class FolderNotFoundError(NotFoundError):
    """Raised when a folder cannot be found."""

    def __init__(self, folder_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Folder with ID '{folder_id}' not found",
            code=ErrorCode.FOLDER_NOT_FOUND,
            details={"folder_id": folder_id},
        )
        self.folder_id = folder_id


class VersionNotFoundError(NotFoundError):
    """Raised when a note exists but the requested version does not."""

    def __init__(self, note_id: str, version: int):
        super().__init__(
            f"Version {version} of note '{note_id}' not found",
            code=ErrorCode.VERSION_NOT_FOUND,
            details={"note_id": note_id, "version": version},
        )
        self.note_id = note_id
        self.version = version


class FormatError(NotebookError):
    """Raised when an import dataset is structurally invalid.

    The import is aborted as a whole: nothing from the dataset is applied.

    Attributes:
        problems: Every structural problem found, not just the first one.
    """

    def __init__(
        self,
        message: str,
        problems: Optional[List[str]] = None,
        code: ErrorCode = ErrorCode.IMPORT_FORMAT_INVALID,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if problems:
            details["problem_count"] = len(problems)
            details["problems"] = problems[:10]  # Truncate for safety
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.problems: List[str] = list(problems) if problems else []
        self.original_error = original_error


class StorageError(NotebookError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class ConfigurationError(NotebookError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key


class BulkOperationError(NotebookError):
    """Raised when a bulk operation receives structurally invalid input.

    Missing identifiers inside an otherwise valid batch never raise this;
    they are skipped.

    Attributes:
        operation: Name of the bulk operation (e.g., "bulk_set_trash")
        original_error: The underlying exception if applicable
    """

    def __init__(
        self,
        message: str,
        operation: str,
        code: ErrorCode = ErrorCode.BULK_OPERATION_INVALID_INPUT,
        original_error: Optional[Exception] = None,
    ):
        details = {"operation": operation}
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error
