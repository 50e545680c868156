"""Data models for the notebook store."""

import datetime
import uuid
from datetime import timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field, field_validator

# Folder filter value meaning "any folder"
ALL_FOLDERS = "all"


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current time with UTC timezone info attached.
    """
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite stores datetimes without an offset, so values read back from the
    database are naive and are assumed to be UTC.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The same datetime with UTC timezone if it was naive, otherwise unchanged.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def generate_id() -> str:
    """Generate a new random identifier (UUID4, canonical string form)."""
    return str(uuid.uuid4())


def _validate_identifier(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{field_name} cannot be empty")
    if len(value) > 255:
        raise ValueError(f"{field_name} cannot exceed 255 characters")
    return value


class NotificationType(str, Enum):
    """Severity of a user-facing notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Folder(BaseModel):
    """A named container notes may reference."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the folder")
    name: str = Field(..., description="Display name (not unique)")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the folder was created (UTC)"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return _validate_identifier(v, "Folder ID")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate that the name is not empty."""
        if not v.strip():
            raise ValueError("Folder name cannot be empty")
        return v


class Note(BaseModel):
    """A note as currently stored (the head of its version history)."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the note")
    title: str = Field(default="", description="Title of the note")
    content: str = Field(default="", description="Opaque rich-text payload")
    folder_id: Optional[str] = Field(
        default=None, description="Folder the note belongs to (None = uncategorized)"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Free-form structured metadata (tags, ...)"
    )
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last touched (UTC)"
    )
    deleted: bool = Field(default=False, description="True while the note is in the trash")
    version: int = Field(default=1, ge=1, description="Current head version number")

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return _validate_identifier(v, "Note ID")


class NoteVersion(BaseModel):
    """An immutable snapshot of a note at one version number."""

    note_id: str = Field(..., description="ID of the note this snapshot belongs to")
    version: int = Field(..., ge=1, description="Version number (1-based, dense)")
    title: str = Field(default="", description="Title at this version")
    content: str = Field(default="", description="Content at this version")
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Metadata at this version"
    )
    saved_at: datetime.datetime = Field(
        default_factory=utc_now, description="When this version was written (UTC)"
    )

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("note_id")
    @classmethod
    def validate_note_id(cls, v: str) -> str:
        return _validate_identifier(v, "Note ID")


class Setting(BaseModel):
    """A client preference stored as a key/value pair."""

    key: str = Field(..., description="Setting name")
    value: Optional[str] = Field(default=None, description="Setting value")

    model_config = {"extra": "forbid"}

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        return _validate_identifier(v, "Setting key")


class Notification(BaseModel):
    """A transient user-facing message kept in memory only."""

    id: str = Field(default_factory=generate_id)
    message: str
    type: NotificationType = Field(default=NotificationType.INFO)
    created_at: datetime.datetime = Field(default_factory=utc_now)
    read: bool = Field(default=False)


class NoteCreate(BaseModel):
    """Boundary record for creating a note."""

    title: Optional[str] = None
    content: str = ""
    folder_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    model_config = {"extra": "forbid"}


class NoteUpdate(BaseModel):
    """Boundary record for a partial note update.

    Only the fields the caller actually supplied are applied, so a field
    that is absent keeps its stored value while an explicit ``None`` is
    applied as a value (``folder_id=None`` moves the note to uncategorized).
    """

    title: Optional[str] = None
    content: Optional[str] = None
    folder_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    deleted: Optional[bool] = None

    model_config = {"extra": "forbid"}

    def provided_fields(self) -> Set[str]:
        """Names of the fields explicitly supplied by the caller."""
        return set(self.model_fields_set)


class NoteQuery(BaseModel):
    """Boundary record for a note query."""

    folder_id: Optional[str] = None
    search_text: Optional[str] = None
    trash_only: bool = False

    model_config = {"extra": "forbid"}


class Dataset(BaseModel):
    """Portable snapshot of the whole store (the import/export payload)."""

    folders: List[Folder] = Field(default_factory=list)
    notes: List[Note] = Field(default_factory=list)
    versions: List[NoteVersion] = Field(default_factory=list)
    settings: List[Setting] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class ImportResult(BaseModel):
    """Counts of rows inserted and skipped by an import."""

    folders_added: int = 0
    folders_skipped: int = 0
    notes_added: int = 0
    notes_skipped: int = 0
    versions_added: int = 0
    versions_skipped: int = 0
    settings_added: int = 0
    settings_skipped: int = 0

    @property
    def total_added(self) -> int:
        return (
            self.folders_added
            + self.notes_added
            + self.versions_added
            + self.settings_added
        )
