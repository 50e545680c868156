"""Storage layer for the notebook store."""

from notebook_store.storage.base import Repository
from notebook_store.storage.folder_repository import FolderRepository
from notebook_store.storage.note_repository import NoteRepository
from notebook_store.storage.settings_repository import SettingsRepository
from notebook_store.storage.version_log import VersionLog

__all__ = [
    "Repository",
    "VersionLog",
    "NoteRepository",
    "FolderRepository",
    "SettingsRepository",
]
