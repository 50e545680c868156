"""Configuration module for the notebook store.

The store itself never reads the environment: callers build a
``NotebookConfig`` and hand it to the engine factory and repositories.
``NotebookConfig.from_env`` exists for the admin CLI and other bootstrap
code that wants ``NOTEBOOK_*`` variables and a ``.env`` file honoured.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from notebook_store.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer, got {raw!r}", config_key=name
        ) from e


class NotebookConfig(BaseModel):
    """Configuration for the notebook store."""

    # Base directory that relative paths are resolved against
    base_dir: Path = Field(default=Path("."))
    # SQLite database file (ignored when in_memory_db is set)
    database_path: Path = Field(default=Path("data/notebook.db"))
    # Use a process-private in-memory SQLite database
    in_memory_db: bool = Field(default=False)
    # Reject notes whose title is missing or blank
    title_required: bool = Field(default=True)
    # Maximum number of notifications kept in memory
    notification_limit: int = Field(default=20)
    # How long a writer waits on a locked SQLite database
    busy_timeout_ms: int = Field(default=5000)
    # Directory for rotating log files (None = console only)
    log_dir: Optional[Path] = Field(default=None)

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @model_validator(mode="after")
    def _validate_limits(self) -> "NotebookConfig":
        """Validate numeric limits."""
        if self.notification_limit < 1:
            raise ValueError("notification_limit must be >= 1")
        if self.busy_timeout_ms < 0:
            raise ValueError("busy_timeout_ms must be >= 0")
        return self

    @classmethod
    def from_env(
        cls, env_file: Optional[Union[str, Path]] = None
    ) -> "NotebookConfig":
        """Build a configuration from ``NOTEBOOK_*`` environment variables.

        Args:
            env_file: Optional ``.env`` file loaded before reading the
                environment. Existing variables are not overridden.

        Returns:
            A validated NotebookConfig.

        Raises:
            ConfigurationError: If a variable cannot be parsed or a value is
                out of range.
        """
        if env_file is not None:
            logger.debug(f"Loading environment from {env_file}")
            load_dotenv(env_file)
        else:
            load_dotenv()

        log_dir = os.getenv("NOTEBOOK_LOG_DIR")
        try:
            return cls(
                base_dir=Path(os.getenv("NOTEBOOK_BASE_DIR", ".")),
                database_path=Path(
                    os.getenv("NOTEBOOK_DATABASE_PATH", "data/notebook.db")
                ),
                in_memory_db=_env_flag("NOTEBOOK_IN_MEMORY_DB", "false"),
                title_required=_env_flag("NOTEBOOK_TITLE_REQUIRED", "true"),
                notification_limit=_env_int("NOTEBOOK_NOTIFICATION_LIMIT", 20),
                busy_timeout_ms=_env_int("NOTEBOOK_BUSY_TIMEOUT_MS", 5000),
                log_dir=Path(log_dir) if log_dir else None,
            )
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid notebook configuration: {e}") from e

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if self.in_memory_db:
            return "sqlite://"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"
