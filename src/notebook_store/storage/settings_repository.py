"""Repository for key/value client settings."""
import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine

from notebook_store.exceptions import ErrorCode, NotFoundError, ValidationError
from notebook_store.models.db_models import DBSetting
from notebook_store.models.schema import Setting
from notebook_store.storage.base import Repository

logger = logging.getLogger(__name__)


class SettingsRepository(Repository[Setting]):
    """Flat key/value store for client preferences (theme, editor mode...)."""

    def __init__(self, engine: Engine):
        super().__init__(engine)

    @staticmethod
    def _check_key(key: Optional[str]) -> str:
        if not isinstance(key, str) or not key.strip():
            raise ValidationError(
                "Setting key cannot be empty",
                field="key",
                code=ErrorCode.SETTING_KEY_REQUIRED,
            )
        return key

    def get(self, id: str) -> Setting:
        """Get a setting by key.

        Raises:
            NotFoundError: If no setting has this key.
        """
        with self.session_factory() as session:
            row = session.get(DBSetting, id)
            if row is None:
                raise NotFoundError(
                    f"Setting '{id}' not found", details={"key": id}
                )
            return Setting(key=row.key, value=row.value)

    def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Value of a setting, or ``default`` when it is not set."""
        with self.session_factory() as session:
            row = session.get(DBSetting, key)
            return row.value if row is not None else default

    def exists(self, id: str) -> bool:
        with self.session_factory() as session:
            return session.get(DBSetting, id) is not None

    def set(self, key: str, value: Optional[str]) -> Setting:
        """Create or replace a setting."""
        key = self._check_key(key)
        stmt = sqlite_insert(DBSetting).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DBSetting.key], set_={"value": value}
        )
        with self.write_session("set_setting") as session:
            session.execute(stmt)
        logger.debug(f"Setting {key} updated")
        return Setting(key=key, value=value)

    def list(self) -> List[Setting]:
        """All settings sorted by key."""
        with self.session_factory() as session:
            rows = session.scalars(select(DBSetting).order_by(DBSetting.key)).all()
            return [Setting(key=row.key, value=row.value) for row in rows]

    def delete(self, key: str) -> bool:
        """Remove a setting. Returns False if it was not set."""
        with self.write_session(
            "delete_setting", code=ErrorCode.STORAGE_DELETE_FAILED
        ) as session:
            result = session.execute(delete(DBSetting).where(DBSetting.key == key))
        return bool(result.rowcount)
