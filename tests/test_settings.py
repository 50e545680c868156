"""Tests for the key/value settings store."""
import pytest

from notebook_store.exceptions import ErrorCode, NotFoundError, ValidationError


class TestSettingsRepository:
    """Tests for SettingsRepository."""

    def test_set_and_get(self, settings_repository):
        settings_repository.set("theme", "dark")

        assert settings_repository.get("theme").value == "dark"
        assert settings_repository.get_value("theme") == "dark"
        assert settings_repository.exists("theme")

    def test_set_overwrites(self, settings_repository):
        settings_repository.set("theme", "dark")
        settings_repository.set("theme", "light")

        assert settings_repository.get_value("theme") == "light"
        assert len(settings_repository.list()) == 1

    def test_get_value_default(self, settings_repository):
        assert settings_repository.get_value("missing") is None
        assert settings_repository.get_value("missing", "fallback") == "fallback"

    def test_get_missing_raises(self, settings_repository):
        with pytest.raises(NotFoundError):
            settings_repository.get("missing")

    @pytest.mark.parametrize("key", ["", "  ", None])
    def test_blank_key_rejected(self, settings_repository, key):
        with pytest.raises(ValidationError) as exc_info:
            settings_repository.set(key, "x")
        assert exc_info.value.code == ErrorCode.SETTING_KEY_REQUIRED

    def test_list_sorted_by_key(self, settings_repository):
        for key in ["zoom", "editor", "theme"]:
            settings_repository.set(key, key.upper())

        assert [s.key for s in settings_repository.list()] == ["editor", "theme", "zoom"]

    def test_delete(self, settings_repository):
        settings_repository.set("theme", "dark")

        assert settings_repository.delete("theme") is True
        assert settings_repository.delete("theme") is False
        assert not settings_repository.exists("theme")

    def test_null_value_allowed(self, settings_repository):
        settings_repository.set("font", None)
        assert settings_repository.exists("font")
        assert settings_repository.get_value("font", "default") is None


class TestSettingsFacade:
    """Settings through NotebookService."""

    def test_facade_round_trip(self, notebook_service):
        notebook_service.set_setting("editor", "rich")

        assert notebook_service.get_setting("editor") == "rich"
        assert [s.key for s in notebook_service.list_settings()] == ["editor"]
        assert notebook_service.delete_setting("editor") is True
        assert notebook_service.get_setting("editor") is None
