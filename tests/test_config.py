"""Tests for environment configuration."""
import pytest
from pydantic import ValidationError

from asana_core.config import DEFAULT_BASE_URL, Settings, get_settings
from asana_core.errors import MissingToken

ENV_VARS = (
    "ASANA_TOKEN",
    "ASANA_ACCESS_TOKEN",
    "ASANA_DEFAULT_WORKSPACE",
    "ASANA_BASE_URL",
    "ASANA_TIMEOUT",
    "ASANA_MAX_CONCURRENCY",
    "ASANA_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Test reading settings from the environment."""

    def test_defaults(self):
        settings = Settings()
        assert settings.token is None
        assert settings.default_workspace is None
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.timeout == 30.0
        assert settings.max_concurrency == 4

    def test_token_from_env(self, monkeypatch):
        monkeypatch.setenv("ASANA_TOKEN", "1/abc")
        assert Settings().require_token() == "1/abc"

    def test_access_token_alias(self, monkeypatch):
        monkeypatch.setenv("ASANA_ACCESS_TOKEN", "2/xyz")
        assert Settings().require_token() == "2/xyz"

    def test_token_is_not_shown_in_repr(self, monkeypatch):
        monkeypatch.setenv("ASANA_TOKEN", "1/secret")
        assert "1/secret" not in repr(Settings())

    def test_missing_token_raises(self):
        with pytest.raises(MissingToken):
            Settings().require_token()

    def test_blank_token_raises(self, monkeypatch):
        monkeypatch.setenv("ASANA_TOKEN", "   ")
        with pytest.raises(MissingToken):
            Settings().require_token()

    def test_blank_default_workspace_is_unset(self, monkeypatch):
        monkeypatch.setenv("ASANA_DEFAULT_WORKSPACE", "  ")
        assert Settings().default_workspace is None

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("ASANA_DEFAULT_WORKSPACE", "WS")
        monkeypatch.setenv("ASANA_BASE_URL", "https://asana.test/api/1.0")
        monkeypatch.setenv("ASANA_MAX_CONCURRENCY", "8")
        settings = Settings()
        assert settings.default_workspace == "WS"
        assert settings.base_url == "https://asana.test/api/1.0"
        assert settings.max_concurrency == 8

    def test_concurrency_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("ASANA_MAX_CONCURRENCY", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
