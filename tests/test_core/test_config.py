"""
Tests for updater settings
"""

import logging

import pytest
from pydantic import ValidationError

from github_updater.core import config
from github_updater.core.config import UpdaterSettings, get_settings, setup_logging
from github_updater.core.exceptions import ConfigurationError, UpdaterError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host GITHUB_UPDATER_* variables out of the tests"""
    for name in (
        "GITHUB_UPDATER_GITHUB_OWNER",
        "GITHUB_UPDATER_GITHUB_REPO",
        "GITHUB_UPDATER_GITHUB_TOKEN",
        "GITHUB_UPDATER_INCLUDE_PRERELEASES",
        "GITHUB_UPDATER_CURRENT_VERSION",
        "GITHUB_UPDATER_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "_settings", None)


class TestUpdaterSettings:
    """Test settings defaults and validation"""

    def test_defaults(self):
        settings = UpdaterSettings(github_owner="octocat", github_repo="hello-world")

        assert settings.api_url == "https://api.github.com"
        assert settings.include_prereleases is False
        assert settings.token is None
        assert settings.current_version is None
        assert settings.app_name == "github-updater"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("GITHUB_UPDATER_GITHUB_OWNER", "my-org")
        monkeypatch.setenv("GITHUB_UPDATER_GITHUB_REPO", "my.app_2")
        monkeypatch.setenv("GITHUB_UPDATER_GITHUB_TOKEN", "ghp_secret")
        monkeypatch.setenv("GITHUB_UPDATER_INCLUDE_PRERELEASES", "true")

        settings = UpdaterSettings()

        assert settings.github_owner == "my-org"
        assert settings.github_repo == "my.app_2"
        assert settings.token == "ghp_secret"
        assert settings.include_prereleases is True

    def test_token_hidden_from_repr(self):
        settings = UpdaterSettings(github_owner="o", github_repo="r", github_token="ghp_secret")
        assert "ghp_secret" not in repr(settings)

    def test_empty_token_means_anonymous(self):
        settings = UpdaterSettings(github_owner="o", github_repo="r", github_token="")
        assert settings.token is None

    def test_missing_repository_is_validation_error(self):
        with pytest.raises(ValidationError):
            UpdaterSettings()

    @pytest.mark.parametrize("repo", ["", "  ", "a/b", "a b", ".", "..", "x" * 101])
    def test_invalid_repo(self, repo):
        with pytest.raises(ConfigurationError) as exc_info:
            UpdaterSettings(github_owner="octocat", github_repo=repo)

        assert "Hint:" in str(exc_info.value)

    def test_invalid_owner_on_assignment(self):
        """Test that validation also runs when a field is reassigned"""
        settings = UpdaterSettings(github_owner="octocat", github_repo="app")

        with pytest.raises(ConfigurationError):
            settings.github_owner = "   "

        assert settings.github_owner == "octocat"

    def test_valid_assignment(self):
        settings = UpdaterSettings(github_owner="octocat", github_repo="app")
        settings.github_repo = "other-app"
        assert settings.github_repo == "other-app"

    @pytest.mark.parametrize("app_name", ["", "a/b", "a\\b"])
    def test_invalid_app_name(self, app_name):
        with pytest.raises(ConfigurationError):
            UpdaterSettings(github_owner="o", github_repo="r", app_name=app_name)

    def test_log_level_normalized(self):
        settings = UpdaterSettings(github_owner="o", github_repo="r", log_level=" debug ")
        assert settings.log_level == "DEBUG"

    def test_log_level_defaults_to_warning(self):
        assert UpdaterSettings(github_owner="o", github_repo="r").log_level == "WARNING"

    def test_invalid_log_level(self):
        with pytest.raises(ConfigurationError):
            UpdaterSettings(github_owner="o", github_repo="r", log_level="chatty")

    def test_configuration_error_is_updater_error(self):
        assert issubclass(ConfigurationError, UpdaterError)
        assert not issubclass(ConfigurationError, ValueError)


class TestGetSettings:
    """Test the settings singleton"""

    def test_singleton(self, monkeypatch):
        monkeypatch.setenv("GITHUB_UPDATER_GITHUB_OWNER", "octocat")
        monkeypatch.setenv("GITHUB_UPDATER_GITHUB_REPO", "app")

        assert get_settings() is get_settings()
        assert get_settings().github_repo == "app"


class TestSetupLogging:
    def test_configures_level(self, monkeypatch):
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

        setup_logging("debug")

        assert calls["level"] == logging.DEBUG
        assert calls["format"] == config.LOG_FORMAT

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

        setup_logging("chatty")

        assert calls["level"] == logging.INFO
