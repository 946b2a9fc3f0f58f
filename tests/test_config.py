"""Tests for environment-driven settings."""

import pytest

from gitoverlay.config import DEFAULT_API_URL, DEFAULT_API_VERSION, DEFAULT_TIMEOUT, Settings
from gitoverlay.exceptions import ValidationError


class TestSettingsFromEnv:
    def test_defaults(self):
        s = Settings.from_env({})
        assert s.token is None
        assert s.api_url == DEFAULT_API_URL
        assert s.api_version == DEFAULT_API_VERSION
        assert s.timeout == DEFAULT_TIMEOUT

    def test_own_token_wins(self):
        s = Settings.from_env({"GITOVERLAY_TOKEN": "mine", "GITHUB_TOKEN": "other"})
        assert s.token == "mine"

    def test_github_token_fallback(self):
        assert Settings.from_env({"GITHUB_TOKEN": " tok \n"}).token == "tok"

    def test_api_url_trailing_slash(self):
        s = Settings.from_env({"GITOVERLAY_API_URL": "https://ghe.example.com/api/v3/"})
        assert s.api_url == "https://ghe.example.com/api/v3"

    def test_timeout(self):
        assert Settings.from_env({"GITOVERLAY_TIMEOUT": "2.5"}).timeout == 2.5

    @pytest.mark.parametrize("raw", ["soon", "0", "-1"])
    def test_bad_timeout(self, raw):
        with pytest.raises(ValidationError):
            Settings.from_env({"GITOVERLAY_TIMEOUT": raw})

    def test_reads_process_env(self, monkeypatch):
        monkeypatch.setenv("GITOVERLAY_TOKEN", "from-env")
        assert Settings.from_env().token == "from-env"
