"""
Tests for realmguard/core/config.py

Covers environment parsing, range clamping and URL validation.
"""

import pytest

from realmguard.core.config import (
    Config,
    ConfigValidationError,
    get_config,
    load_config,
    reset_config,
)


ENV_VARS = (
    "REALMGUARD_SPECTATOR_INTERVAL",
    "REALMGUARD_SPECTATOR_INITIAL_DELAY",
    "REALMGUARD_SWEEP_INTERVAL",
    "REALMGUARD_WINDOW_MAX_AGE",
    "REALMGUARD_MAX_HISTORY",
    "REALMGUARD_SESSION_MAX_AGE",
    "REALMGUARD_LOG_WEBHOOK_URL",
    "REALMGUARD_REALMS_API_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


# =============================================================================
# load_config() Tests
# =============================================================================

class TestLoadConfig:
    """Tests for environment loading."""

    def test_defaults(self):
        config = load_config()
        assert config == Config()
        assert config.spectator_interval == 10
        assert config.sweep_interval == 120
        assert config.max_history_entries == 1000

    def test_values_are_read(self, monkeypatch):
        monkeypatch.setenv("REALMGUARD_SPECTATOR_INTERVAL", "30")
        monkeypatch.setenv("REALMGUARD_MAX_HISTORY", "50")
        config = load_config()
        assert config.spectator_interval == 30
        assert config.max_history_entries == 50

    def test_out_of_range_is_clamped(self, monkeypatch):
        monkeypatch.setenv("REALMGUARD_SWEEP_INTERVAL", "1")
        monkeypatch.setenv("REALMGUARD_SPECTATOR_INITIAL_DELAY", "999")
        config = load_config()
        assert config.sweep_interval == 5
        assert config.spectator_initial_delay == 60

    def test_garbage_uses_default(self, monkeypatch):
        monkeypatch.setenv("REALMGUARD_WINDOW_MAX_AGE", "five minutes")
        assert load_config().window_max_age == 300

    def test_bad_webhook_is_ignored(self, monkeypatch):
        monkeypatch.setenv("REALMGUARD_LOG_WEBHOOK_URL", "not-a-url")
        assert load_config().log_webhook_url is None

    def test_realms_url_trailing_slash(self, monkeypatch):
        monkeypatch.setenv("REALMGUARD_REALMS_API_URL", "https://realms.example.com/")
        assert load_config().realms_api_url == "https://realms.example.com"

    def test_bad_realms_url_raises(self, monkeypatch):
        monkeypatch.setenv("REALMGUARD_REALMS_API_URL", "ftp://realms")
        with pytest.raises(ConfigValidationError):
            load_config()


# =============================================================================
# get_config() Tests
# =============================================================================

class TestGetConfig:
    """Tests for the cached instance."""

    def test_is_cached(self):
        assert get_config() is get_config()

    def test_reset_reloads(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("REALMGUARD_MAX_HISTORY", "10")
        reset_config()
        second = get_config()
        assert second is not first
        assert second.max_history_entries == 10
