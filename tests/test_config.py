"""Tests for configuration loading"""
import pytest

from match_notifier.config import Config


@pytest.fixture
def env(monkeypatch):
    for key in (
        "FIREBASE_CREDENTIALS_PATH", "DATABASE_PATH", "DISPLAY_TIMEZONE", "BATCH_SIZE",
        "REMINDER_SWEEP_INTERVAL", "NOTIFICATION_RETENTION_DAYS", "DISPATCH_CONCURRENCY",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("FIREBASE_PROJECT_ID", "tennis-connect")
    return monkeypatch


def test_defaults(env):
    config = Config()

    assert config.firebase_project_id == "tennis-connect"
    assert config.firebase_credentials_path is None
    assert config.reminder_sweep_interval == 60
    assert config.cleanup_sweep_interval == 1440
    assert config.notification_retention_days == 30
    assert config.batch_size == 500
    assert config.display_timezone == "UTC"


def test_project_id_required(env):
    env.delenv("FIREBASE_PROJECT_ID")

    with pytest.raises(ValueError, match="FIREBASE_PROJECT_ID"):
        Config()


@pytest.mark.parametrize("key, value", [
    ("BATCH_SIZE", "501"),
    ("REMINDER_SWEEP_INTERVAL", "0"),
    ("DISPLAY_TIMEZONE", "Mars/Olympus"),
    ("NOTIFICATION_RETENTION_DAYS", "0"),
])
def test_invalid_values_rejected(env, key, value):
    env.setenv(key, value)

    with pytest.raises(ValueError):
        Config()
