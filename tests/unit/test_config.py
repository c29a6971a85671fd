from __future__ import annotations

import os

import pytest

from surveygen.config import get_settings
from surveygen.utils.env import load_env_file


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
  for name in ("SURVEYGEN_POLL_INTERVAL_SECONDS", "SURVEYGEN_POLL_MAX_BACKOFF_SECONDS", "SURVEYGEN_API_BASE_URL", "SURVEYGEN_ALLOWED_ORIGINS", "SURVEYGEN_GENERATION_CEILING", "SURVEYGEN_JOBS_AUTO_PROCESS"):
    monkeypatch.delenv(name, raising=False)
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


def test_defaults():
  settings = get_settings()

  assert settings.poll_interval_seconds == 2.0
  assert settings.reconnect_delay_seconds == 1.0
  assert settings.generation_ceiling == 1000
  assert settings.jobs_auto_process is True
  assert settings.events_url == "http://localhost:8000/api/events"
  assert settings.allowed_origins == ("http://localhost:5173", "http://127.0.0.1:5173")


def test_settings_are_cached():
  assert get_settings() is get_settings()


def test_overrides_from_environment(monkeypatch):
  monkeypatch.setenv("SURVEYGEN_API_BASE_URL", "https://surveys.example.com/")
  monkeypatch.setenv("SURVEYGEN_POLL_INTERVAL_SECONDS", "5")
  monkeypatch.setenv("SURVEYGEN_JOBS_AUTO_PROCESS", "off")

  settings = get_settings()

  assert settings.poll_interval_seconds == 5.0
  assert settings.jobs_auto_process is False
  assert settings.events_url == "https://surveys.example.com/api/events"


@pytest.mark.parametrize(
  ("name", "value", "message"),
  [
    ("SURVEYGEN_API_BASE_URL", "localhost:8000", "SURVEYGEN_API_BASE_URL"),
    ("SURVEYGEN_POLL_INTERVAL_SECONDS", "0", "SURVEYGEN_POLL_INTERVAL_SECONDS"),
    ("SURVEYGEN_POLL_MAX_BACKOFF_SECONDS", "1", "SURVEYGEN_POLL_MAX_BACKOFF_SECONDS"),
    ("SURVEYGEN_GENERATION_CEILING", "-1", "SURVEYGEN_GENERATION_CEILING"),
    ("SURVEYGEN_ALLOWED_ORIGINS", "*", "wildcard"),
  ],
)
def test_invalid_values_name_the_variable(monkeypatch, name, value, message):
  monkeypatch.setenv(name, value)
  with pytest.raises(ValueError, match=message):
    get_settings()


def test_env_file_only_loads_prefixed_keys(tmp_path, monkeypatch):
  monkeypatch.delenv("SURVEYGEN_LOG_DIR", raising=False)
  monkeypatch.setenv("SURVEYGEN_ENV", "staging")
  env_file = tmp_path / ".env"
  env_file.write_text('# local\nSURVEYGEN_LOG_DIR = "/tmp/surveygen-logs"\nSURVEYGEN_ENV=production\nOTHER_KEY=1\n', encoding="utf-8")

  applied = load_env_file(env_file)

  assert applied == {"SURVEYGEN_LOG_DIR": "/tmp/surveygen-logs"}
  assert os.environ["SURVEYGEN_LOG_DIR"] == "/tmp/surveygen-logs"
  assert os.environ["SURVEYGEN_ENV"] == "staging"
  assert "OTHER_KEY" not in os.environ
  os.environ.pop("SURVEYGEN_LOG_DIR")
