from __future__ import annotations

import os

import pytest

from push_relay.config import get_database_settings, get_settings
from push_relay.utils.env import load_env_file, parse_env_text

_PREFIXED = ("PUSH_RELAY_", "VAPID_")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
  for key in list(os.environ):
    if key.startswith(_PREFIXED) or key == "DATABASE_URL":
      monkeypatch.delenv(key, raising=False)
  get_settings.cache_clear()
  get_database_settings.cache_clear()
  yield
  get_settings.cache_clear()
  get_database_settings.cache_clear()


def test_defaults_without_environment():
  settings = get_settings()

  assert settings.environment == "development"
  assert settings.push_notifications_enabled is True
  assert settings.vapid_public_key is None
  assert settings.vapid_private_key is None
  assert settings.vapid_subject == "mailto:support@example.com"
  assert settings.push_ttl_seconds == 86400
  assert settings.push_urgency == "normal"
  assert settings.push_max_concurrency == 16
  assert settings.notification_default_url == "/dashboard"
  assert settings.api_token is None


def test_reads_push_settings(monkeypatch):
  monkeypatch.setenv("VAPID_PUBLIC_KEY", " BPUBLIC ")
  monkeypatch.setenv("VAPID_PRIVATE_KEY", "secret-scalar")
  monkeypatch.setenv("VAPID_SUBJECT", "https://example.com/contact")
  monkeypatch.setenv("PUSH_RELAY_URGENCY", "HIGH")
  monkeypatch.setenv("PUSH_RELAY_MAX_CONCURRENCY", "32")
  monkeypatch.setenv("PUSH_RELAY_PUSH_ENABLED", "false")
  monkeypatch.setenv("PUSH_RELAY_ALLOWED_ORIGINS", "https://app.example.com, https://admin.example.com")

  settings = get_settings()

  assert settings.vapid_public_key == "BPUBLIC"
  assert settings.vapid_subject == "https://example.com/contact"
  assert settings.push_urgency == "high"
  assert settings.push_max_concurrency == 32
  assert settings.push_notifications_enabled is False
  assert settings.allowed_origins == ("https://app.example.com", "https://admin.example.com")
  assert "secret-scalar" not in repr(settings)


@pytest.mark.parametrize(
  ("name", "value"),
  [
    ("VAPID_SUBJECT", "ops@example.com"),
    ("PUSH_RELAY_URGENCY", "urgent"),
    ("PUSH_RELAY_MAX_CONCURRENCY", "0"),
    ("PUSH_RELAY_MAX_CONCURRENCY", "101"),
    ("PUSH_RELAY_TIMEOUT_SECONDS", "0"),
    ("PUSH_RELAY_TTL_SECONDS", "-1"),
    ("PUSH_RELAY_ALLOWED_ORIGINS", "*"),
  ],
)
def test_rejects_invalid_values(monkeypatch, name, value):
  monkeypatch.setenv(name, value)
  with pytest.raises(ValueError):
    get_settings()


def test_database_url_fallback(monkeypatch):
  monkeypatch.setenv("DATABASE_URL", "postgres://relay@localhost/relay")

  assert get_database_settings().pg_dsn == "postgres://relay@localhost/relay"
  assert get_settings().pg_dsn == "postgres://relay@localhost/relay"


def test_parse_env_text_handles_comments_quotes_and_export():
  text = "\n".join(["# VAPID keys", "", "export VAPID_PUBLIC_KEY=BPUB", 'VAPID_SUBJECT="mailto:ops@example.com"', "PUSH_RELAY_URGENCY='low'", "not-a-pair", "=missing-key"])

  assert parse_env_text(text) == {"VAPID_PUBLIC_KEY": "BPUB", "VAPID_SUBJECT": "mailto:ops@example.com", "PUSH_RELAY_URGENCY": "low"}


def test_load_env_file_keeps_existing_values(monkeypatch, tmp_path):
  env_file = tmp_path / ".env"
  env_file.write_text("PUSH_RELAY_ENV=staging\nPUSH_RELAY_URGENCY=low\n", encoding="utf-8")
  monkeypatch.setenv("PUSH_RELAY_ENV", "production")
  # Registers the key so monkeypatch restores the environment afterwards.
  monkeypatch.setenv("PUSH_RELAY_URGENCY", "")
  monkeypatch.delenv("PUSH_RELAY_URGENCY")

  applied = load_env_file(env_file)

  assert applied == ["PUSH_RELAY_URGENCY"]
  assert os.environ["PUSH_RELAY_ENV"] == "production"
  assert os.environ["PUSH_RELAY_URGENCY"] == "low"


def test_load_env_file_ignores_missing_file(tmp_path):
  assert load_env_file(tmp_path / "absent.env") == []
