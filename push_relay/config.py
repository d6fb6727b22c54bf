"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from push_relay.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_URGENCY_VALUES = {"very-low", "low", "normal", "high"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the push relay service."""

  environment: str
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  allowed_origins: tuple[str, ...]
  pg_dsn: str | None
  pg_connect_timeout: int
  push_notifications_enabled: bool
  vapid_public_key: str | None
  vapid_private_key: str | None = field(repr=False)
  vapid_subject: str
  push_ttl_seconds: int
  push_urgency: str
  push_timeout_seconds: float
  push_max_concurrency: int
  notification_icon: str | None
  notification_badge: str | None
  notification_default_tag: str
  notification_default_url: str
  api_token: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ()

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("PUSH_RELAY_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("PUSH_RELAY_ENV", "development").lower()
  debug = _parse_bool(os.getenv("PUSH_RELAY_DEBUG"))

  log_max_bytes = _parse_positive_int("PUSH_RELAY_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("PUSH_RELAY_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("PUSH_RELAY_LOG_BACKUP_COUNT must be zero or a positive integer.")

  push_notifications_enabled = _parse_bool(os.getenv("PUSH_RELAY_PUSH_ENABLED"), default=True)

  # Key material is optional here; the key loader rejects missing keys per invocation.
  vapid_public_key = _optional_str(os.getenv("VAPID_PUBLIC_KEY"))
  vapid_private_key = _optional_str(os.getenv("VAPID_PRIVATE_KEY"))
  vapid_subject = (os.getenv("VAPID_SUBJECT") or "mailto:support@example.com").strip()
  if not (vapid_subject.startswith("mailto:") or vapid_subject.startswith("https://")):
    raise ValueError("VAPID_SUBJECT must start with 'mailto:' or 'https://'.")

  push_ttl_seconds = int(os.getenv("PUSH_RELAY_TTL_SECONDS", "86400"))
  if push_ttl_seconds < 0:
    raise ValueError("PUSH_RELAY_TTL_SECONDS must be zero or a positive integer.")

  push_urgency = (os.getenv("PUSH_RELAY_URGENCY") or "normal").strip().lower()
  if push_urgency not in _URGENCY_VALUES:
    raise ValueError("PUSH_RELAY_URGENCY must be one of very-low, low, normal, high.")

  push_timeout_seconds = float(os.getenv("PUSH_RELAY_TIMEOUT_SECONDS", "10"))
  if push_timeout_seconds <= 0:
    raise ValueError("PUSH_RELAY_TIMEOUT_SECONDS must be positive.")

  push_max_concurrency = _parse_positive_int("PUSH_RELAY_MAX_CONCURRENCY", "16")
  if push_max_concurrency > 100:
    raise ValueError("PUSH_RELAY_MAX_CONCURRENCY must not exceed 100.")

  return Settings(
    environment=environment,
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    allowed_origins=_parse_origins(os.getenv("PUSH_RELAY_ALLOWED_ORIGINS")),
    pg_dsn=os.getenv("PUSH_RELAY_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_parse_positive_int("PUSH_RELAY_PG_CONNECT_TIMEOUT", "5"),
    push_notifications_enabled=push_notifications_enabled,
    vapid_public_key=vapid_public_key,
    vapid_private_key=vapid_private_key,
    vapid_subject=vapid_subject,
    push_ttl_seconds=push_ttl_seconds,
    push_urgency=push_urgency,
    push_timeout_seconds=push_timeout_seconds,
    push_max_concurrency=push_max_concurrency,
    notification_icon=_optional_str(os.getenv("PUSH_RELAY_NOTIFICATION_ICON", "/em-logo-white.png")),
    notification_badge=_optional_str(os.getenv("PUSH_RELAY_NOTIFICATION_BADGE", "/em-badge.png")),
    notification_default_tag=(os.getenv("PUSH_RELAY_NOTIFICATION_TAG") or "default").strip(),
    notification_default_url=(os.getenv("PUSH_RELAY_NOTIFICATION_URL") or "/dashboard").strip(),
    api_token=_optional_str(os.getenv("PUSH_RELAY_API_TOKEN")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring the push configuration."""
  debug = _parse_bool(os.getenv("PUSH_RELAY_DEBUG"))
  pg_connect_timeout = _parse_positive_int("PUSH_RELAY_PG_CONNECT_TIMEOUT", "5")

  # Support fallback to DATABASE_URL for hosted Postgres providers.
  pg_dsn = os.getenv("PUSH_RELAY_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
