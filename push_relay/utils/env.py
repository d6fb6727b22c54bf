"""Minimal .env support so local runs can supply VAPID secrets without exporting them."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the .env path at the repository root."""
  return Path(__file__).resolve().parents[2] / ".env"


def parse_env_text(text: str) -> dict[str, str]:
  """Parse KEY=VALUE lines, ignoring blanks, comments and `export` prefixes."""
  values: dict[str, str] = {}
  for raw_line in text.splitlines():
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue

    line = line.removeprefix("export ").lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
      continue

    value = value.strip()
    # Strip one layer of matching quotes; base64url keys never contain them.
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
      value = value[1:-1]

    values[key] = value

  return values


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Copy values from a .env file into the process environment and return the keys applied."""
  if not path.is_file():
    return []

  applied: list[str] = []
  for key, value in parse_env_text(path.read_text(encoding="utf-8")).items():
    if not override and key in os.environ:
      continue
    os.environ[key] = value
    applied.append(key)

  return applied
