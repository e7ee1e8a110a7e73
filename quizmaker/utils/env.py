"""Minimal .env reader for local development settings."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the .env path next to the project root."""

  return Path(__file__).resolve().parents[2] / ".env"


def _strip_quotes(value: str) -> str:
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    return value[1:-1]
  return value


def parse_env_lines(lines: list[str]) -> dict[str, str]:
  """Parse KEY=VALUE lines, ignoring comments, blanks and `export` prefixes."""

  parsed: dict[str, str] = {}
  for raw_line in lines:
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue
    if line.startswith("export "):
      line = line[len("export ") :].lstrip()
    key, separator, value = line.partition("=")
    key = key.strip()
    if not separator or not key:
      continue
    parsed[key] = _strip_quotes(value.strip())
  return parsed


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Load a .env file into the process environment and return the keys that were set."""

  if not path.is_file():
    return []

  applied: list[str] = []
  for key, value in parse_env_lines(path.read_text(encoding="utf-8").splitlines()).items():
    # Real environment variables win unless the caller asks otherwise.
    if not override and key in os.environ:
      continue
    os.environ[key] = value
    applied.append(key)
  return applied
