"""Engine configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from quizmaker.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)


@dataclass(frozen=True)
class Settings:
  """Typed settings for the quiz-generation engine."""

  environment: str
  debug: bool
  api_base_url: str
  api_token: str | None
  request_timeout_seconds: float
  poll_interval_seconds: float
  slow_job_warning_seconds: float
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_positive_float(name: str, default: str) -> float:
  raw = os.getenv(name, default)
  try:
    value = float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number.") from exc
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _parse_base_url(raw: str | None) -> str:
  value = _optional_str(raw)
  if value is None:
    raise ValueError("QUIZMAKER_API_BASE_URL must be set.")

  if not (value.startswith("http://") or value.startswith("https://")):
    raise ValueError("QUIZMAKER_API_BASE_URL must start with 'http://' or 'https://'.")

  return value.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("QUIZMAKER_ENV", "development").strip().lower()
  debug = _parse_bool(os.getenv("QUIZMAKER_DEBUG"))

  request_timeout_seconds = _parse_positive_float("QUIZMAKER_REQUEST_TIMEOUT_SECONDS", "30")

  # Polling cadence for generation jobs; the API has no push channel.
  poll_interval_seconds = _parse_positive_float("QUIZMAKER_POLL_INTERVAL_SECONDS", "5")

  # Past this age a running job is reported as overdue but still polled.
  slow_job_warning_seconds = _parse_positive_float("QUIZMAKER_SLOW_JOB_WARNING_SECONDS", "600")

  log_max_bytes = int(os.getenv("QUIZMAKER_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("QUIZMAKER_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("QUIZMAKER_LOG_BACKUP_COUNT", "5"))
  if log_backup_count < 0:
    raise ValueError("QUIZMAKER_LOG_BACKUP_COUNT must be zero or a positive integer.")

  return Settings(
    environment=environment,
    debug=debug,
    api_base_url=_parse_base_url(os.getenv("QUIZMAKER_API_BASE_URL")),
    api_token=_optional_str(os.getenv("QUIZMAKER_API_TOKEN")),
    request_timeout_seconds=request_timeout_seconds,
    poll_interval_seconds=poll_interval_seconds,
    slow_job_warning_seconds=slow_job_warning_seconds,
    log_dir=_optional_str(os.getenv("QUIZMAKER_LOG_DIR")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
  )
