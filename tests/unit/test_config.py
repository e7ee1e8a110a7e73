from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from quizmaker.config import get_settings
from quizmaker.utils.env import load_env_file, parse_env_lines


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("QUIZMAKER_API_BASE_URL", "https://quiz-api.test/")
  for name in ("QUIZMAKER_API_TOKEN", "QUIZMAKER_POLL_INTERVAL_SECONDS", "QUIZMAKER_SLOW_JOB_WARNING_SECONDS", "QUIZMAKER_LOG_DIR", "QUIZMAKER_DEBUG"):
    monkeypatch.delenv(name, raising=False)

  settings = get_settings()

  assert settings.api_base_url == "https://quiz-api.test"
  assert settings.api_token is None
  assert settings.poll_interval_seconds == 5.0
  assert settings.slow_job_warning_seconds == 600.0
  assert settings.debug is False
  assert settings.log_dir is None


def test_settings_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("QUIZMAKER_API_BASE_URL", "http://localhost:8080")
  monkeypatch.setenv("QUIZMAKER_API_TOKEN", "  secret  ")
  monkeypatch.setenv("QUIZMAKER_POLL_INTERVAL_SECONDS", "2.5")
  monkeypatch.setenv("QUIZMAKER_DEBUG", "yes")

  settings = get_settings()

  assert settings.api_token == "secret"
  assert settings.poll_interval_seconds == 2.5
  assert settings.debug is True


@pytest.mark.parametrize(
  ("name", "value", "match"),
  [
    ("QUIZMAKER_API_BASE_URL", "", "must be set"),
    ("QUIZMAKER_API_BASE_URL", "ftp://quiz-api.test", "must start with"),
    ("QUIZMAKER_POLL_INTERVAL_SECONDS", "0", "positive"),
    ("QUIZMAKER_REQUEST_TIMEOUT_SECONDS", "soon", "must be a number"),
  ],
)
def test_invalid_settings_raise(monkeypatch: pytest.MonkeyPatch, name: str, value: str, match: str) -> None:
  monkeypatch.setenv("QUIZMAKER_API_BASE_URL", "http://quiz-api.test")
  monkeypatch.setenv(name, value)

  with pytest.raises(ValueError, match=match):
    get_settings()


def test_parse_env_lines() -> None:
  parsed = parse_env_lines(["# comment", "", "export QUIZMAKER_ENV=staging", "QUIZMAKER_API_TOKEN='abc'", "BROKEN LINE"])

  assert parsed == {"QUIZMAKER_ENV": "staging", "QUIZMAKER_API_TOKEN": "abc"}


def test_load_env_file_keeps_real_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text("QUIZMAKER_TEST_A=from-file\nQUIZMAKER_TEST_B=from-file\n", encoding="utf-8")
  monkeypatch.setenv("QUIZMAKER_TEST_A", "from-env")
  monkeypatch.delenv("QUIZMAKER_TEST_B", raising=False)

  applied = load_env_file(env_file)

  assert applied == ["QUIZMAKER_TEST_B"]
  assert load_env_file(tmp_path / "missing.env") == []
  monkeypatch.delenv("QUIZMAKER_TEST_B")
