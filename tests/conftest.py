"""Shared pytest configuration."""

from __future__ import annotations

import os

import pytest

# Settings need a base URL before anything calls get_settings().
os.environ.setdefault("QUIZMAKER_API_BASE_URL", "http://quiz-api.test")


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"
