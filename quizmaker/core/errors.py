"""Error taxonomy and classification for generation API failures."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_BALANCE_HINTS: tuple[str, ...] = ("insufficient", "balance", "token")

_REQUIRED_PATTERN = re.compile(r"required[=:]?\s*(\d+)", re.IGNORECASE)
_AVAILABLE_PATTERN = re.compile(r"available[=:]?\s*(\d+)", re.IGNORECASE)


class ErrorKind(str, Enum):
  """Categories a failed request can fall into."""

  VALIDATION = "VALIDATION"
  INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
  AUTH = "AUTH"
  NOT_FOUND = "NOT_FOUND"
  SERVER = "SERVER"
  UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ClassifiedError:
  """Typed view of a transport failure, ready for presentation."""

  kind: ErrorKind
  message: str
  status_code: int | None = None
  required_tokens: int | None = None
  available_tokens: int | None = None

  @property
  def is_balance_error(self) -> bool:
    return self.kind is ErrorKind.INSUFFICIENT_BALANCE


class QuizmakerError(Exception):
  """Base class for engine errors."""


class GenerationRequestError(QuizmakerError):
  """Raised by the API clients with the failure already classified."""

  def __init__(self, classified: ClassifiedError) -> None:
    super().__init__(classified.message)
    self.classified = classified

  @property
  def kind(self) -> ErrorKind:
    return self.classified.kind


class WizardTransitionError(QuizmakerError):
  """Raised when a wizard operation is not valid in the current step."""


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  for hint in hints:
    if hint in message:
      return True
  return False


def _as_text(value: Any) -> str:
  if value is None:
    return ""
  if isinstance(value, str):
    return value
  return str(value)


def _extract_count(pattern: re.Pattern[str], detail: str, payload: Mapping[str, Any], keys: tuple[str, ...]) -> int | None:
  """Pull a token count from the detail text, then from explicit payload fields."""
  match = pattern.search(detail)
  if match:
    return int(match.group(1))

  for key in keys:
    value = payload.get(key)
    # bool is an int subclass; it is never a token count.
    if isinstance(value, bool):
      continue
    if isinstance(value, int):
      return value
    if isinstance(value, str) and value.strip().isdigit():
      return int(value.strip())
  return None


class ErrorClassifier:
  """Map raw request failures onto `ErrorKind`.

  The generation API has no machine-readable code for an exhausted token balance,
  so a 409 is inspected for balance wording (`balance_hints`).
  """

  def __init__(self, *, balance_hints: Iterable[str] = _BALANCE_HINTS) -> None:
    self._balance_hints = tuple(hint.lower() for hint in balance_hints)

  def classify(self, error: BaseException) -> ClassifiedError:
    status_code, payload, fallback = _unpack(error)
    detail = _as_text(payload.get("detail"))
    title = _as_text(payload.get("title"))
    message = detail or title or _as_text(payload.get("message")) or fallback or "Request failed"

    if status_code is None:
      if isinstance(error, httpx.RequestError) or getattr(error, "is_network_error", False):
        return ClassifiedError(kind=ErrorKind.SERVER, message=f"Network error: {message}")
      logger.warning("Unclassified generation failure error_type=%s message=%s", type(error).__name__, message)
      return ClassifiedError(kind=ErrorKind.UNKNOWN, message=message)

    if status_code == 400:
      return ClassifiedError(kind=ErrorKind.VALIDATION, message=f"Validation error: {message}", status_code=status_code)

    if status_code == 409:
      if _match_hint(message.lower(), self._balance_hints) or _match_hint(title.lower(), self._balance_hints):
        required = _extract_count(_REQUIRED_PATTERN, detail, payload, ("requiredTokens", "required"))
        available = _extract_count(_AVAILABLE_PATTERN, detail, payload, ("currentBalance", "available"))
        return ClassifiedError(kind=ErrorKind.INSUFFICIENT_BALANCE, message=message, status_code=status_code, required_tokens=required, available_tokens=available)
      # Unmatched conflicts still reach the user with the server's wording.
      logger.warning("Conflict response did not match balance hints status_code=409 message=%s", message)
      return ClassifiedError(kind=ErrorKind.UNKNOWN, message=message, status_code=status_code)

    if status_code == 401:
      return ClassifiedError(kind=ErrorKind.AUTH, message="Authentication required", status_code=status_code)

    if status_code == 403:
      return ClassifiedError(kind=ErrorKind.AUTH, message="Insufficient permissions", status_code=status_code)

    if status_code == 404:
      return ClassifiedError(kind=ErrorKind.NOT_FOUND, message="Generation job or quiz not found", status_code=status_code)

    if 500 <= status_code < 600:
      return ClassifiedError(kind=ErrorKind.SERVER, message="Server error occurred", status_code=status_code)

    logger.warning("Unclassified generation failure status_code=%s message=%s", status_code, message)
    return ClassifiedError(kind=ErrorKind.UNKNOWN, message=message, status_code=status_code)


def _unpack(error: BaseException) -> tuple[int | None, Mapping[str, Any], str]:
  """Return (status code, JSON payload, fallback text) for any supported error type."""
  status_code: int | None = None
  payload: Any = None

  if isinstance(error, httpx.HTTPStatusError):
    status_code = error.response.status_code
    try:
      payload = error.response.json()
    except ValueError:
      payload = {"message": error.response.text}
  else:
    raw_status = getattr(error, "status_code", None)
    if isinstance(raw_status, int) and not isinstance(raw_status, bool):
      status_code = raw_status
    payload = getattr(error, "payload", None)

  if not isinstance(payload, Mapping):
    payload = {"message": payload} if isinstance(payload, str) else {}

  return status_code, payload, str(error)


_default_classifier = ErrorClassifier()


def classify(error: BaseException) -> ClassifiedError:
  """Classify with the default balance hints."""
  return _default_classifier.classify(error)
