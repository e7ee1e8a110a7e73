import logging
import logging.handlers
import sys
import time
import traceback
from pathlib import Path
from types import TracebackType

from quizmaker.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

_LOGGING_INITIALIZED = False


class TruncatedFormatter(logging.Formatter):
  """Formatter that keeps only the head and tail of long tracebacks."""

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    lines = traceback.format_exception(*ei)
    if len(lines) > 6:
      return "".join(lines[:1] + ["    ...\n"] + lines[-5:])
    return "".join(lines)


def _build_file_handler(settings: Settings) -> logging.Handler:
  """Create a rotating file handler inside the configured log directory."""
  log_dir = Path(settings.log_dir or "logs")
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log directory at {log_dir}: {exc}") from exc

  log_path = log_dir / f"quizmaker_{time.strftime('%Y%m%d_%H%M%S')}.log"
  handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)
  handler.setFormatter(logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return handler


def setup_logging(settings: Settings) -> list[logging.Handler]:
  """Route the quizmaker loggers to stdout and, when configured, a rotating file."""
  global _LOGGING_INITIALIZED
  logger = logging.getLogger("quizmaker")
  if _LOGGING_INITIALIZED:
    return list(logger.handlers)

  stream = logging.StreamHandler(sys.stdout)
  stream.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  handlers: list[logging.Handler] = [stream]
  if settings.log_dir:
    handlers.append(_build_file_handler(settings))

  logger.handlers = handlers
  logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)
  logger.propagate = False

  _LOGGING_INITIALIZED = True
  logger.info("Logging initialized environment=%s handlers=%d", settings.environment, len(handlers))
  return handlers
