"""Domain models for server-tracked quiz generation jobs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class JobStatus(str, Enum):
  """Lifecycle states reported by the generation service."""

  PENDING = "PENDING"
  PROCESSING = "PROCESSING"
  COMPLETED = "COMPLETED"
  FAILED = "FAILED"
  CANCELLED = "CANCELLED"

  @property
  def is_terminal(self) -> bool:
    return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})


@dataclass(frozen=True)
class GenerationJob:
  """Last snapshot of a generation job as reported by the server."""

  job_id: str
  status: JobStatus
  human_message: str = ""
  progress_percent: float | None = None
  estimated_duration_seconds: int | None = None
  created_at: str | None = None
  updated_at: str | None = None
  result_resource_id: str | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status.is_terminal

  @property
  def progress_is_indeterminate(self) -> bool:
    """True when the server did not report progress; not the same as 0%."""
    return self.progress_percent is None
