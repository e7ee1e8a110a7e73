"""Polling loop that follows one generation job to a terminal state."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from quizmaker.core.errors import ClassifiedError, ErrorClassifier, ErrorKind, GenerationRequestError
from quizmaker.jobs.models import GenerationJob, JobStatus

logger = logging.getLogger(__name__)

# Failures that will not fix themselves by polling again.
_FATAL_POLL_ERRORS = frozenset({ErrorKind.NOT_FOUND, ErrorKind.AUTH})


class PollerState(str, Enum):
  IDLE = "IDLE"
  POLLING = "POLLING"
  SUCCEEDED = "SUCCEEDED"
  FAILED = "FAILED"
  CANCELLED = "CANCELLED"

  @property
  def is_terminal(self) -> bool:
    return self in (PollerState.SUCCEEDED, PollerState.FAILED, PollerState.CANCELLED)


@dataclass(frozen=True)
class PollEvent:
  """One observation delivered to the poller's listener."""

  state: PollerState
  job: GenerationJob | None = None
  error: ClassifiedError | None = None
  resource_id: str | None = None
  overdue: bool = False

  @property
  def is_terminal(self) -> bool:
    return self.state.is_terminal


PollListener = Callable[[PollEvent], None]


class StatusSource(Protocol):
  """The part of `GenerationJobClient` the poller needs."""

  async def get_status(self, job_id: str) -> GenerationJob: ...

  async def get_generated_quiz_id(self, job_id: str) -> str: ...

  async def cancel(self, job_id: str) -> GenerationJob: ...


class JobPoller:
  """Poll `get_status` on a fixed interval until the job settles.

  At most one polling task is alive. Every start/cancel bumps a generation
  counter and responses from an older generation are dropped, so snapshots are
  applied in the order their requests were issued.
  """

  def __init__(self, client: StatusSource, *, interval_seconds: float = 5.0, slow_job_warning_seconds: float = 600.0, listener: PollListener | None = None, clock: Callable[[], float] = time.monotonic, classifier: ErrorClassifier | None = None) -> None:
    self._client = client
    self._classifier = classifier or ErrorClassifier()
    self._interval = interval_seconds
    self._slow_after = slow_job_warning_seconds
    self._listener = listener
    self._clock = clock
    self._generation = 0
    self._task: asyncio.Task[None] | None = None
    self._state = PollerState.IDLE
    self._job: GenerationJob | None = None
    self._final: PollEvent | None = None
    self._done = asyncio.Event()
    self._started_at = 0.0
    self._overdue = False

  @property
  def state(self) -> PollerState:
    return self._state

  @property
  def job(self) -> GenerationJob | None:
    return self._job

  @property
  def final_event(self) -> PollEvent | None:
    return self._final

  def start(self, job: GenerationJob) -> None:
    """Begin following `job`, replacing whatever was being polled before."""
    self._stop_task()
    self._generation += 1
    self._state = PollerState.POLLING
    self._job = job
    self._final = None
    self._done.clear()
    self._started_at = self._clock()
    self._overdue = False
    logger.info("Polling generation job job_id=%s interval=%.1fs", job.job_id, self._interval)
    self._task = asyncio.create_task(self._run(self._generation, job), name=f"poll-{job.job_id}")

  async def cancel(self) -> None:
    """Stop polling now, then ask the server to cancel; server errors are logged only."""
    if self._state is not PollerState.POLLING:
      return

    job = self._job
    self._generation += 1
    self._stop_task()
    self._finish(PollEvent(state=PollerState.CANCELLED, job=job, overdue=self._overdue))

    try:
      await self._client.cancel(job.job_id)
    except GenerationRequestError as exc:
      logger.warning("Server cancel failed job_id=%s kind=%s message=%s", job.job_id, exc.kind.value, exc.classified.message)
    except Exception as exc:
      logger.warning("Server cancel failed job_id=%s error_type=%s message=%s", job.job_id, type(exc).__name__, exc)

  async def wait(self) -> PollEvent | None:
    """Wait for the terminal event of the current job; None when nothing was started."""
    if self._state is PollerState.IDLE:
      return None
    await self._done.wait()
    return self._final

  def _stop_task(self) -> None:
    task = self._task
    self._task = None
    if task is not None and not task.done():
      task.cancel()

  def _is_current(self, generation: int) -> bool:
    return generation == self._generation and self._state is PollerState.POLLING

  def _check_overdue(self, job_id: str) -> bool:
    if not self._overdue and self._clock() - self._started_at >= self._slow_after:
      self._overdue = True
      logger.warning("Generation job exceeded slow threshold job_id=%s threshold=%.0fs", job_id, self._slow_after)
    return self._overdue

  async def _run(self, generation: int, job: GenerationJob) -> None:
    try:
      await self._poll(generation, job)
    except Exception as exc:
      if not self._is_current(generation):
        return
      classified = self._classifier.classify(exc)
      logger.exception("Polling aborted job_id=%s error_type=%s", job.job_id, type(exc).__name__)
      self._finish(PollEvent(state=PollerState.FAILED, job=self._job, error=classified, overdue=self._overdue))

  async def _poll(self, generation: int, job: GenerationJob) -> None:
    if job.is_terminal:
      await self._settle(generation, job)
      return

    while True:
      await asyncio.sleep(self._interval)
      if not self._is_current(generation):
        return

      try:
        snapshot = await self._client.get_status(job.job_id)
      except GenerationRequestError as exc:
        if not self._is_current(generation):
          return
        if exc.kind in _FATAL_POLL_ERRORS:
          logger.warning("Polling stopped job_id=%s kind=%s", job.job_id, exc.kind.value)
          self._finish(PollEvent(state=PollerState.FAILED, job=self._job, error=exc.classified, overdue=self._overdue))
          return
        logger.warning("Transient polling failure job_id=%s kind=%s message=%s", job.job_id, exc.kind.value, exc.classified.message)
        self._emit(PollEvent(state=PollerState.POLLING, job=self._job, error=exc.classified, overdue=self._check_overdue(job.job_id)))
        continue

      if not self._is_current(generation):
        logger.debug("Discarding stale status job_id=%s status=%s", snapshot.job_id, snapshot.status.value)
        return

      self._job = snapshot
      if snapshot.is_terminal:
        await self._settle(generation, snapshot)
        return
      self._emit(PollEvent(state=PollerState.POLLING, job=snapshot, overdue=self._check_overdue(job.job_id)))

  async def _settle(self, generation: int, job: GenerationJob) -> None:
    if job.status is JobStatus.COMPLETED:
      resource_id = job.result_resource_id
      if not resource_id:
        try:
          resource_id = await self._client.get_generated_quiz_id(job.job_id)
        except GenerationRequestError as exc:
          if self._is_current(generation):
            logger.error("Completed job has no retrievable quiz job_id=%s kind=%s", job.job_id, exc.kind.value)
            self._finish(PollEvent(state=PollerState.FAILED, job=job, error=exc.classified, overdue=self._overdue))
          return
        if not self._is_current(generation):
          return
      logger.info("Generation job completed job_id=%s resource_id=%s", job.job_id, resource_id)
      self._finish(PollEvent(state=PollerState.SUCCEEDED, job=job, resource_id=resource_id, overdue=self._overdue))
    elif job.status is JobStatus.FAILED:
      logger.info("Generation job failed job_id=%s message=%s", job.job_id, job.human_message)
      self._finish(PollEvent(state=PollerState.FAILED, job=job, overdue=self._overdue))
    else:
      logger.info("Generation job cancelled by server job_id=%s", job.job_id)
      self._finish(PollEvent(state=PollerState.CANCELLED, job=job, overdue=self._overdue))

  def _finish(self, event: PollEvent) -> None:
    # Terminal states are absorbing.
    if self._state is not PollerState.POLLING:
      return
    self._state = event.state
    self._final = event
    self._emit(event)
    self._done.set()

  def _emit(self, event: PollEvent) -> None:
    if self._listener is None:
      return
    try:
      self._listener(event)
    except Exception:
      logger.exception("Poll listener failed state=%s", event.state.value)
