from __future__ import annotations

import asyncio

import pytest

from quizmaker.core.errors import ClassifiedError, ErrorKind, GenerationRequestError
from quizmaker.jobs.models import GenerationJob, JobStatus
from quizmaker.jobs.poller import JobPoller, PollerState, PollEvent


def _job(status: JobStatus, *, job_id: str = "job-1", message: str = "", progress: float | None = None, resource_id: str | None = None) -> GenerationJob:
  return GenerationJob(job_id=job_id, status=status, human_message=message, progress_percent=progress, result_resource_id=resource_id)


def _request_error(kind: ErrorKind, message: str = "failed") -> GenerationRequestError:
  return GenerationRequestError(ClassifiedError(kind=kind, message=message))


class ScriptedStatusClient:
  """Replays status snapshots; the last entry repeats forever."""

  def __init__(self, *statuses: GenerationJob | Exception, quiz_id: str = "quiz-9", cancel_error: Exception | None = None) -> None:
    self._statuses = list(statuses)
    self._quiz_id = quiz_id
    self._cancel_error = cancel_error
    self.status_calls: list[str] = []
    self.quiz_id_calls: list[str] = []
    self.cancel_calls: list[str] = []

  async def get_status(self, job_id: str) -> GenerationJob:
    self.status_calls.append(job_id)
    item = self._statuses.pop(0) if len(self._statuses) > 1 else self._statuses[0]
    if isinstance(item, Exception):
      raise item
    return item

  async def get_generated_quiz_id(self, job_id: str) -> str:
    self.quiz_id_calls.append(job_id)
    return self._quiz_id

  async def cancel(self, job_id: str) -> GenerationJob:
    self.cancel_calls.append(job_id)
    if self._cancel_error is not None:
      raise self._cancel_error
    return _job(JobStatus.CANCELLED, job_id=job_id)


class GatedStatusClient(ScriptedStatusClient):
  """Blocks every status call until the gate opens."""

  def __init__(self, *statuses: GenerationJob | Exception) -> None:
    super().__init__(*statuses)
    self.gate = asyncio.Event()

  async def get_status(self, job_id: str) -> GenerationJob:
    self.status_calls.append(job_id)
    await self.gate.wait()
    return self._statuses[0]


def _poller(client: ScriptedStatusClient, events: list[PollEvent], **kwargs: object) -> JobPoller:
  return JobPoller(client, interval_seconds=0, listener=events.append, **kwargs)


async def _spin(times: int = 10) -> None:
  for _ in range(times):
    await asyncio.sleep(0)


@pytest.mark.anyio
async def test_progress_then_success_in_order() -> None:
  client = ScriptedStatusClient(_job(JobStatus.PROCESSING, progress=40), _job(JobStatus.PROCESSING, progress=80), _job(JobStatus.COMPLETED, resource_id="quiz-3"))
  events: list[PollEvent] = []
  poller = _poller(client, events)

  poller.start(_job(JobStatus.PENDING))
  final = await poller.wait()

  assert [event.state for event in events] == [PollerState.POLLING, PollerState.POLLING, PollerState.SUCCEEDED]
  assert [event.job.progress_percent for event in events[:2]] == [40, 80]
  assert final.resource_id == "quiz-3"
  assert poller.state is PollerState.SUCCEEDED
  assert client.quiz_id_calls == []


@pytest.mark.anyio
async def test_completed_without_resource_id_fetches_generated_quiz() -> None:
  client = ScriptedStatusClient(_job(JobStatus.COMPLETED))
  events: list[PollEvent] = []
  poller = _poller(client, events)

  poller.start(_job(JobStatus.PENDING))
  final = await poller.wait()

  assert final.state is PollerState.SUCCEEDED
  assert final.resource_id == "quiz-9"
  assert client.quiz_id_calls == ["job-1"]


@pytest.mark.anyio
async def test_failed_job_keeps_server_message() -> None:
  client = ScriptedStatusClient(_job(JobStatus.FAILED, message="document too large"))
  poller = _poller(client, [])

  poller.start(_job(JobStatus.PROCESSING))
  final = await poller.wait()

  assert final.state is PollerState.FAILED
  assert final.job.human_message == "document too large"
  assert final.resource_id is None


@pytest.mark.anyio
async def test_server_side_cancel_is_terminal() -> None:
  poller = _poller(ScriptedStatusClient(_job(JobStatus.CANCELLED)), [])

  poller.start(_job(JobStatus.PENDING))

  assert (await poller.wait()).state is PollerState.CANCELLED


@pytest.mark.anyio
async def test_cancel_stops_polling_and_drops_late_responses() -> None:
  client = GatedStatusClient(_job(JobStatus.COMPLETED, resource_id="quiz-late"))
  events: list[PollEvent] = []
  poller = _poller(client, events)

  poller.start(_job(JobStatus.PENDING))
  await _spin()
  assert client.status_calls == ["job-1"]

  await poller.cancel()
  client.gate.set()
  await _spin()

  assert poller.state is PollerState.CANCELLED
  assert [event.state for event in events] == [PollerState.CANCELLED]
  assert client.status_calls == ["job-1"]
  assert client.cancel_calls == ["job-1"]
  assert (await poller.wait()).state is PollerState.CANCELLED


@pytest.mark.anyio
async def test_server_cancel_failure_is_ignored() -> None:
  client = ScriptedStatusClient(_job(JobStatus.PROCESSING), cancel_error=_request_error(ErrorKind.SERVER))
  poller = JobPoller(client, interval_seconds=60)

  poller.start(_job(JobStatus.PENDING))
  await poller.cancel()

  assert poller.state is PollerState.CANCELLED
  assert client.cancel_calls == ["job-1"]
  assert client.status_calls == []


@pytest.mark.anyio
async def test_cancel_when_idle_is_a_no_op() -> None:
  client = ScriptedStatusClient(_job(JobStatus.PROCESSING))
  poller = JobPoller(client)

  await poller.cancel()

  assert poller.state is PollerState.IDLE
  assert client.cancel_calls == []
  assert await poller.wait() is None


@pytest.mark.anyio
async def test_transient_errors_keep_polling() -> None:
  client = ScriptedStatusClient(_request_error(ErrorKind.SERVER, "Server error occurred"), _job(JobStatus.COMPLETED, resource_id="quiz-4"))
  events: list[PollEvent] = []
  poller = _poller(client, events)

  poller.start(_job(JobStatus.PENDING))
  final = await poller.wait()

  assert events[0].state is PollerState.POLLING
  assert events[0].error.kind is ErrorKind.SERVER
  assert final.resource_id == "quiz-4"


@pytest.mark.anyio
async def test_missing_job_fails_polling() -> None:
  client = ScriptedStatusClient(_request_error(ErrorKind.NOT_FOUND, "Generation job or quiz not found"))
  poller = _poller(client, [])

  poller.start(_job(JobStatus.PENDING))
  final = await poller.wait()

  assert final.state is PollerState.FAILED
  assert final.error.kind is ErrorKind.NOT_FOUND
  assert client.status_calls == ["job-1"]


@pytest.mark.anyio
async def test_slow_jobs_are_flagged_but_not_abandoned() -> None:
  now = [0.0]

  class AgingClient(ScriptedStatusClient):
    async def get_status(self, job_id: str) -> GenerationJob:
      now[0] += 6
      return await super().get_status(job_id)

  client = AgingClient(_job(JobStatus.PROCESSING), _job(JobStatus.PROCESSING), _job(JobStatus.COMPLETED, resource_id="quiz-5"))
  events: list[PollEvent] = []
  poller = _poller(client, events, slow_job_warning_seconds=10, clock=lambda: now[0])

  poller.start(_job(JobStatus.PENDING))
  final = await poller.wait()

  assert [event.overdue for event in events] == [False, True, True]
  assert final.state is PollerState.SUCCEEDED


@pytest.mark.anyio
async def test_restart_discards_previous_job() -> None:
  client = ScriptedStatusClient(_job(JobStatus.COMPLETED, job_id="job-2", resource_id="quiz-2"))
  events: list[PollEvent] = []
  poller = _poller(client, events)

  poller.start(_job(JobStatus.PENDING, job_id="job-1"))
  poller.start(_job(JobStatus.PENDING, job_id="job-2"))
  final = await poller.wait()

  assert client.status_calls == ["job-2"]
  assert final.resource_id == "quiz-2"
  assert len(events) == 1


@pytest.mark.anyio
async def test_terminal_state_is_absorbing() -> None:
  client = ScriptedStatusClient(_job(JobStatus.FAILED, message="bad input"))
  events: list[PollEvent] = []
  poller = _poller(client, events)

  poller.start(_job(JobStatus.PENDING))
  await poller.wait()
  await poller.cancel()

  assert poller.state is PollerState.FAILED
  assert client.cancel_calls == []
  assert len(events) == 1


@pytest.mark.anyio
async def test_unexpected_status_error_fails_the_job() -> None:
  client = ScriptedStatusClient(ConnectionResetError("peer reset"))
  events: list[PollEvent] = []
  poller = _poller(client, events)

  poller.start(_job(JobStatus.PROCESSING))
  final = await asyncio.wait_for(poller.wait(), 1.0)

  assert final.state is PollerState.FAILED
  assert final.error.kind is ErrorKind.UNKNOWN
  assert final.error.message == "peer reset"
  assert [event.state for event in events] == [PollerState.FAILED]


@pytest.mark.anyio
async def test_unexpected_server_cancel_error_is_ignored() -> None:
  client = ScriptedStatusClient(_job(JobStatus.PROCESSING), cancel_error=ConnectionResetError("peer reset"))
  poller = JobPoller(client, interval_seconds=60)

  poller.start(_job(JobStatus.PENDING))
  await poller.cancel()

  assert poller.state is PollerState.CANCELLED
  assert client.cancel_calls == ["job-1"]
