"""End-to-end wizard sessions against a mocked quiz API."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import httpx
import pytest

from quizmaker.jobs.poller import JobPoller
from quizmaker.schema.quiz import CreationMethod
from quizmaker.services.generation import GenerationJobClient
from quizmaker.services.quizzes import QuizClient
from quizmaker.services.transport import HttpxTransport
from quizmaker.wizard.controller import WizardController
from quizmaker.wizard.drafts import QuizDraft, SourceDocument
from quizmaker.wizard.states import Complete, Configuring, Generating, MethodSelection

SOURCE_TEXT = "The French Revolution began in 1789 and reshaped European politics. " * 10


class FakeQuizApi:
  """Serves scripted generation-status payloads and records every request."""

  def __init__(self, statuses: list[dict[str, object]]) -> None:
    self._statuses = statuses
    self.requests: list[tuple[str, str]] = []

  def status_calls(self) -> int:
    return sum(1 for method, path in self.requests if method == "GET" and "/generation-status/" in path)

  def __call__(self, request: httpx.Request) -> httpx.Response:
    self.requests.append((request.method, request.url.path))
    path = request.url.path
    if request.method == "POST" and path in ("/v1/quizzes/generate-from-text", "/v1/quizzes/generate-from-upload"):
      return httpx.Response(202, json={"jobId": "job-1", "status": "PENDING", "message": "Generation started"})
    if request.method == "GET" and path == "/v1/quizzes/generation-status/job-1":
      body = self._statuses.pop(0) if len(self._statuses) > 1 else self._statuses[0]
      return httpx.Response(200, json=body)
    if request.method == "DELETE" and path == "/v1/quizzes/generation-status/job-1":
      return httpx.Response(200, json={"jobId": "job-1", "status": "CANCELLED"})
    if request.method == "GET" and path == "/v1/quizzes/generated-quiz/job-1":
      return httpx.Response(200, json={"id": "quiz-9", "title": "French Revolution"})
    return httpx.Response(404, json={"detail": "unknown route"})


def _wizard(api: Callable[[httpx.Request], httpx.Response]) -> tuple[WizardController, HttpxTransport]:
  http_client = httpx.AsyncClient(base_url="http://quiz-api.test", transport=httpx.MockTransport(api))
  transport = HttpxTransport("http://quiz-api.test", client=http_client)
  generation_client = GenerationJobClient(transport)
  controller = WizardController(
    generation_client=generation_client,
    quiz_client=QuizClient(transport),
    poller_factory=lambda listener: JobPoller(generation_client, interval_seconds=0, listener=listener),
  )
  return controller, transport


@pytest.mark.anyio
async def test_text_generation_completes_with_generated_quiz() -> None:
  api = FakeQuizApi(
    [
      {"status": "PROCESSING", "progressPercentage": 50},
      {"status": "COMPLETED", "progressPercentage": 100, "generatedQuizId": None},
    ]
  )
  wizard, transport = _wizard(api)
  progress: list[float | None] = []
  wizard.subscribe(lambda step: progress.append(step.job.progress_percent) if isinstance(step, Generating) else None)

  wizard.select_method(CreationMethod.FROM_TEXT)
  wizard.update_draft(title="French Revolution")
  wizard.update_generation_config(source_text=SOURCE_TEXT)
  assert isinstance(await wizard.submit(), Generating)
  final = await wizard.wait_for_generation()
  await transport.aclose()

  assert final == Complete(resource_id="quiz-9", method=CreationMethod.FROM_TEXT)
  assert progress == [None, 50]
  assert ("GET", "/v1/quizzes/generated-quiz/job-1") in api.requests


@pytest.mark.anyio
async def test_failed_document_job_is_restartable() -> None:
  api = FakeQuizApi([{"status": "FAILED", "errorMessage": "document too large"}])
  wizard, transport = _wizard(api)

  wizard.select_method(CreationMethod.FROM_DOCUMENT)
  wizard.update_draft(title="Revolution notes")
  wizard.update_generation_config(source_document=SourceDocument(filename="notes.txt", content=SOURCE_TEXT.encode(), content_type="text/plain"))
  await wizard.submit()
  final = await wizard.wait_for_generation()
  await transport.aclose()

  assert isinstance(final, Configuring)
  assert final.failure_message == "document too large"
  assert final.method is CreationMethod.FROM_DOCUMENT
  assert wizard.draft.title == "Revolution notes"
  assert wizard.generation_config.source_document.filename == "notes.txt"
  assert ("POST", "/v1/quizzes/generate-from-upload") in api.requests


@pytest.mark.anyio
async def test_cancel_stops_polling_and_clears_draft() -> None:
  api = FakeQuizApi([{"status": "PROCESSING", "progressPercentage": 10}])
  wizard, transport = _wizard(api)

  wizard.select_method(CreationMethod.FROM_TEXT)
  wizard.update_draft(title="French Revolution")
  wizard.update_generation_config(source_text=SOURCE_TEXT)
  await wizard.submit()
  while api.status_calls() < 2:
    await asyncio.sleep(0)

  step = await wizard.cancel_generation()
  calls_at_cancel = api.status_calls()
  for _ in range(20):
    await asyncio.sleep(0)
  await transport.aclose()

  assert isinstance(step, MethodSelection)
  assert wizard.draft == QuizDraft()
  assert ("DELETE", "/v1/quizzes/generation-status/job-1") in api.requests
  assert api.status_calls() == calls_at_cancel
