"""Client for the asynchronous quiz generation endpoints."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from quizmaker.api.models import GenerateFromTextRequest, GenerationStartedResponse, GenerationStatusResponse, ResourceIdResponse, UploadGenerationForm
from quizmaker.core.errors import ClassifiedError, ErrorClassifier, ErrorKind, GenerationRequestError
from quizmaker.jobs.models import GenerationJob
from quizmaker.services.transport import Transport, TransportError
from quizmaker.wizard.drafts import DocumentGenerationConfig, GenerationConfig, QuizDraft, TextGenerationConfig

logger = logging.getLogger(__name__)


def _invalid_response(operation: str, exc: ValidationError) -> GenerationRequestError:
  logger.error("Unexpected generation API response operation=%s errors=%s", operation, exc.error_count())
  return GenerationRequestError(ClassifiedError(kind=ErrorKind.UNKNOWN, message=f"Unexpected response from {operation}"))


class GenerationJobClient:
  """Submit generation jobs and read their status.

  Holds only the last snapshot it has seen; the server stays the source of truth.
  """

  def __init__(self, transport: Transport, *, classifier: ErrorClassifier | None = None, base_path: str = "/v1/quizzes") -> None:
    self._transport = transport
    self._classifier = classifier or ErrorClassifier()
    self._base_path = base_path.rstrip("/")
    self.last_seen: GenerationJob | None = None

  async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
    try:
      return await self._transport.request(method, f"{self._base_path}{path}", **kwargs)
    except TransportError as exc:
      classified = self._classifier.classify(exc)
      logger.info("Generation request failed method=%s path=%s kind=%s", method, path, classified.kind.value)
      raise GenerationRequestError(classified) from exc

  async def submit(self, config: GenerationConfig, draft: QuizDraft | None = None) -> GenerationJob:
    """Start a job for the config; returns the PENDING/PROCESSING snapshot."""
    if isinstance(config, TextGenerationConfig):
      request = GenerateFromTextRequest.from_config(config, draft)
      body = await self._call("POST", "/generate-from-text", json=request.to_payload())
    elif isinstance(config, DocumentGenerationConfig):
      form = UploadGenerationForm.from_config(config, draft)
      document = config.source_document
      files = {"file": (document.filename, document.content, document.content_type)}
      body = await self._call("POST", "/generate-from-upload", data=form.to_form_data(), files=files)
    else:
      raise TypeError(f"Unsupported generation config: {type(config).__name__}")

    try:
      job = GenerationStartedResponse.model_validate(body).to_job()
    except ValidationError as exc:
      raise _invalid_response("submit", exc) from exc

    logger.info("Generation job submitted job_id=%s status=%s method=%s", job.job_id, job.status.value, config.method.value)
    self.last_seen = job
    return job

  async def get_status(self, job_id: str) -> GenerationJob:
    body = await self._call("GET", f"/generation-status/{job_id}")
    try:
      job = GenerationStatusResponse.model_validate(body).to_job(job_id)
    except ValidationError as exc:
      raise _invalid_response("get_status", exc) from exc
    self.last_seen = job
    return job

  async def get_generated_quiz_id(self, job_id: str) -> str:
    """Resolve the quiz created by a completed job."""
    body = await self._call("GET", f"/generated-quiz/{job_id}")
    try:
      return ResourceIdResponse.model_validate(body).id
    except ValidationError as exc:
      raise _invalid_response("get_generated_quiz_id", exc) from exc

  async def cancel(self, job_id: str) -> GenerationJob:
    body = await self._call("DELETE", f"/generation-status/{job_id}")
    try:
      job = GenerationStatusResponse.model_validate(body).to_job(job_id)
    except ValidationError as exc:
      raise _invalid_response("cancel", exc) from exc
    logger.info("Generation job cancelled job_id=%s status=%s", job.job_id, job.status.value)
    self.last_seen = job
    return job
