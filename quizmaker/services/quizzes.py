"""Client for synchronous quiz creation."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from quizmaker.api.models import CreateQuizRequest, ResourceIdResponse
from quizmaker.core.errors import ClassifiedError, ErrorClassifier, ErrorKind, GenerationRequestError
from quizmaker.services.transport import Transport, TransportError
from quizmaker.wizard.drafts import QuizDraft

logger = logging.getLogger(__name__)


class QuizClient:
  """Synchronous quiz creation used by the manual path."""

  def __init__(self, transport: Transport, *, classifier: ErrorClassifier | None = None, base_path: str = "/v1/quizzes") -> None:
    self._transport = transport
    self._classifier = classifier or ErrorClassifier()
    self._base_path = base_path.rstrip("/")

  async def create_quiz(self, draft: QuizDraft) -> str:
    request = CreateQuizRequest.from_draft(draft)
    try:
      body = await self._transport.request("POST", self._base_path, json=request.to_payload())
    except TransportError as exc:
      raise GenerationRequestError(self._classifier.classify(exc)) from exc

    try:
      quiz_id = ResourceIdResponse.model_validate(body).id
    except ValidationError as exc:
      logger.error("Unexpected create quiz response errors=%s", exc.error_count())
      raise GenerationRequestError(ClassifiedError(kind=ErrorKind.UNKNOWN, message="Unexpected response from create_quiz")) from exc

    logger.info("Quiz created quiz_id=%s", quiz_id)
    return quiz_id
