"""camelCase wire models for the quiz generation API."""

from __future__ import annotations

import json
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr, field_validator
from pydantic.alias_generators import to_camel

from quizmaker.jobs.models import GenerationJob, JobStatus
from quizmaker.schema.quiz import ChunkingStrategy, Difficulty, QuestionType, QuizScope, Visibility
from quizmaker.wizard.drafts import DocumentGenerationConfig, QuizDraft, TextGenerationConfig


class CamelModel(BaseModel):
  """Wire model using the API's camelCase field names."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", use_enum_values=True)

  def to_payload(self) -> dict[str, Any]:
    return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _optional_text(value: str | None) -> str | None:
  if value is None:
    return None
  stripped = value.strip()
  return stripped or None


def _tag_list(tag_ids: set[str]) -> list[str] | None:
  return sorted(tag_ids) if tag_ids else None


class CreateQuizRequest(CamelModel):
  """Payload for synchronous quiz creation (manual path)."""

  title: StrictStr = Field(min_length=3, max_length=100)
  description: StrictStr | None = Field(default=None, max_length=1000)
  visibility: Visibility = Visibility.PRIVATE
  difficulty: Difficulty = Difficulty.MEDIUM
  is_repetition_enabled: bool = False
  timer_enabled: bool = False
  estimated_time: int = Field(ge=1, le=180)
  timer_duration: int = Field(ge=1, le=180)
  category_id: StrictStr | None = None
  tag_ids: list[StrictStr] | None = None

  @classmethod
  def from_draft(cls, draft: QuizDraft) -> CreateQuizRequest:
    # The API always requires a timer duration; keep it in range while the timer is off.
    timer_duration = draft.timer_duration_minutes if draft.timer_enabled else min(max(draft.timer_duration_minutes or 1, 1), 180)
    return cls(
      title=draft.title.strip(),
      description=_optional_text(draft.description),
      visibility=draft.visibility,
      difficulty=draft.difficulty,
      is_repetition_enabled=draft.repetition_allowed,
      timer_enabled=draft.timer_enabled,
      estimated_time=draft.estimated_time_minutes,
      timer_duration=timer_duration,
      category_id=draft.category_id,
      tag_ids=_tag_list(draft.tag_ids),
    )


class GenerateFromTextRequest(CamelModel):
  """JSON payload for `generate-from-text`."""

  text: StrictStr = Field(min_length=1, max_length=300_000)
  questions_per_type: dict[QuestionType, int] = Field(min_length=1)
  difficulty: Difficulty
  language: StrictStr | None = None
  chunking_strategy: ChunkingStrategy | None = None
  max_chunk_size: int | None = Field(default=None, ge=1_000, le=300_000)
  quiz_scope: QuizScope | None = None
  quiz_title: StrictStr | None = Field(default=None, max_length=100)
  quiz_description: StrictStr | None = Field(default=None, max_length=500)
  estimated_time_per_question: int | None = Field(default=None, ge=1, le=10)
  category_id: StrictStr | None = None
  tag_ids: list[StrictStr] | None = None

  @classmethod
  def from_config(cls, config: TextGenerationConfig, draft: QuizDraft | None = None) -> GenerateFromTextRequest:
    draft = draft or QuizDraft()
    return cls(
      text=config.source_text,
      questions_per_type=config.questions.positive(),
      difficulty=config.difficulty,
      language=config.language,
      chunking_strategy=config.chunking_strategy,
      max_chunk_size=config.max_chunk_size,
      quiz_scope=config.quiz_scope,
      quiz_title=_optional_text(draft.title),
      quiz_description=_optional_text(draft.description[:500] if draft.description else None),
      estimated_time_per_question=config.estimated_time_per_question,
      category_id=draft.category_id,
      tag_ids=_tag_list(draft.tag_ids),
    )


class UploadGenerationForm(CamelModel):
  """Form fields sent next to the file for `generate-from-upload`."""

  title: StrictStr
  quiz_title: StrictStr | None = None
  quiz_description: StrictStr | None = None
  questions_per_type: dict[QuestionType, int] = Field(min_length=1)
  difficulty: Difficulty
  quiz_scope: QuizScope = QuizScope.ENTIRE_DOCUMENT
  chunking_strategy: ChunkingStrategy = ChunkingStrategy.AUTO
  max_chunk_size: int = Field(default=50_000, ge=1_000, le=300_000)
  estimated_time_per_question: int = Field(default=2, ge=1, le=10)
  chunk_indices: list[int] | None = None
  page_ranges: list[tuple[int, int]] | None = None
  category_id: StrictStr | None = None
  tag_ids: list[StrictStr] | None = None

  @classmethod
  def from_config(cls, config: DocumentGenerationConfig, draft: QuizDraft | None = None) -> UploadGenerationForm:
    if config.source_document is None:
      raise ValueError("A source document is required for upload generation.")
    draft = draft or QuizDraft()
    document = config.source_document
    document_title = document.filename.rsplit(".", 1)[0] if "." in document.filename else document.filename
    return cls(
      title=document_title,
      quiz_title=_optional_text(draft.title) or document_title[:100],
      quiz_description=_optional_text(draft.description[:500] if draft.description else None),
      questions_per_type=config.questions.positive(),
      difficulty=config.difficulty,
      quiz_scope=config.quiz_scope,
      chunking_strategy=config.chunking_strategy,
      max_chunk_size=config.max_chunk_size,
      estimated_time_per_question=config.estimated_time_per_question,
      chunk_indices=list(document.chunk_indices) or None,
      page_ranges=[(page_range.start, page_range.end) for page_range in document.page_ranges] or None,
      category_id=draft.category_id,
      tag_ids=_tag_list(draft.tag_ids),
    )

  def to_form_data(self) -> dict[str, str]:
    """Flatten to multipart string fields; structured values are JSON encoded."""
    form: dict[str, str] = {}
    for key, value in self.to_payload().items():
      if isinstance(value, (dict, list)):
        form[key] = json.dumps(value)
      else:
        form[key] = str(value)
    return form


class GenerationStartedResponse(CamelModel):
  """Response to a generation submission."""

  job_id: StrictStr
  status: JobStatus = JobStatus.PENDING
  message: str | None = None
  estimated_time_seconds: int | None = None

  @field_validator("status", mode="before")
  @classmethod
  def normalize_status(cls, value: Any) -> Any:
    if isinstance(value, str):
      return value.strip().upper()
    return value

  def to_job(self) -> GenerationJob:
    return GenerationJob(job_id=self.job_id, status=JobStatus(self.status), human_message=self.message or "", estimated_duration_seconds=self.estimated_time_seconds)


class GenerationStatusResponse(CamelModel):
  """Status payload; accepts both the current and the legacy field names."""

  job_id: StrictStr | None = None
  status: JobStatus
  message: str | None = None
  error_message: str | None = None
  progress: float | None = Field(default=None, validation_alias=AliasChoices("progress", "progressPercentage"))
  estimated_time_seconds: int | None = Field(default=None, validation_alias=AliasChoices("estimatedTimeSeconds", "estimatedTimeRemainingSeconds"))
  result_resource_id: StrictStr | None = Field(default=None, validation_alias=AliasChoices("resultResourceId", "generatedQuizId"))
  created_at: str | None = Field(default=None, validation_alias=AliasChoices("createdAt", "startedAt"))
  updated_at: str | None = Field(default=None, validation_alias=AliasChoices("updatedAt", "completedAt"))

  @field_validator("status", mode="before")
  @classmethod
  def normalize_status(cls, value: Any) -> Any:
    if isinstance(value, str):
      return value.strip().upper()
    return value

  @property
  def human_message(self) -> str:
    return self.error_message or self.message or ""

  def to_job(self, job_id: str) -> GenerationJob:
    return GenerationJob(
      job_id=self.job_id or job_id,
      status=JobStatus(self.status),
      human_message=self.human_message,
      progress_percent=self.progress,
      estimated_duration_seconds=self.estimated_time_seconds,
      created_at=self.created_at,
      updated_at=self.updated_at,
      result_resource_id=self.result_resource_id,
    )


class ResourceIdResponse(CamelModel):
  """Any response that identifies a created quiz."""

  id: StrictStr = Field(validation_alias=AliasChoices("quizId", "id", "generatedQuizId"))
