"""Field-level validation for quiz drafts and generation configs."""

from __future__ import annotations

from quizmaker.wizard.drafts import DocumentGenerationConfig, GenerationConfig, QuizDraft, TextGenerationConfig

FieldErrors = dict[str, str]

MIN_TITLE_CHARS = 3
MAX_TITLE_CHARS = 100
MAX_DESCRIPTION_CHARS = 1000
MIN_MINUTES = 1
MAX_MINUTES = 180
MIN_SOURCE_TEXT_CHARS = 10
MAX_SOURCE_TEXT_CHARS = 300_000
MIN_CHUNK_SIZE = 1_000
MAX_CHUNK_SIZE = 300_000
MAX_DOCUMENT_BYTES = 150 * 1024 * 1024
SUPPORTED_DOCUMENT_TYPES = frozenset(
  {
    "application/pdf",
    "application/epub+zip",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
  }
)


def validate_draft(draft: QuizDraft) -> FieldErrors:
  """Check the quiz metadata every creation method shares."""
  errors: FieldErrors = {}

  title = (draft.title or "").strip()
  if not title:
    errors["title"] = "Quiz title is required"
  elif len(title) < MIN_TITLE_CHARS:
    errors["title"] = f"Quiz title must be at least {MIN_TITLE_CHARS} characters"
  elif len(title) > MAX_TITLE_CHARS:
    errors["title"] = f"Quiz title must be no more than {MAX_TITLE_CHARS} characters"

  if draft.description and len(draft.description.strip()) > MAX_DESCRIPTION_CHARS:
    errors["description"] = f"Description must be no more than {MAX_DESCRIPTION_CHARS} characters"

  if not draft.estimated_time_minutes or draft.estimated_time_minutes < MIN_MINUTES:
    errors["estimated_time_minutes"] = "Estimated time must be at least 1 minute"
  elif draft.estimated_time_minutes > MAX_MINUTES:
    errors["estimated_time_minutes"] = f"Estimated time must be no more than {MAX_MINUTES} minutes"

  # Timer duration only matters when the timer is on.
  if draft.timer_enabled:
    if not draft.timer_duration_minutes or draft.timer_duration_minutes < MIN_MINUTES:
      errors["timer_duration_minutes"] = "Timer duration must be at least 1 minute when timer is enabled"
    elif draft.timer_duration_minutes > MAX_MINUTES:
      errors["timer_duration_minutes"] = f"Timer duration must be no more than {MAX_MINUTES} minutes"

  return errors


def _validate_shared(config: GenerationConfig, errors: FieldErrors) -> None:
  if not config.questions.positive():
    errors["questions"] = "Select at least one question type with a count greater than 0"

  if not MIN_CHUNK_SIZE <= config.max_chunk_size <= MAX_CHUNK_SIZE:
    errors["max_chunk_size"] = f"Max chunk size must be between {MIN_CHUNK_SIZE} and {MAX_CHUNK_SIZE} characters"

  if not 1 <= config.estimated_time_per_question <= 10:
    errors["estimated_time_per_question"] = "Time per question must be between 1 and 10 minutes"


def _validate_text(config: TextGenerationConfig, errors: FieldErrors) -> None:
  text_length = len(config.source_text or "")
  if not (config.source_text or "").strip():
    errors["source_text"] = "Text content is required"
  elif text_length < MIN_SOURCE_TEXT_CHARS:
    errors["source_text"] = f"Text must be at least {MIN_SOURCE_TEXT_CHARS} characters"
  elif text_length > MAX_SOURCE_TEXT_CHARS:
    errors["source_text"] = f"Text must be no more than {MAX_SOURCE_TEXT_CHARS:,} characters"

  if not (config.language or "").strip():
    errors["language"] = "Language is required"


def _validate_document(config: DocumentGenerationConfig, errors: FieldErrors) -> None:
  document = config.source_document
  if document is None or not document.content:
    errors["source_document"] = "Upload a document to generate questions from"
    return

  if document.content_type not in SUPPORTED_DOCUMENT_TYPES:
    errors["source_document"] = "File type not supported. Supported types: PDF, EPUB, DOCX, TXT"
  elif document.size_bytes > MAX_DOCUMENT_BYTES:
    errors["source_document"] = "File size exceeds maximum allowed size of 150 MB"

  for page_range in document.page_ranges:
    if page_range.start < 1 or page_range.end < page_range.start:
      errors["page_ranges"] = f"Invalid page range {page_range.start}-{page_range.end}"
      break

  if any(index < 0 for index in document.chunk_indices):
    errors["chunk_indices"] = "Chunk indices must be zero or greater"


def validate_generation_config(config: GenerationConfig | None) -> FieldErrors:
  """Check the method-specific generation settings."""
  errors: FieldErrors = {}
  if config is None:
    return errors

  if isinstance(config, TextGenerationConfig):
    _validate_text(config, errors)
  elif isinstance(config, DocumentGenerationConfig):
    _validate_document(config, errors)
  _validate_shared(config, errors)
  return errors
