"""In-memory quiz draft and per-method generation configuration."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from quizmaker.schema.quiz import ChunkingStrategy, CreationMethod, Difficulty, QuestionType, QuizScope, Visibility, clamp_question_count
from quizmaker.services.estimation import ChunkSize

DEFAULT_QUESTION_MIX: dict[QuestionType, int] = {
  QuestionType.MCQ_SINGLE: 3,
  QuestionType.MCQ_MULTI: 1,
  QuestionType.TRUE_FALSE: 2,
  QuestionType.FILL_GAP: 1,
}


class QuestionMix:
  """Requested question counts per type; every write is clamped to the type's maximum."""

  def __init__(self, counts: Mapping[QuestionType | str, int] | None = None) -> None:
    self._counts: dict[QuestionType, int] = {question_type: 0 for question_type in QuestionType}
    for question_type, count in (counts or {}).items():
      self.set(question_type, count)

  @classmethod
  def with_defaults(cls) -> QuestionMix:
    return cls(DEFAULT_QUESTION_MIX)

  def set(self, question_type: QuestionType | str, count: int) -> int:
    """Store a clamped count and return the value actually stored."""
    normalized = QuestionType(question_type)
    stored = clamp_question_count(normalized, count)
    self._counts[normalized] = stored
    return stored

  def get(self, question_type: QuestionType | str) -> int:
    return self._counts[QuestionType(question_type)]

  def positive(self) -> dict[QuestionType, int]:
    """Return only the types with a count above zero, as the API expects."""
    return {question_type: count for question_type, count in self._counts.items() if count > 0}

  def as_dict(self) -> dict[QuestionType, int]:
    return dict(self._counts)

  @property
  def total(self) -> int:
    return sum(self._counts.values())

  def __iter__(self) -> Iterator[tuple[QuestionType, int]]:
    return iter(self._counts.items())

  def __repr__(self) -> str:
    selected = {key.value: value for key, value in self.positive().items()}
    return f"QuestionMix({selected!r})"


@dataclass
class QuizDraft:
  """Quiz metadata collected during one wizard session."""

  title: str = ""
  description: str = ""
  difficulty: Difficulty = Difficulty.MEDIUM
  visibility: Visibility = Visibility.PRIVATE
  timer_enabled: bool = False
  timer_duration_minutes: int = 30
  estimated_time_minutes: int = 30
  repetition_allowed: bool = False
  category_id: str | None = None
  tag_ids: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class PageRange:
  """Inclusive, 1-based page range selected from an uploaded document."""

  start: int
  end: int


@dataclass(frozen=True)
class SourceDocument:
  """Uploaded file plus the parts of it selected for generation."""

  filename: str
  content: bytes
  content_type: str
  page_ranges: tuple[PageRange, ...] = ()
  chunk_indices: tuple[int, ...] = ()
  chunks: tuple[ChunkSize, ...] = ()

  @property
  def size_bytes(self) -> int:
    return len(self.content)

  def selected_chunks(self) -> tuple[ChunkSize, ...]:
    """Chunks that will be sent for generation; all chunks when none are selected."""
    if not self.chunk_indices:
      return self.chunks
    wanted = set(self.chunk_indices)
    return tuple(chunk for chunk in self.chunks if chunk.index in wanted)


@dataclass
class TextGenerationConfig:
  """Settings for generating questions from pasted text."""

  source_text: str = ""
  questions: QuestionMix = field(default_factory=QuestionMix.with_defaults)
  difficulty: Difficulty = Difficulty.MEDIUM
  language: str = "en"
  chunking_strategy: ChunkingStrategy = ChunkingStrategy.CHAPTER_BASED
  max_chunk_size: int = 50_000
  quiz_scope: QuizScope = QuizScope.ENTIRE_DOCUMENT
  estimated_time_per_question: int = 2

  @property
  def method(self) -> CreationMethod:
    return CreationMethod.FROM_TEXT


@dataclass
class DocumentGenerationConfig:
  """Settings for generating questions from an uploaded document."""

  source_document: SourceDocument | None = None
  questions: QuestionMix = field(default_factory=QuestionMix.with_defaults)
  difficulty: Difficulty = Difficulty.MEDIUM
  chunking_strategy: ChunkingStrategy = ChunkingStrategy.AUTO
  max_chunk_size: int = 50_000
  quiz_scope: QuizScope = QuizScope.ENTIRE_DOCUMENT
  estimated_time_per_question: int = 2

  @property
  def method(self) -> CreationMethod:
    return CreationMethod.FROM_DOCUMENT


GenerationConfig = TextGenerationConfig | DocumentGenerationConfig


def new_generation_config(method: CreationMethod) -> GenerationConfig | None:
  """Return a fresh config for the method; manual quizzes have none."""
  if method is CreationMethod.FROM_TEXT:
    return TextGenerationConfig()
  if method is CreationMethod.FROM_DOCUMENT:
    return DocumentGenerationConfig()
  return None
