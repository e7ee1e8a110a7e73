"""Shared quiz vocabulary used by drafts, estimation and the wire models."""

from __future__ import annotations

from enum import Enum


class Difficulty(str, Enum):
  """Question difficulty levels."""

  EASY = "EASY"
  MEDIUM = "MEDIUM"
  HARD = "HARD"


class Visibility(str, Enum):
  """Quiz visibility options."""

  PRIVATE = "PRIVATE"
  PUBLIC = "PUBLIC"


class CreationMethod(str, Enum):
  """How the quiz questions come into existence."""

  MANUAL = "MANUAL"
  FROM_TEXT = "FROM_TEXT"
  FROM_DOCUMENT = "FROM_DOCUMENT"

  @property
  def uses_generation(self) -> bool:
    return self is not CreationMethod.MANUAL


class QuestionType(str, Enum):
  """Question types the generator can produce."""

  MCQ_SINGLE = "MCQ_SINGLE"
  MCQ_MULTI = "MCQ_MULTI"
  TRUE_FALSE = "TRUE_FALSE"
  OPEN = "OPEN"
  FILL_GAP = "FILL_GAP"
  COMPLIANCE = "COMPLIANCE"
  ORDERING = "ORDERING"
  MATCHING = "MATCHING"
  HOTSPOT = "HOTSPOT"


class ChunkingStrategy(str, Enum):
  """How source content is split before generation."""

  AUTO = "AUTO"
  CHAPTER_BASED = "CHAPTER_BASED"
  SECTION_BASED = "SECTION_BASED"
  SIZE_BASED = "SIZE_BASED"
  PAGE_BASED = "PAGE_BASED"


class QuizScope(str, Enum):
  """Which part of the source the quiz is generated from."""

  ENTIRE_DOCUMENT = "ENTIRE_DOCUMENT"
  SPECIFIC_CHUNKS = "SPECIFIC_CHUNKS"
  SPECIFIC_CHAPTER = "SPECIFIC_CHAPTER"
  SPECIFIC_SECTION = "SPECIFIC_SECTION"


QUESTION_TYPE_LIMITS: dict[QuestionType, int] = {
  QuestionType.MCQ_SINGLE: 10,
  QuestionType.TRUE_FALSE: 10,
  QuestionType.MCQ_MULTI: 5,
  QuestionType.OPEN: 5,
  QuestionType.FILL_GAP: 5,
  QuestionType.COMPLIANCE: 5,
  QuestionType.MATCHING: 5,
  QuestionType.ORDERING: 3,
  QuestionType.HOTSPOT: 3,
}


def max_questions_for(question_type: QuestionType | str) -> int:
  """Return the per-request ceiling for a question type."""

  return QUESTION_TYPE_LIMITS[QuestionType(question_type)]


def clamp_question_count(question_type: QuestionType | str, count: int) -> int:
  """Clamp a requested count into [0, max_questions_for(type)]."""

  try:
    requested = int(count)
  except OverflowError:
    # Infinite counts sit at one of the bounds.
    requested = max_questions_for(question_type) if count > 0 else 0
  except (TypeError, ValueError):
    requested = 0
  return min(max(requested, 0), max_questions_for(question_type))
