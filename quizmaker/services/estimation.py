"""Token cost estimation for quiz generation requests.

Every requested question type is generated by its own model call, and with
chunked documents by one call per chunk. Each call pays the prompt overhead plus
the content it covers. Completion tokens scale with the number of questions and
the difficulty multiplier; the content component is never multiplied.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from quizmaker.schema.quiz import Difficulty, QuestionType

MIN_TEXT_CHARS = 10
MIN_DOCUMENT_CHARS = 100

COMPLETION_TOKENS_PER_QUESTION: dict[QuestionType, int] = {
  QuestionType.MCQ_SINGLE: 120,
  QuestionType.MCQ_MULTI: 140,
  QuestionType.TRUE_FALSE: 60,
  QuestionType.OPEN: 180,
  QuestionType.FILL_GAP: 120,
  QuestionType.ORDERING: 140,
  QuestionType.COMPLIANCE: 160,
  QuestionType.MATCHING: 160,
  QuestionType.HOTSPOT: 160,
}

QUESTION_TEMPLATE_TOKENS: dict[QuestionType, int] = {
  QuestionType.MCQ_SINGLE: 80,
  QuestionType.MCQ_MULTI: 90,
  QuestionType.TRUE_FALSE: 60,
  QuestionType.OPEN: 100,
  QuestionType.FILL_GAP: 85,
  QuestionType.ORDERING: 95,
  QuestionType.COMPLIANCE: 100,
  QuestionType.MATCHING: 100,
  QuestionType.HOTSPOT: 100,
}

DIFFICULTY_MULTIPLIER: dict[Difficulty, float] = {
  Difficulty.EASY: 0.9,
  Difficulty.MEDIUM: 1.0,
  Difficulty.HARD: 1.15,
}


@dataclass(frozen=True)
class EstimatorConfig:
  """Tunable constants for token estimation."""

  chars_per_token: float = 4.0
  system_prompt_tokens: int = 300
  context_template_tokens: int = 150
  safety_factor: float = 1.2
  estimation_coefficient: float = 1.3
  token_to_llm_ratio: int = 1000
  completion_tokens: Mapping[QuestionType, int] = field(default_factory=lambda: dict(COMPLETION_TOKENS_PER_QUESTION))
  template_tokens: Mapping[QuestionType, int] = field(default_factory=lambda: dict(QUESTION_TEMPLATE_TOKENS))


@dataclass(frozen=True)
class ChunkSize:
  """Character count of one document chunk selected for generation."""

  index: int
  character_count: int


@dataclass(frozen=True)
class TokenEstimate:
  """Estimated cost of one generation request."""

  character_count: int
  per_type_breakdown: dict[QuestionType, int]
  difficulty_multiplier: float
  input_tokens: int
  completion_tokens: int
  total_estimated_tokens: int
  estimated_billing_tokens: int


def _positive_counts(question_counts: Mapping[QuestionType | str, int]) -> dict[QuestionType, int]:
  positive: dict[QuestionType, int] = {}
  for raw_type, count in question_counts.items():
    if not count or count <= 0:
      continue
    question_type = QuestionType(raw_type)
    positive[question_type] = positive.get(question_type, 0) + int(count)
  return positive


class TokenEstimator:
  """Pure, deterministic token estimates; safe to call on every input change."""

  def __init__(self, config: EstimatorConfig | None = None) -> None:
    self._config = config or EstimatorConfig()

  @property
  def config(self) -> EstimatorConfig:
    return self._config

  def content_tokens(self, character_count: int) -> int:
    if character_count <= 0:
      return 0
    return math.ceil(character_count / self._config.chars_per_token)

  def estimate(self, content: str | None, question_counts: Mapping[QuestionType | str, int], difficulty: Difficulty | str) -> TokenEstimate | None:
    """Estimate a text request; None when the input is not estimable."""

    character_count = len(content) if content else 0
    if character_count < MIN_TEXT_CHARS or not content.strip():
      return None
    return self._estimate_calls([character_count], question_counts, difficulty)

  def estimate_from_chunks(self, chunks: Iterable[ChunkSize], question_counts: Mapping[QuestionType | str, int], difficulty: Difficulty | str) -> TokenEstimate | None:
    """Estimate a chunked document request; each chunk is generated separately."""

    sizes = [max(chunk.character_count, 0) for chunk in chunks]
    if sum(sizes) < MIN_DOCUMENT_CHARS:
      return None
    return self._estimate_calls(sizes, question_counts, difficulty)

  def _estimate_calls(self, chunk_sizes: list[int], question_counts: Mapping[QuestionType | str, int], difficulty: Difficulty | str) -> TokenEstimate | None:
    counts = _positive_counts(question_counts)
    # Nothing requested is "not estimable", never a zero estimate.
    if not counts:
      return None

    cfg = self._config
    multiplier = DIFFICULTY_MULTIPLIER[Difficulty(difficulty)]
    overhead = cfg.system_prompt_tokens + cfg.context_template_tokens

    breakdown: dict[QuestionType, int] = {}
    input_tokens = 0
    completion_tokens = 0
    for question_type, count in counts.items():
      template = cfg.template_tokens.get(question_type, 80)
      per_call_completion = math.ceil(count * cfg.completion_tokens.get(question_type, 120) * multiplier)
      type_input = sum(overhead + template + self.content_tokens(size) for size in chunk_sizes)
      type_completion = per_call_completion * len(chunk_sizes)
      breakdown[question_type] = type_input + type_completion
      input_tokens += type_input
      completion_tokens += type_completion

    adjusted = math.ceil((input_tokens + completion_tokens) * cfg.safety_factor)
    total = math.ceil(adjusted * cfg.estimation_coefficient)
    billing = max(1, math.ceil(total / max(1, cfg.token_to_llm_ratio)))

    return TokenEstimate(
      character_count=sum(chunk_sizes),
      per_type_breakdown=breakdown,
      difficulty_multiplier=multiplier,
      input_tokens=input_tokens,
      completion_tokens=completion_tokens,
      total_estimated_tokens=total,
      estimated_billing_tokens=billing,
    )
