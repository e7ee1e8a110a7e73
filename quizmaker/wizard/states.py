"""Wizard steps. Each step carries exactly the data valid in it."""

from __future__ import annotations

from dataclasses import dataclass, field

from quizmaker.core.errors import ClassifiedError
from quizmaker.jobs.models import GenerationJob
from quizmaker.schema.quiz import CreationMethod
from quizmaker.services.estimation import TokenEstimate


@dataclass(frozen=True)
class MethodSelection:
  pass


@dataclass(frozen=True)
class Configuring:
  """Collecting quiz settings for the chosen method.

  `error` is an inline request failure, `balance_prompt` is set only for an
  exhausted token balance and `failure_message` holds the server's wording when
  a generation job failed.
  """

  method: CreationMethod
  field_errors: dict[str, str] = field(default_factory=dict)
  error: ClassifiedError | None = None
  balance_prompt: ClassifiedError | None = None
  failure_message: str | None = None
  submitting: bool = False


@dataclass(frozen=True)
class Generating:
  method: CreationMethod
  job: GenerationJob
  estimate: TokenEstimate | None = None
  overdue: bool = False
  transient_error: ClassifiedError | None = None


@dataclass(frozen=True)
class AddingQuestions:
  quiz_id: str


@dataclass(frozen=True)
class Complete:
  resource_id: str
  method: CreationMethod


WizardStep = MethodSelection | Configuring | Generating | AddingQuestions | Complete
