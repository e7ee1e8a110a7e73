"""State machine driving one quiz-creation session."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any, assert_never

from quizmaker.core.errors import ClassifiedError, GenerationRequestError, WizardTransitionError
from quizmaker.jobs.models import JobStatus
from quizmaker.jobs.poller import JobPoller, PollerState, PollEvent, PollListener
from quizmaker.schema.quiz import CreationMethod, QuestionType
from quizmaker.services.estimation import TokenEstimate, TokenEstimator
from quizmaker.services.generation import GenerationJobClient
from quizmaker.services.quizzes import QuizClient
from quizmaker.wizard.drafts import DocumentGenerationConfig, GenerationConfig, QuestionMix, QuizDraft, TextGenerationConfig, new_generation_config
from quizmaker.wizard.states import AddingQuestions, Complete, Configuring, Generating, MethodSelection, WizardStep
from quizmaker.wizard.validation import FieldErrors, validate_draft, validate_generation_config

logger = logging.getLogger(__name__)

StepListener = Callable[[WizardStep], None]
PollerFactory = Callable[[PollListener], JobPoller]

_DRAFT_FIELDS = frozenset(f.name for f in dataclasses.fields(QuizDraft))

# Changing one of these also invalidates the errors of the fields listed.
_DEPENDENT_ERRORS: dict[str, tuple[str, ...]] = {
  "source_document": ("page_ranges", "chunk_indices"),
  "timer_enabled": ("timer_duration_minutes",),
}


class WizardController:
  """Owns the draft, the step and the poller of one session."""

  def __init__(self, *, generation_client: GenerationJobClient, quiz_client: QuizClient, estimator: TokenEstimator | None = None, poller_factory: PollerFactory | None = None) -> None:
    self._generation_client = generation_client
    self._quiz_client = quiz_client
    self._estimator = estimator or TokenEstimator()
    factory = poller_factory or (lambda listener: JobPoller(generation_client, listener=listener))
    self._poller = factory(self._on_poll_event)
    self._listeners: list[StepListener] = []
    self._step: WizardStep = MethodSelection()
    self._draft = QuizDraft()
    self._configs: dict[CreationMethod, GenerationConfig] = {}
    self._session = 0

  @property
  def step(self) -> WizardStep:
    return self._step

  @property
  def draft(self) -> QuizDraft:
    return self._draft

  @property
  def poller(self) -> JobPoller:
    return self._poller

  @property
  def method(self) -> CreationMethod | None:
    step = self._step
    if isinstance(step, (Configuring, Generating, Complete)):
      return step.method
    return None

  @property
  def generation_config(self) -> GenerationConfig | None:
    method = self.method
    if method is None:
      return None
    return self._configs.get(method)

  def subscribe(self, listener: StepListener) -> Callable[[], None]:
    """Register a step listener; returns a callable that unregisters it."""
    self._listeners.append(listener)

    def _unsubscribe() -> None:
      if listener in self._listeners:
        self._listeners.remove(listener)

    return _unsubscribe

  # Method selection and configuration

  def select_method(self, method: CreationMethod | str) -> Configuring:
    self._require(MethodSelection, "select_method")
    method = CreationMethod(method)
    if method.uses_generation and method not in self._configs:
      self._configs[method] = new_generation_config(method)
    step = Configuring(method=method)
    self._transition(step)
    return step

  def update_draft(self, **fields: Any) -> QuizDraft:
    step = self._require_editable("update_draft")
    unknown = set(fields) - _DRAFT_FIELDS
    if unknown:
      raise ValueError(f"Unknown draft fields: {', '.join(sorted(unknown))}")

    for name, value in fields.items():
      if name == "tag_ids":
        value = set(value or ())
      setattr(self._draft, name, value)

    self._drop_errors(step, fields)
    return self._draft

  def update_generation_config(self, **fields: Any) -> GenerationConfig:
    step = self._require_editable("update_generation_config")
    config = self._configs.get(step.method)
    if config is None:
      raise WizardTransitionError(f"{step.method.value} quizzes have no generation settings")

    allowed = {f.name for f in dataclasses.fields(config)}
    unknown = set(fields) - allowed
    if unknown:
      raise ValueError(f"Unknown generation settings: {', '.join(sorted(unknown))}")

    for name, value in fields.items():
      if name == "questions" and not isinstance(value, QuestionMix):
        value = QuestionMix(value)
      setattr(config, name, value)

    self._drop_errors(step, fields)
    return config

  def set_question_count(self, question_type: QuestionType | str, count: int) -> int:
    """Set one type's count; the clamped value is what gets stored and returned."""
    step = self._require_editable("set_question_count")
    config = self._configs.get(step.method)
    if config is None:
      raise WizardTransitionError(f"{step.method.value} quizzes have no question counts")

    stored = config.questions.set(question_type, count)
    self._drop_errors(step, ("questions",))
    return stored

  def validate(self) -> FieldErrors:
    step = self._require(Configuring, "validate")
    errors = validate_draft(self._draft)
    errors.update(validate_generation_config(self._configs.get(step.method)))
    self._transition(replace(step, field_errors=dict(errors)))
    return errors

  def estimate(self) -> TokenEstimate | None:
    """Estimate the token cost of the current generation settings, if estimable."""
    config = self.generation_config
    if config is None:
      return None

    if isinstance(config, TextGenerationConfig):
      return self._estimator.estimate(config.source_text, config.questions.positive(), config.difficulty)
    if isinstance(config, DocumentGenerationConfig):
      if config.source_document is None:
        return None
      return self._estimator.estimate_from_chunks(config.source_document.selected_chunks(), config.questions.positive(), config.difficulty)
    assert_never(config)

  # Submission and generation

  async def submit(self) -> WizardStep:
    """Validate and submit; stays in Configuring on any error."""
    step = self._require_editable("submit")
    errors = self.validate()
    if errors:
      logger.info("Submit blocked by validation method=%s fields=%s", step.method.value, ",".join(sorted(errors)))
      return self._step

    session = self._session
    self._transition(Configuring(method=step.method, submitting=True))

    if step.method is CreationMethod.MANUAL:
      try:
        quiz_id = await self._quiz_client.create_quiz(self._draft)
      except GenerationRequestError as exc:
        return self._submit_failed(session, step.method, exc.classified)
      except Exception:
        self._unlock_submit(session, step)
        raise
      if session != self._session:
        logger.info("Discarding created quiz after session reset quiz_id=%s", quiz_id)
        return self._step
      self._transition(AddingQuestions(quiz_id=quiz_id))
      return self._step

    config = self._configs[step.method]
    # Informational only.
    estimate = self.estimate()
    if estimate is not None:
      logger.info("Submitting generation method=%s estimated_tokens=%s billing_tokens=%s", step.method.value, estimate.total_estimated_tokens, estimate.estimated_billing_tokens)
    try:
      job = await self._generation_client.submit(config, self._draft)
    except GenerationRequestError as exc:
      return self._submit_failed(session, step.method, exc.classified)
    except Exception:
      self._unlock_submit(session, step)
      raise

    if session != self._session:
      logger.info("Session reset during submit; cancelling job job_id=%s", job.job_id)
      try:
        await self._generation_client.cancel(job.job_id)
      except GenerationRequestError as exc:
        logger.warning("Orphaned job cancel failed job_id=%s kind=%s", job.job_id, exc.kind.value)
      except Exception as exc:
        logger.warning("Orphaned job cancel failed job_id=%s error_type=%s", job.job_id, type(exc).__name__)
      return self._step

    self._transition(Generating(method=step.method, job=job, estimate=estimate))
    self._poller.start(job)
    return self._step

  def _unlock_submit(self, session: int, step: Configuring) -> None:
    if session == self._session:
      self._transition(replace(step, field_errors={}))

  def _submit_failed(self, session: int, method: CreationMethod, error: ClassifiedError) -> WizardStep:
    if session != self._session:
      return self._step
    logger.info("Submit failed method=%s kind=%s", method.value, error.kind.value)
    balance_prompt = error if error.is_balance_error else None
    self._transition(Configuring(method=method, error=error, balance_prompt=balance_prompt))
    return self._step

  def _on_poll_event(self, event: PollEvent) -> None:
    step = self._step
    if not isinstance(step, Generating):
      logger.debug("Ignoring poll event outside generation state=%s", event.state.value)
      return

    state = event.state
    if state is PollerState.POLLING:
      self._transition(replace(step, job=event.job or step.job, overdue=event.overdue, transient_error=event.error))
    elif state is PollerState.SUCCEEDED:
      self._transition(Complete(resource_id=event.resource_id, method=step.method))
    elif state is PollerState.FAILED:
      job = event.job or step.job
      if job.status is JobStatus.FAILED and job.human_message:
        message = job.human_message
      else:
        message = event.error.message if event.error else "Generation failed"
      self._transition(Configuring(method=step.method, error=event.error, failure_message=message))
    elif state is PollerState.CANCELLED:
      # Cancelled server-side; the session restarts from scratch.
      self._reset()
    elif state is PollerState.IDLE:
      logger.debug("Ignoring idle poll event")
    else:
      assert_never(state)

  async def cancel_generation(self) -> MethodSelection:
    self._require(Generating, "cancel_generation")
    self._reset()
    await self._poller.cancel()
    return self._step

  async def wait_for_generation(self) -> WizardStep:
    """Wait until the active job settles and return the resulting step."""
    await self._poller.wait()
    return self._step

  # Navigation

  def finish_questions(self) -> Complete:
    step = self._require(AddingQuestions, "finish_questions")
    complete = Complete(resource_id=step.quiz_id, method=CreationMethod.MANUAL)
    self._transition(complete)
    return complete

  def go_back(self) -> MethodSelection:
    """Return to method selection, keeping every draft value."""
    self._require_editable("go_back")
    self._transition(MethodSelection())
    return self._step

  async def abandon(self) -> None:
    """Drop the session from any step, cancelling a running job."""
    step = self._step
    if isinstance(step, Generating):
      self._reset()
      await self._poller.cancel()
    elif isinstance(step, (MethodSelection, Configuring, AddingQuestions, Complete)):
      self._reset()
    else:
      assert_never(step)

  # Internals

  def _require(self, step_type: type, operation: str) -> Any:
    step = self._step
    if not isinstance(step, step_type):
      raise WizardTransitionError(f"{operation} is not allowed in {type(step).__name__}")
    return step

  def _require_editable(self, operation: str) -> Configuring:
    step: Configuring = self._require(Configuring, operation)
    if step.submitting:
      raise WizardTransitionError(f"{operation} is not allowed while a submit is in flight")
    return step

  def _drop_errors(self, step: Configuring, names: Mapping[str, Any] | tuple[str, ...]) -> None:
    stale = set(names)
    for name in names:
      stale.update(_DEPENDENT_ERRORS.get(name, ()))
    if stale & set(step.field_errors):
      remaining = {key: value for key, value in step.field_errors.items() if key not in stale}
      self._transition(replace(step, field_errors=remaining))

  def _reset(self) -> None:
    self._session += 1
    self._draft = QuizDraft()
    self._configs.clear()
    self._transition(MethodSelection())

  def _transition(self, step: WizardStep) -> None:
    previous = self._step
    self._step = step
    if type(previous) is not type(step):
      logger.info("Wizard transition from=%s to=%s", type(previous).__name__, type(step).__name__)
    for listener in list(self._listeners):
      try:
        listener(step)
      except Exception:
        logger.exception("Wizard step listener failed step=%s", type(step).__name__)
