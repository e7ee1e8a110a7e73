"""Builds a fully wired wizard session from settings."""

from __future__ import annotations

from dataclasses import dataclass

from quizmaker.config import Settings, get_settings
from quizmaker.core.errors import ErrorClassifier
from quizmaker.core.logging import setup_logging
from quizmaker.jobs.poller import JobPoller, PollListener
from quizmaker.services.estimation import TokenEstimator
from quizmaker.services.generation import GenerationJobClient
from quizmaker.services.quizzes import QuizClient
from quizmaker.services.transport import HttpxTransport
from quizmaker.wizard.controller import WizardController


@dataclass(frozen=True)
class WizardSession:
  """A wired controller plus the HTTP transport it owns."""

  controller: WizardController
  transport: HttpxTransport

  async def aclose(self) -> None:
    await self.controller.abandon()
    await self.transport.aclose()

  async def __aenter__(self) -> WizardSession:
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.aclose()


def build_wizard(settings: Settings | None = None) -> WizardSession:
  """Wire transport, clients, estimator and poller from settings."""
  settings = settings or get_settings()
  setup_logging(settings)

  transport = HttpxTransport(settings.api_base_url, token=settings.api_token, timeout_seconds=settings.request_timeout_seconds)
  classifier = ErrorClassifier()
  generation_client = GenerationJobClient(transport, classifier=classifier)
  quiz_client = QuizClient(transport, classifier=classifier)

  def poller_factory(listener: PollListener) -> JobPoller:
    return JobPoller(generation_client, interval_seconds=settings.poll_interval_seconds, slow_job_warning_seconds=settings.slow_job_warning_seconds, listener=listener, classifier=classifier)

  controller = WizardController(generation_client=generation_client, quiz_client=quiz_client, estimator=TokenEstimator(), poller_factory=poller_factory)
  return WizardSession(controller=controller, transport=transport)
