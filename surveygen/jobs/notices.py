"""User-facing notices for generation job outcomes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Protocol

from surveygen.jobs.models import JobProjection

logger = logging.getLogger(__name__)

NoticeKind = Literal["started", "resumed", "completed", "failed"]


@dataclass(frozen=True)
class GenerationNotice:
  """Represents one notice shown to the operator."""

  kind: NoticeKind
  survey_id: str
  job_id: str
  title: str
  description: str

  @property
  def is_error(self) -> bool:
    return self.kind == "failed"


class GenerationNotifier(Protocol):
  """Delivery contract for generation notices."""

  def notify(self, notice: GenerationNotice) -> None:
    """Present a notice to the operator."""


class LoggingNotifier:
  """Notifier that writes notices to the application log."""

  def notify(self, notice: GenerationNotice) -> None:
    level = logging.WARNING if notice.is_error else logging.INFO
    logger.log(level, "%s: %s (survey=%s job=%s)", notice.title, notice.description, notice.survey_id, notice.job_id)


def started_notice(job: JobProjection, requested_count: int) -> GenerationNotice:
  return GenerationNotice(kind="started", survey_id=job.survey_id, job_id=job.id, title="AI Generation Started", description=f"Started generating {requested_count} AI responses.")


def resumed_notice(job: JobProjection) -> GenerationNotice:
  description = f"Continuing existing AI generation job. {job.generated_count}/{job.total_count} responses completed."
  return GenerationNotice(kind="resumed", survey_id=job.survey_id, job_id=job.id, title="AI Generation Resumed", description=description)


def outcome_notice(job: JobProjection) -> GenerationNotice:
  """Build the notice for a job that reached a terminal state."""
  if job.status == "failed":
    return GenerationNotice(kind="failed", survey_id=job.survey_id, job_id=job.id, title="Generation Failed", description=job.error or "Failed to generate AI responses.")
  return GenerationNotice(kind="completed", survey_id=job.survey_id, job_id=job.id, title="AI Responses Generated", description=f"Successfully generated {job.generated_count} AI responses.")
