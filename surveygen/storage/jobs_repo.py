"""Storage interfaces for generation jobs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from surveygen.jobs.models import JobProjection, JobStatus


@dataclass
class JobRecord:
  """Server-side record of one generation run."""

  job_id: str
  survey_id: str
  user_id: str | None
  status: JobStatus
  total_count: int
  generated_count: int
  created_at: str
  updated_at: str
  started_at: str | None = None
  completed_at: str | None = None
  error: str | None = None

  @property
  def is_active(self) -> bool:
    return self.status in ("pending", "running")

  def to_projection(self) -> JobProjection:
    return JobProjection(
      id=self.job_id,
      survey_id=self.survey_id,
      status=self.status,
      total_count=self.total_count,
      generated_count=self.generated_count,
      created_at=self.created_at,
      completed_at=self.completed_at,
      error=self.error if self.status == "failed" else None,
    )


class JobsRepository(Protocol):
  """Repository contract for job persistence."""

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def update_job(
    self,
    job_id: str,
    *,
    status: JobStatus | None = None,
    generated_count: int | None = None,
    started_at: str | None = None,
    completed_at: str | None = None,
    error: str | None = None,
    updated_at: str | None = None,
  ) -> JobRecord | None:
    """Apply partial updates to a job."""

  async def find_active_for_survey(self, survey_id: str) -> JobRecord | None:
    """Return the pending or running job of a survey, if any."""

  async def find_latest_for_survey(self, survey_id: str) -> JobRecord | None:
    """Return the most recently created job of a survey, if any."""
