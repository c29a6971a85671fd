"""In-memory jobs repository used by the sandbox backend."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from surveygen.jobs.models import JobStatus
from surveygen.storage.jobs_repo import JobRecord


class InMemoryJobsRepository:
  """Jobs repository keeping records in process memory."""

  def __init__(self) -> None:
    self._jobs: dict[str, JobRecord] = {}
    # Insertion order doubles as creation order for survey lookups.
    self._order: list[str] = []
    self._lock = asyncio.Lock()

  async def create_job(self, record: JobRecord) -> None:
    async with self._lock:
      if record.job_id not in self._jobs:
        self._order.append(record.job_id)
      self._jobs[record.job_id] = record

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._lock:
      return self._jobs.get(job_id)

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
    changes = {"status": status, "generated_count": generated_count, "started_at": started_at, "completed_at": completed_at, "error": error, "updated_at": updated_at}
    async with self._lock:
      record = self._jobs.get(job_id)
      if record is None:
        return None
      updated = replace(record, **{key: value for key, value in changes.items() if value is not None})
      self._jobs[job_id] = updated
      return updated

  async def find_active_for_survey(self, survey_id: str) -> JobRecord | None:
    async with self._lock:
      for job_id in reversed(self._order):
        record = self._jobs[job_id]
        if record.survey_id == survey_id and record.is_active:
          return record
      return None

  async def find_latest_for_survey(self, survey_id: str) -> JobRecord | None:
    async with self._lock:
      for job_id in reversed(self._order):
        record = self._jobs[job_id]
        if record.survey_id == survey_id:
          return record
      return None
