"""Background processor that simulates AI response generation for queued jobs."""

from __future__ import annotations

import asyncio
import logging

from fastapi import HTTPException

from surveygen.config import Settings
from surveygen.services.events import EventBroadcaster
from surveygen.services.jobs import complete_job, fail_job, record_progress
from surveygen.storage.jobs_repo import JobsRepository
from surveygen.storage.surveys_repo import InMemorySurveysRepository

logger = logging.getLogger(__name__)


async def run_generation_job(job_id: str, settings: Settings, *, jobs_repo: JobsRepository, surveys_repo: InMemorySurveysRepository, broadcaster: EventBroadcaster) -> None:
  """Drive one job from pending through running to a terminal state."""

  record = await jobs_repo.get_job(job_id)
  if record is None:
    logger.warning("Generation job %s not found; skipping", job_id)
    return
  if not record.is_active:
    logger.info("Generation job %s already %s; skipping", job_id, record.status)
    return

  try:
    record = await record_progress(job_id, record.generated_count, jobs_repo=jobs_repo, broadcaster=broadcaster)
    logger.info("Generation job %s running for survey %s (%d requested)", job_id, record.survey_id, record.total_count)

    while record.generated_count < record.total_count:
      await asyncio.sleep(settings.worker_step_delay_seconds)
      record = await record_progress(job_id, record.generated_count + settings.worker_batch_size, jobs_repo=jobs_repo, broadcaster=broadcaster)

    await complete_job(job_id, jobs_repo=jobs_repo, surveys_repo=surveys_repo, broadcaster=broadcaster)
  except HTTPException as exc:
    # The record moved out from under the worker; nothing is left to finalize.
    logger.warning("Generation job %s stopped: %s", job_id, exc.detail)
  except Exception as exc:  # noqa: BLE001
    logger.error("Generation job %s failed", job_id, exc_info=True)
    try:
      await fail_job(job_id, f"Generation failed: {exc}", jobs_repo=jobs_repo, broadcaster=broadcaster)
    except HTTPException as finalize_exc:
      logger.warning("Generation job %s already finalized: %s", job_id, finalize_exc.detail)
