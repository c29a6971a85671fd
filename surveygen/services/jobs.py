import logging
from datetime import datetime, timezone

from fastapi import BackgroundTasks, HTTPException, status

from surveygen.api.models import JobProjectionResponse, StartGenerationResponse, SurveySummaryResponse
from surveygen.config import Settings
from surveygen.jobs.models import AI_JOB_UPDATE_EVENT
from surveygen.services.events import EventBroadcaster
from surveygen.storage.jobs_repo import JobRecord, JobsRepository
from surveygen.storage.memory_jobs_repo import InMemoryJobsRepository
from surveygen.storage.surveys_repo import InMemorySurveysRepository, SurveyRecord
from surveygen.utils.ids import generate_job_id

logger = logging.getLogger(__name__)

_JOB_NOT_FOUND_MSG = "Job not found."
_SURVEY_NOT_FOUND_MSG = "Survey not found."
RESUMED_MESSAGE = "AI generation already in progress for this survey"
STARTED_MESSAGE = "AI generation started"


def _utcnow_iso() -> str:
  return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _publish(broadcaster: EventBroadcaster, record: JobRecord) -> None:
  """Push the record's projection to realtime subscribers."""
  payload = JobProjectionResponse.from_projection(record.to_projection()).model_dump(by_alias=True)
  broadcaster.publish(AI_JOB_UPDATE_EVENT, payload)


async def _require_survey(surveys_repo: InMemorySurveysRepository, survey_id: str) -> SurveyRecord:
  survey = await surveys_repo.get_survey(survey_id)
  if survey is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_SURVEY_NOT_FOUND_MSG)
  return survey


async def _require_job(jobs_repo: JobsRepository, job_id: str) -> JobRecord:
  record = await jobs_repo.get_job(job_id)
  if record is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG)
  return record


async def get_survey_summary(survey_id: str, settings: Settings, *, surveys_repo: InMemorySurveysRepository) -> SurveySummaryResponse:
  """Return the response counters of a survey."""
  survey = await _require_survey(surveys_repo, survey_id)
  return SurveySummaryResponse(
    survey_id=survey.survey_id,
    title=survey.title,
    response_count=survey.response_count,
    max_responses=survey.max_responses,
    ai_responses_enabled=survey.ai_responses_enabled,
    remaining_capacity=survey.remaining_capacity(settings.generation_ceiling),
  )


async def start_generation(
  survey_id: str,
  count: int,
  settings: Settings,
  background_tasks: BackgroundTasks,
  *,
  jobs_repo: JobsRepository,
  surveys_repo: InMemorySurveysRepository,
  broadcaster: EventBroadcaster,
  user_id: str | None = None,
) -> StartGenerationResponse:
  """Create a generation job, or return the survey's job that is already in progress."""

  survey = await _require_survey(surveys_repo, survey_id)
  if not survey.ai_responses_enabled:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"error": "FEATURE_DISABLED", "message": "AI responses are not enabled for this survey."})

  # At most one pending or running job exists per survey; a repeated start attaches to it.
  existing = await jobs_repo.find_active_for_survey(survey_id)
  if existing is not None:
    logger.info("Returning in-progress job %s for survey %s (%d/%d)", existing.job_id, survey_id, existing.generated_count, existing.total_count)
    return StartGenerationResponse(job=JobProjectionResponse.from_projection(existing.to_projection()), message=RESUMED_MESSAGE, resumed=True)

  if count <= 0:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"error": "INVALID_COUNT", "message": "Count must be greater than zero."})

  remaining = survey.remaining_capacity(settings.generation_ceiling)
  if count > remaining:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"error": "QUOTA_EXCEEDED", "message": f"Only {remaining} more responses can be generated for this survey."})

  timestamp = _utcnow_iso()
  record = JobRecord(
    job_id=generate_job_id(),
    survey_id=survey_id,
    user_id=user_id,
    status="pending",
    total_count=count,
    generated_count=0,
    created_at=timestamp,
    updated_at=timestamp,
  )
  await jobs_repo.create_job(record)
  logger.info("Created generation job %s for survey %s count=%d", record.job_id, survey_id, count)
  _publish(broadcaster, record)

  trigger_job_processing(background_tasks, record.job_id, settings, jobs_repo=jobs_repo, surveys_repo=surveys_repo, broadcaster=broadcaster)
  return StartGenerationResponse(job=JobProjectionResponse.from_projection(record.to_projection()), message=STARTED_MESSAGE, resumed=False)


async def get_job_status(survey_id: str, *, jobs_repo: JobsRepository, surveys_repo: InMemorySurveysRepository) -> JobProjectionResponse | None:
  """Return the latest job of a survey, or ``None`` when it never ran one."""
  await _require_survey(surveys_repo, survey_id)
  record = await jobs_repo.find_latest_for_survey(survey_id)
  if record is None:
    return None
  return JobProjectionResponse.from_projection(record.to_projection())


async def record_progress(job_id: str, generated_count: int, *, jobs_repo: JobsRepository, broadcaster: EventBroadcaster) -> JobRecord:
  """Move a job to running and advance its generated count."""
  record = await _require_job(jobs_repo, job_id)
  if not record.is_active:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Job is already finalized.")

  # Counts only move forward and never past the requested total.
  generated = min(max(generated_count, record.generated_count), record.total_count)
  timestamp = _utcnow_iso()
  updated = await jobs_repo.update_job(job_id, status="running", generated_count=generated, started_at=record.started_at or timestamp, updated_at=timestamp)
  if updated is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG)
  _publish(broadcaster, updated)
  return updated


async def complete_job(job_id: str, *, jobs_repo: JobsRepository, surveys_repo: InMemorySurveysRepository, broadcaster: EventBroadcaster) -> JobRecord:
  """Finalize a job as completed and count its responses on the survey."""
  record = await _require_job(jobs_repo, job_id)
  if not record.is_active:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Job is already finalized.")

  timestamp = _utcnow_iso()
  updated = await jobs_repo.update_job(job_id, status="completed", completed_at=timestamp, updated_at=timestamp)
  if updated is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG)
  await surveys_repo.add_responses(updated.survey_id, updated.generated_count)
  logger.info("Job %s completed with %d/%d responses", job_id, updated.generated_count, updated.total_count)
  _publish(broadcaster, updated)
  return updated


async def fail_job(job_id: str, error: str, *, jobs_repo: JobsRepository, broadcaster: EventBroadcaster) -> JobRecord:
  """Finalize a job as failed with an operator-facing error message."""
  record = await _require_job(jobs_repo, job_id)
  if not record.is_active:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Job is already finalized.")

  timestamp = _utcnow_iso()
  updated = await jobs_repo.update_job(job_id, status="failed", error=error or "Generation failed.", completed_at=timestamp, updated_at=timestamp)
  if updated is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_JOB_NOT_FOUND_MSG)
  logger.warning("Job %s failed: %s", job_id, updated.error)
  _publish(broadcaster, updated)
  return updated


def trigger_job_processing(
  background_tasks: BackgroundTasks,
  job_id: str,
  settings: Settings,
  *,
  jobs_repo: JobsRepository,
  surveys_repo: InMemorySurveysRepository,
  broadcaster: EventBroadcaster,
) -> None:
  """Schedule the simulated worker for a newly created job."""

  if not settings.jobs_auto_process:
    return

  from surveygen.jobs.worker import run_generation_job

  background_tasks.add_task(run_generation_job, job_id, settings, jobs_repo=jobs_repo, surveys_repo=surveys_repo, broadcaster=broadcaster)


def build_default_repositories() -> tuple[InMemoryJobsRepository, InMemorySurveysRepository]:
  """Return empty in-memory repositories for a fresh sandbox backend."""
  return InMemoryJobsRepository(), InMemorySurveysRepository()
