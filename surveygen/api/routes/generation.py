import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header

from surveygen.api.deps import BackendState, get_backend_state
from surveygen.api.models import JobProjectionResponse, StartGenerationRequest, StartGenerationResponse, SurveySummaryResponse
from surveygen.config import Settings, get_settings
from surveygen.services import jobs as job_service

router = APIRouter()
logger = logging.getLogger("surveygen.api.routes.generation")


@router.get("/{survey_id}", response_model=SurveySummaryResponse)
async def get_survey(  # noqa: B008
  survey_id: str,
  settings: Settings = Depends(get_settings),  # noqa: B008
  backend: BackendState = Depends(get_backend_state),  # noqa: B008
) -> SurveySummaryResponse:
  """Return the response counters that bound AI generation."""
  return await job_service.get_survey_summary(survey_id, settings, surveys_repo=backend.surveys_repo)


@router.post("/{survey_id}/generate-ai-responses", response_model=StartGenerationResponse)
async def generate_ai_responses(  # noqa: B008
  survey_id: str,
  request: StartGenerationRequest,
  background_tasks: BackgroundTasks,
  settings: Settings = Depends(get_settings),  # noqa: B008
  backend: BackendState = Depends(get_backend_state),  # noqa: B008
  user_id: str | None = Header(default=None, alias="x-user-id"),  # noqa: B008
) -> StartGenerationResponse:
  """Start AI response generation, or return the job already in progress."""
  return await job_service.start_generation(
    survey_id,
    request.count,
    settings,
    background_tasks,
    jobs_repo=backend.jobs_repo,
    surveys_repo=backend.surveys_repo,
    broadcaster=backend.broadcaster,
    user_id=user_id,
  )


@router.get("/{survey_id}/ai-job-status", response_model=JobProjectionResponse | None)
async def get_ai_job_status(  # noqa: B008
  survey_id: str,
  backend: BackendState = Depends(get_backend_state),  # noqa: B008
) -> JobProjectionResponse | None:
  """Return the latest generation job of a survey, or null."""
  return await job_service.get_job_status(survey_id, jobs_repo=backend.jobs_repo, surveys_repo=backend.surveys_repo)
