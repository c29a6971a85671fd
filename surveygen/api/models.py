from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic.alias_generators import to_camel

from surveygen.jobs.models import JobProjection, JobStatus


class CamelModel(BaseModel):
  """Base model serialized with the camelCase wire field names."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StartGenerationRequest(BaseModel):
  """Request payload for starting AI response generation."""

  count: StrictInt = Field(gt=0, description="Number of AI responses to generate.", examples=[10])
  model_config = ConfigDict(extra="forbid")


class JobProjectionResponse(CamelModel):
  """Status payload for a generation job."""

  id: str
  survey_id: str
  status: JobStatus
  progress: float = Field(ge=0.0, le=1.0)
  total_count: int = Field(ge=0)
  generated_count: int = Field(ge=0)
  error: str | None = None
  created_at: str | None = None
  completed_at: str | None = None

  @classmethod
  def from_projection(cls, job: JobProjection) -> JobProjectionResponse:
    return cls(
      id=job.id,
      survey_id=job.survey_id,
      status=job.status,
      progress=job.progress,
      total_count=job.total_count,
      generated_count=job.generated_count,
      error=job.error,
      created_at=job.created_at,
      completed_at=job.completed_at,
    )


class StartGenerationResponse(CamelModel):
  """Response payload for a start request; ``resumed`` marks an existing job."""

  job: JobProjectionResponse
  message: str | None = None
  resumed: bool = False


class SurveySummaryResponse(CamelModel):
  """Response counters that bound AI generation for a survey."""

  survey_id: str
  title: str
  response_count: int
  max_responses: int | None = None
  ai_responses_enabled: bool
  remaining_capacity: int
