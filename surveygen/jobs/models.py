"""Domain models for AI response generation jobs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

JobStatus = Literal["pending", "running", "completed", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})
# Rank of each status along the state machine; terminal states share the top rank.
STATUS_RANK: dict[str, int] = {"pending": 0, "running": 1, "completed": 2, "failed": 2}
AI_JOB_UPDATE_EVENT = "aiJobUpdate"
RESUMED_MESSAGE_MARKER = "already in progress"


def _as_int(value: Any, field_name: str) -> int:
  if value is None:
    return 0
  if isinstance(value, bool):
    raise ValueError(f"{field_name} must be an integer.")
  try:
    parsed = int(value)
  except (TypeError, ValueError) as exc:
    raise ValueError(f"{field_name} must be an integer.") from exc
  return max(parsed, 0)


def _optional_str(value: Any) -> str | None:
  if value is None:
    return None
  text = str(value)
  return text or None


@dataclass(frozen=True)
class JobProjection:
  """Read-only client view of one backend generation job."""

  id: str
  survey_id: str
  status: JobStatus
  total_count: int
  generated_count: int
  created_at: str | None = None
  completed_at: str | None = None
  error: str | None = None

  @property
  def progress(self) -> float:
    """Fraction of requested responses generated so far."""
    if self.total_count <= 0:
      return 0.0
    return min(self.generated_count / self.total_count, 1.0)

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

  @classmethod
  def from_payload(cls, payload: Mapping[str, Any]) -> JobProjection:
    """Build a projection from a camelCase wire payload."""

    job_id = payload.get("id")
    survey_id = payload.get("surveyId")
    if job_id is None or str(job_id) == "":
      raise ValueError("Job payload is missing 'id'.")
    if survey_id is None or str(survey_id) == "":
      raise ValueError("Job payload is missing 'surveyId'.")

    status = payload.get("status")
    if status not in STATUS_RANK:
      raise ValueError(f"Unknown job status: {status!r}.")

    total_count = _as_int(payload.get("totalCount"), "totalCount")
    # Counts past the total are clamped so the derived progress stays within [0, 1].
    generated_count = min(_as_int(payload.get("generatedCount"), "generatedCount"), total_count)

    return cls(
      id=str(job_id),
      survey_id=str(survey_id),
      status=status,
      total_count=total_count,
      generated_count=generated_count,
      created_at=_optional_str(payload.get("createdAt")),
      completed_at=_optional_str(payload.get("completedAt")),
      error=_optional_str(payload.get("error")) if status == "failed" else None,
    )

  def to_payload(self) -> dict[str, Any]:
    """Serialize the projection using the wire field names."""
    payload: dict[str, Any] = {
      "id": self.id,
      "surveyId": self.survey_id,
      "status": self.status,
      "progress": self.progress,
      "totalCount": self.total_count,
      "generatedCount": self.generated_count,
      "createdAt": self.created_at,
      "completedAt": self.completed_at,
    }
    if self.error is not None:
      payload["error"] = self.error
    return payload


@dataclass(frozen=True)
class StartGenerationResult:
  """Outcome of a start request: a new job or an already running one."""

  job: JobProjection
  resumed: bool
  message: str | None = None


def is_resumed_response(payload: Mapping[str, Any]) -> bool:
  """Decide whether a start response attached to an existing job."""

  # An explicit flag wins; the message text is only a fallback for backends that omit it.
  flag = payload.get("resumed")
  if isinstance(flag, bool):
    return flag

  message = payload.get("message")
  return isinstance(message, str) and RESUMED_MESSAGE_MARKER in message.lower()


@dataclass(frozen=True)
class SurveyCapacity:
  """Response counts that bound how many responses may still be generated."""

  survey_id: str
  response_count: int
  max_responses: int | None = None
  ai_responses_enabled: bool = True

  def remaining_capacity(self, ceiling: int) -> int:
    """Return how many responses may still be requested."""
    if self.max_responses:
      return max(0, self.max_responses - self.response_count)
    return ceiling

  @classmethod
  def from_payload(cls, payload: Mapping[str, Any]) -> SurveyCapacity:
    max_responses = payload.get("maxResponses")
    return cls(
      survey_id=str(payload.get("surveyId")),
      response_count=_as_int(payload.get("responseCount"), "responseCount"),
      max_responses=_as_int(max_responses, "maxResponses") if max_responses is not None else None,
      ai_responses_enabled=bool(payload.get("aiResponsesEnabled", True)),
    )


@dataclass(frozen=True)
class SessionContext:
  """Tenant and user identity passed explicitly to the observer components."""

  tenant_id: str
  user_id: str
  auth_token: str | None = None

  def request_headers(self) -> dict[str, str]:
    headers = {"x-tenant-id": self.tenant_id, "x-user-id": self.user_id}
    if self.auth_token:
      headers["authorization"] = f"Bearer {self.auth_token}"
    return headers
