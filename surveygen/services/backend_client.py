"""HTTP client for the generation job endpoints of the survey backend."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from surveygen.config import Settings
from surveygen.jobs.errors import StartRejectedError, TransportError
from surveygen.jobs.models import JobProjection, SessionContext, StartGenerationResult, SurveyCapacity, is_resumed_response

logger = logging.getLogger(__name__)


class GenerationBackend(Protocol):
  """Backend operations the generation controller depends on."""

  async def start_generation(self, survey_id: str, count: int) -> StartGenerationResult:
    """Ask the backend to start (or resume) generation for a survey."""

  async def get_job_status(self, survey_id: str) -> JobProjection | None:
    """Fetch the latest job for a survey, if any."""


def _error_detail(response: httpx.Response) -> tuple[str, str | None]:
  """Extract a human-readable message and machine code from an error body."""
  try:
    body = response.json()
  except ValueError:
    return response.text or f"HTTP {response.status_code}", None

  detail = body.get("detail") if isinstance(body, dict) else None
  if isinstance(detail, dict):
    code = detail.get("error")
    message = detail.get("message") or code or f"HTTP {response.status_code}"
    return str(message), str(code) if code else None
  if isinstance(detail, str):
    return detail, None
  if isinstance(body, dict) and isinstance(body.get("message"), str):
    return body["message"], None
  return f"HTTP {response.status_code}", None


class BackendClient:
  """httpx-based implementation of :class:`GenerationBackend`."""

  def __init__(self, settings: Settings, context: SessionContext, *, client: httpx.AsyncClient | None = None) -> None:
    self.settings = settings
    self._context = context
    self._client = client or httpx.AsyncClient(base_url=settings.api_base_url, timeout=settings.request_timeout_seconds, trust_env=False)
    self._owns_client = client is None

  async def aclose(self) -> None:
    if self._owns_client:
      await self._client.aclose()

  async def __aenter__(self) -> BackendClient:
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.aclose()

  async def _request(self, method: str, path: str, *, json: dict[str, Any] | None = None) -> httpx.Response:
    try:
      return await self._client.request(method, path, json=json, headers=self._context.request_headers())
    except httpx.RequestError as exc:
      logger.warning("Backend request failed method=%s path=%s error=%s", method, path, exc)
      raise TransportError(f"Request to {path} failed: {exc}") from exc

  @staticmethod
  def _decode(response: httpx.Response, path: str) -> Any:
    try:
      return response.json()
    except ValueError as exc:
      raise TransportError(f"Undecodable response from {path}.", status_code=response.status_code) from exc

  async def start_generation(self, survey_id: str, count: int) -> StartGenerationResult:
    """POST the start request and interpret new versus resumed jobs."""

    path = f"/api/surveys/{survey_id}/generate-ai-responses"
    response = await self._request("POST", path, json={"count": count})

    if response.status_code >= 500:
      message, _code = _error_detail(response)
      raise TransportError(message, status_code=response.status_code)

    if response.status_code >= 400:
      message, code = _error_detail(response)
      logger.info("Start rejected survey=%s status=%s code=%s", survey_id, response.status_code, code)
      raise StartRejectedError(message, status_code=response.status_code, code=code)

    body = self._decode(response, path)
    if not isinstance(body, dict) or not isinstance(body.get("job"), dict):
      raise TransportError(f"Start response from {path} has no job.", status_code=response.status_code)

    try:
      job = JobProjection.from_payload(body["job"])
    except ValueError as exc:
      raise TransportError(f"Invalid job in start response: {exc}", status_code=response.status_code) from exc

    message = body.get("message") if isinstance(body.get("message"), str) else None
    return StartGenerationResult(job=job, resumed=is_resumed_response(body), message=message)

  async def get_job_status(self, survey_id: str) -> JobProjection | None:
    """GET the survey's latest job; ``None`` when the survey has none."""

    path = f"/api/surveys/{survey_id}/ai-job-status"
    response = await self._request("GET", path)

    if response.status_code == 404:
      return None
    if response.status_code >= 400:
      message, _code = _error_detail(response)
      raise TransportError(message, status_code=response.status_code)

    body = self._decode(response, path)
    if body is None:
      return None
    if not isinstance(body, dict):
      raise TransportError(f"Unexpected job status payload from {path}.", status_code=response.status_code)

    try:
      return JobProjection.from_payload(body)
    except ValueError as exc:
      raise TransportError(f"Invalid job status payload: {exc}", status_code=response.status_code) from exc

  async def get_survey_capacity(self, survey_id: str) -> SurveyCapacity:
    """GET the response counts that bound a start request."""

    path = f"/api/surveys/{survey_id}"
    response = await self._request("GET", path)
    if response.status_code >= 400:
      message, _code = _error_detail(response)
      raise TransportError(message, status_code=response.status_code)

    body = self._decode(response, path)
    if not isinstance(body, dict):
      raise TransportError(f"Unexpected survey payload from {path}.", status_code=response.status_code)
    return SurveyCapacity.from_payload(body)
