"""Shared fixtures for the job observer and the sandbox backend."""

from __future__ import annotations

import asyncio
import os

# Keep the simulated worker out of request handling unless a test runs it explicitly.
os.environ.setdefault("SURVEYGEN_JOBS_AUTO_PROCESS", "0")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from surveygen.api.deps import BackendState, build_backend_state  # noqa: E402
from surveygen.config import Settings, get_settings  # noqa: E402
from surveygen.jobs.models import JobProjection, SessionContext, StartGenerationResult  # noqa: E402
from surveygen.jobs.notices import GenerationNotice  # noqa: E402
from surveygen.main import app  # noqa: E402
from surveygen.storage.surveys_repo import SurveyRecord  # noqa: E402

TEST_SETTINGS = Settings(
  environment="test",
  debug=False,
  api_base_url="http://test",
  events_path="/api/events",
  request_timeout_seconds=5.0,
  # Long enough that background polling never fires on its own during a test.
  poll_interval_seconds=60.0,
  poll_max_backoff_seconds=120.0,
  reconnect_delay_seconds=0.01,
  generation_ceiling=1000,
  allowed_origins=("http://localhost",),
  jobs_auto_process=False,
  worker_step_delay_seconds=0.0,
  worker_batch_size=5,
  log_dir="logs",
  log_max_bytes=1024,
  log_backup_count=1,
  log_http_4xx=False,
)


# Force anyio to use asyncio
@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def settings() -> Settings:
  return TEST_SETTINGS


@pytest.fixture
def session_context() -> SessionContext:
  return SessionContext(tenant_id="tenant-1", user_id="user-1", auth_token="token-1")


def _make_job(
  job_id: str = "job-1",
  survey_id: str = "survey-1",
  status: str = "running",
  total: int = 20,
  generated: int = 0,
  created_at: str | None = "2026-01-01T10:00:00+00:00",
  error: str | None = None,
) -> JobProjection:
  completed_at = "2026-01-01T10:05:00+00:00" if status in ("completed", "failed") else None
  return JobProjection(id=job_id, survey_id=survey_id, status=status, total_count=total, generated_count=generated, created_at=created_at, completed_at=completed_at, error=error)


@pytest.fixture
def make_job():
  return _make_job


class FakeBackend:
  """Scripted stand-in for the generation backend."""

  def __init__(self) -> None:
    self.start_results: list[StartGenerationResult | Exception] = []
    self.status_results: list[JobProjection | Exception | None] = []
    self.start_calls: list[tuple[str, int]] = []
    self.status_calls: list[str] = []
    # When set, status requests block until the event fires.
    self.status_gate: asyncio.Event | None = None

  async def start_generation(self, survey_id: str, count: int) -> StartGenerationResult:
    self.start_calls.append((survey_id, count))
    result = self.start_results.pop(0)
    if isinstance(result, Exception):
      raise result
    return result

  async def get_job_status(self, survey_id: str) -> JobProjection | None:
    self.status_calls.append(survey_id)
    if self.status_gate is not None:
      await self.status_gate.wait()
    if not self.status_results:
      return None
    result = self.status_results.pop(0)
    if isinstance(result, Exception):
      raise result
    return result


@pytest.fixture
def fake_backend() -> FakeBackend:
  return FakeBackend()


class RecordingNotifier:
  def __init__(self) -> None:
    self.notices: list[GenerationNotice] = []

  def notify(self, notice: GenerationNotice) -> None:
    self.notices.append(notice)

  @property
  def kinds(self) -> list[str]:
    return [notice.kind for notice in self.notices]


@pytest.fixture
def notifier() -> RecordingNotifier:
  return RecordingNotifier()


@pytest.fixture
def backend_state() -> BackendState:
  return build_backend_state(
    [
      SurveyRecord(survey_id="survey-1", title="Customer feedback", response_count=10, max_responses=50),
      SurveyRecord(survey_id="survey-open", title="Open survey"),
      SurveyRecord(survey_id="survey-off", title="Disabled survey", ai_responses_enabled=False),
    ]
  )


@pytest.fixture
async def async_client(settings, backend_state):
  app.state.backend = backend_state
  app.dependency_overrides[get_settings] = lambda: settings
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
  app.state.backend = None
