"""Shared FastAPI dependencies for the sandbox backend."""

from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import HTTPException, Request, status

from surveygen.services.events import EventBroadcaster
from surveygen.storage.memory_jobs_repo import InMemoryJobsRepository
from surveygen.storage.surveys_repo import InMemorySurveysRepository, SurveyRecord


@dataclass
class BackendState:
  """Repositories and event fan-out shared by every request."""

  jobs_repo: InMemoryJobsRepository = field(default_factory=InMemoryJobsRepository)
  surveys_repo: InMemorySurveysRepository = field(default_factory=InMemorySurveysRepository)
  broadcaster: EventBroadcaster = field(default_factory=EventBroadcaster)


def build_backend_state(surveys: list[SurveyRecord] | None = None) -> BackendState:
  return BackendState(surveys_repo=InMemorySurveysRepository(surveys))


def get_backend_state(request: Request) -> BackendState:
  """Return the backend state installed on the application."""
  state = getattr(request.app.state, "backend", None)
  if state is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Backend not initialized.")
  return state
