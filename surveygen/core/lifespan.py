import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from surveygen.api.deps import build_backend_state
from surveygen.core.logging import initialize_logging
from surveygen.storage.surveys_repo import SurveyRecord

DEMO_SURVEYS = [SurveyRecord(survey_id="demo", title="Demo survey", max_responses=100)]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging and the in-memory backend state."""
  from surveygen.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("surveygen.core.lifespan")

  try:
    initialize_logging(settings)
  except RuntimeError:
    # Console logging from uvicorn still works without the file handler.
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  if getattr(app.state, "backend", None) is None:
    seeds = DEMO_SURVEYS if settings.environment == "development" else []
    app.state.backend = build_backend_state(list(seeds))
    logger.info("Backend state initialized environment=%s surveys=%d", settings.environment, len(seeds))

  logger.info("Startup complete.")
  yield
  logger.info("Shutdown complete.")
