from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from surveygen import __version__
from surveygen.api.routes import events, generation
from surveygen.config import get_settings
from surveygen.core.exceptions import global_exception_handler, http_exception_handler, request_validation_exception_handler
from surveygen.core.lifespan import lifespan
from surveygen.core.middleware import RequestLoggingMiddleware

settings = get_settings()

app = FastAPI(title="SurveyGen sandbox backend", version=__version__, lifespan=lifespan)

app.add_middleware(
  CORSMiddleware,
  allow_origins=list(settings.allowed_origins),
  allow_credentials=True,
  allow_methods=["GET", "POST", "OPTIONS"],
  allow_headers=["content-type", "authorization", "x-tenant-id", "x-user-id"],
  expose_headers=["x-request-id"],
)

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(generation.router, prefix="/api/surveys", tags=["generation"])
app.include_router(events.router, prefix="/api/events", tags=["events"])
