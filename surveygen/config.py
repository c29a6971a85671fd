"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from surveygen.utils.env import load_env_file

load_env_file()

_DEFAULT_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the job observer and the sandbox backend."""

  environment: str
  debug: bool
  api_base_url: str
  events_path: str
  request_timeout_seconds: float
  poll_interval_seconds: float
  poll_max_backoff_seconds: float
  reconnect_delay_seconds: float
  generation_ceiling: int
  allowed_origins: tuple[str, ...]
  jobs_auto_process: bool
  worker_step_delay_seconds: float
  worker_batch_size: int
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool

  @property
  def events_url(self) -> str:
    """Absolute URL of the realtime event stream."""
    return f"{self.api_base_url.rstrip('/')}/{self.events_path.lstrip('/')}"


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  origins = [origin.strip() for origin in (raw or _DEFAULT_ORIGINS).split(",") if origin.strip()]

  if not origins:
    raise ValueError("SURVEYGEN_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("SURVEYGEN_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("SURVEYGEN_ENV", "development").lower()
  debug = _parse_bool(os.getenv("SURVEYGEN_DEBUG"))

  api_base_url = (os.getenv("SURVEYGEN_API_BASE_URL") or "http://localhost:8000").strip()
  if not (api_base_url.startswith("http://") or api_base_url.startswith("https://")):
    raise ValueError("SURVEYGEN_API_BASE_URL must start with 'http://' or 'https://'.")

  poll_interval_seconds = _positive_float("SURVEYGEN_POLL_INTERVAL_SECONDS", "2")
  poll_max_backoff_seconds = _positive_float("SURVEYGEN_POLL_MAX_BACKOFF_SECONDS", "30")
  if poll_max_backoff_seconds < poll_interval_seconds:
    raise ValueError("SURVEYGEN_POLL_MAX_BACKOFF_SECONDS must not be lower than SURVEYGEN_POLL_INTERVAL_SECONDS.")

  log_backup_count = int(os.getenv("SURVEYGEN_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SURVEYGEN_LOG_BACKUP_COUNT must be zero or a positive integer.")

  return Settings(
    environment=environment,
    debug=debug,
    api_base_url=api_base_url,
    events_path=(os.getenv("SURVEYGEN_EVENTS_PATH") or "/api/events").strip(),
    request_timeout_seconds=_positive_float("SURVEYGEN_REQUEST_TIMEOUT_SECONDS", "10"),
    poll_interval_seconds=poll_interval_seconds,
    poll_max_backoff_seconds=poll_max_backoff_seconds,
    reconnect_delay_seconds=_positive_float("SURVEYGEN_RECONNECT_DELAY_SECONDS", "1"),
    generation_ceiling=_positive_int("SURVEYGEN_GENERATION_CEILING", "1000"),
    allowed_origins=_parse_origins(os.getenv("SURVEYGEN_ALLOWED_ORIGINS")),
    jobs_auto_process=_parse_bool(os.getenv("SURVEYGEN_JOBS_AUTO_PROCESS"), default=True),
    worker_step_delay_seconds=_positive_float("SURVEYGEN_WORKER_STEP_DELAY_SECONDS", "0.5"),
    worker_batch_size=_positive_int("SURVEYGEN_WORKER_BATCH_SIZE", "1"),
    log_dir=(os.getenv("SURVEYGEN_LOG_DIR") or "logs").strip(),
    log_max_bytes=_positive_int("SURVEYGEN_LOG_MAX_BYTES", "5242880"),
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("SURVEYGEN_LOG_HTTP_4XX")),
  )
