"""Start generation jobs and keep their projections fresh."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from surveygen.config import Settings
from surveygen.jobs.errors import TransportError, ValidationError
from surveygen.jobs.models import AI_JOB_UPDATE_EVENT, JobProjection, StartGenerationResult, SurveyCapacity
from surveygen.jobs.notices import GenerationNotifier, LoggingNotifier, outcome_notice, resumed_notice, started_notice
from surveygen.jobs.store import JobStatusStore
from surveygen.realtime.channel import RealtimeChannel, Subscription
from surveygen.services.backend_client import GenerationBackend
from surveygen.utils.retry import classify_transport_failure, compute_backoff_seconds

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class _Observation:
  """One attachment of the controller to a survey."""

  survey_id: str
  subscription: Subscription | None = None
  poll_task: asyncio.Task[None] | None = None
  active: bool = True


class GenerationController:
  """Orchestrate generation start requests and the per-survey observer lifecycle.

  Observation follows poll-on-attach, then push-to-stay-fresh: the controller
  subscribes to ``aiJobUpdate`` events, fetches the current status once and keeps
  polling every ``poll_interval_seconds`` until the job is terminal. Every result,
  polled or pushed, goes through :meth:`JobStatusStore.apply`.

  Stopping observation is local only; the backend job keeps running.
  """

  def __init__(self, *, backend: GenerationBackend, channel: RealtimeChannel, store: JobStatusStore, settings: Settings, notifier: GenerationNotifier | None = None) -> None:
    self._backend = backend
    self._channel = channel
    self._store = store
    self._settings = settings
    self._notifier = notifier or LoggingNotifier()
    self._observations: dict[str, _Observation] = {}
    self._remove_listener = store.add_listener(self._on_projection)

  def projection(self, survey_id: str) -> JobProjection | None:
    return self._store.get(str(survey_id))

  def is_generating(self, survey_id: str) -> bool:
    job = self.projection(survey_id)
    return job is not None and not job.is_terminal

  def observed_surveys(self) -> list[str]:
    return list(self._observations)

  def validate_count(self, requested_count: int, capacity: SurveyCapacity | None = None) -> int:
    """Return the remaining capacity or raise when the count is out of bounds."""

    ceiling = self._settings.generation_ceiling
    remaining = capacity.remaining_capacity(ceiling) if capacity is not None else ceiling

    if isinstance(requested_count, bool) or not isinstance(requested_count, int):
      raise ValidationError("Requested count must be an integer.", remaining_capacity=remaining)
    if requested_count <= 0:
      raise ValidationError("Requested count must be greater than zero.", requested_count=requested_count, remaining_capacity=remaining)
    if requested_count > remaining:
      raise ValidationError(f"Requested count exceeds the remaining capacity of {remaining}.", requested_count=requested_count, remaining_capacity=remaining)
    return remaining

  async def start_generation(self, survey_id: str, requested_count: int, *, capacity: SurveyCapacity | None = None) -> StartGenerationResult:
    """Start generation for a survey, or attach to the job already running for it."""

    survey_id = str(survey_id)
    self.validate_count(requested_count, capacity)

    # Rejections and transport failures propagate before any local state exists.
    result = await self._backend.start_generation(survey_id, requested_count)

    observation = self._observations.get(survey_id) or self._open(survey_id)
    outcome = self._store.apply(result.job)
    logger.info("Generation %s survey=%s job=%s (%d/%d) merge=%s", "resumed" if result.resumed else "started", survey_id, result.job.id, result.job.generated_count, result.job.total_count, outcome)
    self._ensure_polling(observation)

    notice = resumed_notice(result.job) if result.resumed else started_notice(result.job, requested_count)
    self._notifier.notify(notice)
    return result

  async def attach(self, survey_id: str) -> JobProjection | None:
    """Begin observing a survey: subscribe, poll once, then keep polling."""

    survey_id = str(survey_id)
    if survey_id in self._observations:
      return self._store.get(survey_id)

    observation = self._open(survey_id)
    try:
      await self._poll(observation)
    except TransportError as exc:
      logger.warning("Initial status poll failed survey=%s status_code=%s error=%s", survey_id, exc.status_code, exc)

    if not observation.active:
      return None
    self._ensure_polling(observation)
    return self._store.get(survey_id)

  async def poll_once(self, survey_id: str) -> JobProjection | None:
    """Fetch and merge the current status of an observed survey."""

    observation = self._observations.get(str(survey_id))
    if observation is None:
      return None
    return await self._poll(observation)

  async def stop_observing(self, survey_id: str) -> None:
    """Detach listeners, cancel polling and clear the local projection."""

    survey_id = str(survey_id)
    observation = self._observations.pop(survey_id, None)
    self._store.detach(survey_id)
    if observation is None:
      return

    observation.active = False
    if observation.subscription is not None:
      observation.subscription.unsubscribe()

    task = observation.poll_task
    observation.poll_task = None
    if task is not None and task is not asyncio.current_task():
      task.cancel()
      try:
        await task
      except asyncio.CancelledError:
        pass
    logger.info("Stopped observing survey=%s", survey_id)

  async def close(self) -> None:
    """Stop every observation and detach from the store."""
    for survey_id in list(self._observations):
      await self.stop_observing(survey_id)
    self._remove_listener()

  def _open(self, survey_id: str) -> _Observation:
    observation = _Observation(survey_id=survey_id)
    self._observations[survey_id] = observation
    self._store.attach(survey_id)
    observation.subscription = self._channel.subscribe(AI_JOB_UPDATE_EVENT, lambda payload: self._on_push(observation, payload))
    logger.info("Observing survey=%s", survey_id)
    return observation

  async def _poll(self, observation: _Observation) -> JobProjection | None:
    job = await self._backend.get_job_status(observation.survey_id)

    # The observation may have been stopped while the request was in flight.
    if not observation.active:
      logger.debug("Discarded status response for detached survey=%s", observation.survey_id)
      return None

    if job is not None:
      self._store.apply(job)
    return self._store.get(observation.survey_id)

  def _on_push(self, observation: _Observation, payload: Mapping[str, Any]) -> None:
    if not observation.active or str(payload.get("surveyId")) != observation.survey_id:
      return

    try:
      job = JobProjection.from_payload(payload)
    except ValueError as exc:
      logger.warning("Ignoring malformed %s event survey=%s: %s", AI_JOB_UPDATE_EVENT, observation.survey_id, exc)
      return

    if self._store.apply(job) == "applied" and not job.is_terminal:
      # A job started elsewhere revives polling that stopped after the previous run ended.
      self._ensure_polling(observation)

  def _on_projection(self, current: JobProjection, previous: JobProjection | None) -> None:
    # Only transitions observed live are announced; a job found already finished on attach is not.
    if not current.is_terminal or previous is None or previous.id != current.id or previous.is_terminal:
      return
    self._notifier.notify(outcome_notice(current))

  def _ensure_polling(self, observation: _Observation) -> None:
    if not observation.active:
      return
    if observation.poll_task is not None and not observation.poll_task.done():
      return
    observation.poll_task = asyncio.create_task(self._poll_loop(observation), name=f"surveygen-poll-{observation.survey_id}")

  async def _poll_loop(self, observation: _Observation) -> None:
    interval = self._settings.poll_interval_seconds
    max_backoff = self._settings.poll_max_backoff_seconds
    failures = 0
    permanent_failure = False

    while observation.active:
      job = self._store.get(observation.survey_id)
      if job is not None and job.is_terminal:
        logger.debug("Polling finished for survey=%s job=%s status=%s", observation.survey_id, job.id, job.status)
        return

      if failures == 0:
        delay = interval
      elif permanent_failure:
        # Permanent failures keep polling at the slowest rate.
        delay = max_backoff
      else:
        delay = compute_backoff_seconds(attempt=failures, base_seconds=interval, max_seconds=max_backoff)
      await asyncio.sleep(delay)
      if not observation.active:
        return

      try:
        await self._poll(observation)
        failures = 0
        permanent_failure = False
      except TransportError as exc:
        classification = classify_transport_failure(exc)
        failures += 1
        permanent_failure = not classification.retryable
        logger.warning("Status poll failed survey=%s attempt=%d category=%s status_code=%s retryable=%s reason=%s", observation.survey_id, failures, classification.category, classification.status_code, classification.retryable, classification.reason)
