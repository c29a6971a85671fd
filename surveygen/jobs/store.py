"""Per-survey job projections reconciled from poll and push updates."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Literal

from surveygen.jobs.invalidation import CacheInvalidator, completion_targets
from surveygen.jobs.models import STATUS_RANK, JobProjection, SessionContext

logger = logging.getLogger(__name__)

MergeOutcome = Literal["applied", "uncorrelated", "stale", "regressed", "terminal", "duplicate"]
ProjectionListener = Callable[[JobProjection, JobProjection | None], None]


class JobStatusStore:
  """Hold the last-known job for each observed survey.

  All mutation goes through :meth:`apply`, which makes the projection independent of
  the order in which poll responses and push events arrive:

  * updates for surveys that are not attached are dropped;
  * a terminal job never returns to a non-terminal state, even after a newer job replaced it;
  * ``generated_count`` and the status rank never go backwards for the same job;
  * a different job for the same survey replaces the held one only when it is newer.

  The transition into ``completed`` invalidates dependent read-models exactly once per job id.
  Finished job ids are remembered per survey until it is detached.
  """

  def __init__(self, context: SessionContext, invalidator: CacheInvalidator | None = None) -> None:
    self._context = context
    self._invalidator = invalidator
    self._attached: set[str] = set()
    self._projections: dict[str, JobProjection] = {}
    self._finished_job_ids: dict[str, set[str]] = {}
    self._listeners: list[ProjectionListener] = []

  def attach(self, survey_id: str) -> None:
    """Start accepting updates for a survey."""
    self._attached.add(str(survey_id))

  def detach(self, survey_id: str) -> None:
    """Stop accepting updates for a survey and clear its projection."""
    survey_id = str(survey_id)
    self._attached.discard(survey_id)
    self._projections.pop(survey_id, None)
    self._finished_job_ids.pop(survey_id, None)

  def is_attached(self, survey_id: str) -> bool:
    return str(survey_id) in self._attached

  def get(self, survey_id: str) -> JobProjection | None:
    return self._projections.get(str(survey_id))

  def add_listener(self, listener: ProjectionListener) -> Callable[[], None]:
    """Register a callback for applied updates and return its remover."""

    self._listeners.append(listener)

    def _remove() -> None:
      if listener in self._listeners:
        self._listeners.remove(listener)

    return _remove

  def apply(self, update: JobProjection) -> MergeOutcome:
    """Merge one update into the projection of its survey."""

    if update.survey_id not in self._attached:
      logger.debug("Dropped update for unobserved survey=%s job=%s", update.survey_id, update.id)
      return "uncorrelated"

    current = self._projections.get(update.survey_id)
    finished = self._finished_job_ids.setdefault(update.survey_id, set())
    outcome = self._merge_outcome(current, update, finished)
    if outcome != "applied":
      logger.debug("Dropped %s update survey=%s job=%s status=%s generated=%d", outcome, update.survey_id, update.id, update.status, update.generated_count)
      return outcome

    self._projections[update.survey_id] = update
    if update.is_terminal and update.id not in finished:
      finished.add(update.id)
      logger.info("Job %s for survey=%s reached %s (%d/%d)", update.id, update.survey_id, update.status, update.generated_count, update.total_count)
      if update.status == "completed":
        self._signal_completion(update)

    for listener in list(self._listeners):
      listener(update, current)
    return "applied"

  def _merge_outcome(self, current: JobProjection | None, update: JobProjection, finished: set[str]) -> MergeOutcome:
    if current is None:
      return "applied"

    if current.id != update.id:
      # A job that already finished here never comes back, whatever its timestamps say.
      if update.id in finished:
        return "terminal"
      return "applied" if _supersedes(current, update) else "stale"

    if current.is_terminal:
      return "duplicate" if update == current else "terminal"

    if update.is_terminal:
      return "applied"

    # Non-terminal update for the same job must not move backwards on any monotonic field.
    if STATUS_RANK[update.status] < STATUS_RANK[current.status]:
      return "regressed"
    if update.generated_count < current.generated_count:
      return "regressed"
    return "applied"

  def _signal_completion(self, job: JobProjection) -> None:
    if self._invalidator is None:
      return
    targets = completion_targets(job.survey_id, self._context.tenant_id)
    self._invalidator.invalidate(targets)
    logger.info("Invalidated %d read-model targets after job %s completed", len(targets), job.id)


def _parse_timestamp(raw: str | None) -> datetime | None:
  if raw is None:
    return None
  try:
    parsed = datetime.fromisoformat(raw)
  except ValueError:
    return None
  # Naive timestamps are treated as UTC so they compare with aware ones.
  if parsed.tzinfo is None:
    parsed = parsed.replace(tzinfo=timezone.utc)
  return parsed


def _supersedes(current: JobProjection, update: JobProjection) -> bool:
  """Decide whether a different job should replace the held one."""

  current_created = _parse_timestamp(current.created_at)
  update_created = _parse_timestamp(update.created_at)
  # Without timestamps on both sides only a finished run may be replaced.
  if current_created is None or update_created is None:
    return current.is_terminal

  if current.is_terminal:
    return update_created >= current_created
  return update_created > current_created
