"""Dependent read-models refreshed after a generation job completes."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_KEY_BOUNDARIES = "?&/"


@dataclass(frozen=True)
class InvalidationTarget:
  """A read-model key, matched exactly or as a prefix.

  A prefix target only matches at a path or query boundary, so
  ``surveyId=survey-1`` never matches ``surveyId=survey-10``.
  """

  key: str
  prefix: bool = False

  def matches(self, cache_key: str) -> bool:
    if cache_key == self.key:
      return True
    if not self.prefix or not cache_key.startswith(self.key):
      return False
    return self.key[-1] in _KEY_BOUNDARIES or cache_key[len(self.key)] in _KEY_BOUNDARIES


def completion_targets(survey_id: str, tenant_id: str) -> list[InvalidationTarget]:
  """Return the read-models that go stale when a survey gains generated responses."""

  return [
    # Survey summary record and its analytics aggregate.
    InvalidationTarget(f"/api/dashboard/surveys/{survey_id}"),
    InvalidationTarget(f"/api/surveys/{survey_id}/analytics"),
    # Every page of the survey's response listings.
    InvalidationTarget(f"/api/survey-responses?surveyId={survey_id}", prefix=True),
    # Tenant-level survey list, any page or filter, and aggregate.
    InvalidationTarget("/api/surveys"),
    InvalidationTarget("/api/surveys?", prefix=True),
    InvalidationTarget(f"/api/company/{tenant_id}/analytics", prefix=True),
  ]


class CacheInvalidator(Protocol):
  """Contract for dropping cached read-models."""

  def invalidate(self, targets: Iterable[InvalidationTarget]) -> None:
    """Drop every cached entry matched by the targets."""


class ReadModelCache:
  """In-memory keyed cache of read-models with target-based invalidation."""

  def __init__(self) -> None:
    self._entries: dict[str, Any] = {}

  def get(self, key: str) -> Any | None:
    return self._entries.get(key)

  def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
    if key not in self._entries:
      self._entries[key] = loader()
    return self._entries[key]

  def set(self, key: str, value: Any) -> None:
    self._entries[key] = value

  def keys(self) -> list[str]:
    return list(self._entries)

  def invalidate(self, targets: Iterable[InvalidationTarget]) -> None:
    targets = list(targets)
    stale = [key for key in self._entries if any(target.matches(key) for target in targets)]
    for key in stale:
      del self._entries[key]
    logger.debug("Invalidated %d cached read-models for %d targets", len(stale), len(targets))
