"""Publish/subscribe contract for realtime job events."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

logger = logging.getLogger(__name__)

EventHandler = Callable[[Mapping[str, Any]], None]


class Subscription:
  """Disposable handle returned by :meth:`RealtimeChannel.subscribe`."""

  def __init__(self, event_type: str, handler: EventHandler, remove: Callable[[Subscription], None]) -> None:
    self.event_type = event_type
    self.handler = handler
    self._remove = remove
    self._active = True

  @property
  def active(self) -> bool:
    return self._active

  def unsubscribe(self) -> None:
    """Detach the handler; calling twice is a no-op."""
    if not self._active:
      return
    self._active = False
    self._remove(self)

  def __enter__(self) -> Subscription:
    return self

  def __exit__(self, *exc_info: object) -> None:
    self.unsubscribe()


class RealtimeChannel(Protocol):
  """Delivery contract for named realtime events."""

  def subscribe(self, event_type: str, handler: EventHandler) -> Subscription:
    """Register a handler for every delivery of an event type."""


class EventChannel:
  """In-process channel that fans each published event out to its subscribers."""

  def __init__(self) -> None:
    self._subscriptions: dict[str, list[Subscription]] = {}

  def subscribe(self, event_type: str, handler: EventHandler) -> Subscription:
    subscription = Subscription(event_type, handler, self._remove)
    self._subscriptions.setdefault(event_type, []).append(subscription)
    return subscription

  def subscriber_count(self, event_type: str) -> int:
    return len(self._subscriptions.get(event_type, []))

  def publish(self, event_type: str, payload: Mapping[str, Any]) -> int:
    """Deliver a payload to every current subscriber and return how many ran."""

    # Snapshot so handlers may unsubscribe while the event is being delivered.
    subscriptions = list(self._subscriptions.get(event_type, []))
    delivered = 0
    for subscription in subscriptions:
      if not subscription.active:
        continue
      try:
        subscription.handler(payload)
        delivered += 1
      except Exception:  # noqa: BLE001
        logger.error("Realtime handler failed for event_type=%s", event_type, exc_info=True)
    return delivered

  def _remove(self, subscription: Subscription) -> None:
    subscriptions = self._subscriptions.get(subscription.event_type)
    if not subscriptions:
      return
    if subscription in subscriptions:
      subscriptions.remove(subscription)
    if not subscriptions:
      del self._subscriptions[subscription.event_type]
