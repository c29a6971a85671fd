"""Fan-out of realtime job events to connected event-stream clients."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100
KEEPALIVE_FRAME = ": keepalive\n\n"


def format_sse(event_type: str, payload: Mapping[str, Any]) -> str:
  """Encode one event as a server-sent event frame."""
  data = json.dumps({"type": event_type, "payload": dict(payload)}, ensure_ascii=False, separators=(",", ":"))
  return f"event: {event_type}\ndata: {data}\n\n"


class EventBroadcaster:
  """Deliver published events to every connected subscriber queue.

  Each subscriber owns a bounded queue; when a slow subscriber's queue is full
  the oldest frame is dropped, matching the no-delivery-guarantee contract of
  the realtime channel.
  """

  def __init__(self, *, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
    self._queue_size = queue_size
    self._queues: set[asyncio.Queue[str]] = set()
    self.published_count = 0

  @property
  def subscriber_count(self) -> int:
    return len(self._queues)

  def subscribe(self) -> asyncio.Queue[str]:
    queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._queue_size)
    self._queues.add(queue)
    return queue

  def unsubscribe(self, queue: asyncio.Queue[str]) -> None:
    self._queues.discard(queue)

  def publish(self, event_type: str, payload: Mapping[str, Any]) -> None:
    frame = format_sse(event_type, payload)
    self.published_count += 1
    for queue in list(self._queues):
      if queue.full():
        queue.get_nowait()
        logger.warning("Event subscriber queue full; dropped oldest frame")
      queue.put_nowait(frame)

  async def stream(self, *, keepalive_seconds: float = 15.0) -> AsyncIterator[str]:
    """Yield frames for one subscriber until the consumer goes away."""
    queue = self.subscribe()
    logger.info("Event stream subscriber connected (total=%d)", self.subscriber_count)
    try:
      while True:
        try:
          yield await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
        except asyncio.TimeoutError:
          yield KEEPALIVE_FRAME
    finally:
      self.unsubscribe(queue)
      logger.info("Event stream subscriber disconnected (total=%d)", self.subscriber_count)
