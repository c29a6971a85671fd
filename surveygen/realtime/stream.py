"""Reconnecting realtime channel over a server-sent event stream."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from surveygen.jobs.models import SessionContext
from surveygen.realtime.channel import EventChannel

logger = logging.getLogger(__name__)


def parse_event_frame(lines: list[str]) -> tuple[str, dict[str, Any]] | None:
  """Decode one SSE frame into an event type and payload."""

  event_name: str | None = None
  data_lines: list[str] = []
  for line in lines:
    if line.startswith(":"):
      continue
    field, _, value = line.partition(":")
    if value.startswith(" "):
      value = value[1:]
    if field == "event":
      event_name = value
    elif field == "data":
      data_lines.append(value)

  if not data_lines:
    return None

  try:
    message = json.loads("\n".join(data_lines))
  except json.JSONDecodeError:
    logger.warning("Skipping undecodable realtime frame")
    return None

  if not isinstance(message, dict):
    return None

  event_type = event_name or message.get("type")
  payload = message.get("payload", message)
  if not isinstance(event_type, str) or not isinstance(payload, dict):
    return None
  return event_type, payload


class StreamingChannel(EventChannel):
  """Event channel fed by a long-lived ``text/event-stream`` response.

  Connection loss is never reported to subscribers. The reader logs the failure,
  waits ``reconnect_delay`` seconds and opens a new stream; events missed while
  disconnected are not replayed, so observers must re-poll after attaching.
  """

  def __init__(self, url: str, context: SessionContext, *, reconnect_delay: float = 1.0, client: httpx.AsyncClient | None = None) -> None:
    super().__init__()
    self._url = url
    self._context = context
    self._reconnect_delay = reconnect_delay
    self._client = client
    self._owns_client = client is None
    self._task: asyncio.Task[None] | None = None
    self._connected = False
    self.connection_count = 0

  @property
  def connected(self) -> bool:
    return self._connected

  def start(self) -> None:
    """Spawn the background reader if it is not running yet."""
    if self._task is not None and not self._task.done():
      return
    if self._client is None:
      # Never trust environment proxy variables for the event stream.
      self._client = httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None), trust_env=False)
    self._task = asyncio.create_task(self._run(), name="surveygen-realtime")

  async def close(self) -> None:
    """Stop the reader and release the HTTP client."""
    task, self._task = self._task, None
    if task is not None:
      task.cancel()
      try:
        await task
      except asyncio.CancelledError:
        pass
    self._connected = False
    if self._owns_client and self._client is not None:
      await self._client.aclose()
      self._client = None

  async def _run(self) -> None:
    while True:
      try:
        await self._consume()
        logger.info("Realtime stream ended; reconnecting in %.1fs", self._reconnect_delay)
      except httpx.HTTPStatusError as exc:
        logger.warning("Realtime stream returned %s; reconnecting in %.1fs", exc.response.status_code, self._reconnect_delay)
      except httpx.RequestError as exc:
        logger.warning("Realtime stream connection failed: %s; reconnecting in %.1fs", exc, self._reconnect_delay)
      finally:
        self._connected = False
      await asyncio.sleep(self._reconnect_delay)

  async def _consume(self) -> None:
    assert self._client is not None
    headers = {"accept": "text/event-stream", **self._context.request_headers()}
    async with self._client.stream("GET", self._url, headers=headers) as response:
      response.raise_for_status()
      self._connected = True
      self.connection_count += 1
      logger.info("Realtime stream connected to %s", self._url)

      frame: list[str] = []
      async for line in response.aiter_lines():
        if line:
          frame.append(line)
          continue
        self._dispatch(frame)
        frame = []
      if frame:
        self._dispatch(frame)

  def _dispatch(self, frame: list[str]) -> None:
    decoded = parse_event_frame(frame)
    if decoded is None:
      return
    event_type, payload = decoded
    self.publish(event_type, payload)
