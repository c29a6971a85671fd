from __future__ import annotations

import json

import anyio
import httpx
import pytest

from surveygen.realtime.stream import StreamingChannel, parse_event_frame

URL = "http://test/api/events"


def _frame(payload: dict, event_type: str = "aiJobUpdate") -> bytes:
  data = json.dumps({"type": event_type, "payload": payload})
  return f"event: {event_type}\ndata: {data}\n\n".encode()


async def _wait_for(predicate, timeout: float = 2.0) -> None:
  with anyio.fail_after(timeout):
    while not predicate():
      await anyio.sleep(0.01)


def test_parse_event_frame_uses_event_line_and_payload():
  lines = ["event: aiJobUpdate", 'data: {"type": "ignored", "payload": {"id": "job-1"}}']
  assert parse_event_frame(lines) == ("aiJobUpdate", {"id": "job-1"})


def test_parse_event_frame_falls_back_to_message_type():
  assert parse_event_frame(['data: {"type": "aiJobUpdate", "payload": {"id": "job-1"}}']) == ("aiJobUpdate", {"id": "job-1"})


def test_parse_event_frame_joins_multiline_data():
  lines = ['data: {"type": "aiJobUpdate",', 'data: "payload": {"id": "job-1"}}']
  assert parse_event_frame(lines) == ("aiJobUpdate", {"id": "job-1"})


@pytest.mark.parametrize(
  "lines",
  [
    [": keepalive"],
    ["data: not-json"],
    ["data: [1, 2]"],
    ['data: {"payload": {"id": "job-1"}}'],
  ],
)
def test_parse_event_frame_skips_unusable_frames(lines):
  assert parse_event_frame(lines) is None


@pytest.mark.anyio
async def test_streaming_channel_dispatches_events_with_session_headers(session_context):
  seen_headers: list[httpx.Headers] = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen_headers.append(request.headers)
    body = b": keepalive\n\n" + _frame({"id": "job-1", "surveyId": "survey-1"})
    return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body)

  received = []
  async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
    channel = StreamingChannel(URL, session_context, reconnect_delay=0.01, client=client)
    channel.subscribe("aiJobUpdate", received.append)
    channel.start()
    try:
      await _wait_for(lambda: received)
    finally:
      await channel.close()

  assert received[0] == {"id": "job-1", "surveyId": "survey-1"}
  assert seen_headers[0]["accept"] == "text/event-stream"
  assert seen_headers[0]["x-tenant-id"] == "tenant-1"
  assert seen_headers[0]["authorization"] == "Bearer token-1"
  assert not channel.connected


@pytest.mark.anyio
async def test_streaming_channel_reconnects_after_errors(session_context):
  attempts = []

  def handler(request: httpx.Request) -> httpx.Response:
    attempts.append(request.url.path)
    if len(attempts) == 1:
      raise httpx.ConnectError("connection refused", request=request)
    if len(attempts) == 2:
      return httpx.Response(503, text="unavailable")
    return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=_frame({"id": f"job-{len(attempts)}"}))

  received = []
  async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
    channel = StreamingChannel(URL, session_context, reconnect_delay=0.01, client=client)
    channel.subscribe("aiJobUpdate", received.append)
    channel.start()
    try:
      # Every completed stream is followed by a reconnect.
      await _wait_for(lambda: len(received) >= 2)
    finally:
      await channel.close()

  assert received[0] == {"id": "job-3"}
  assert channel.connection_count >= 2
