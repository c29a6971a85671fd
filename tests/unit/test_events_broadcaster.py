from __future__ import annotations

import json

import pytest

from surveygen.realtime.stream import parse_event_frame
from surveygen.services.events import KEEPALIVE_FRAME, EventBroadcaster, format_sse


def test_format_sse_round_trips_through_frame_parser():
  frame = format_sse("aiJobUpdate", {"id": "job-1", "surveyId": "survey-1"})

  assert frame.endswith("\n\n")
  assert parse_event_frame(frame.strip().split("\n")) == ("aiJobUpdate", {"id": "job-1", "surveyId": "survey-1"})


def test_publish_fans_out_to_every_queue():
  broadcaster = EventBroadcaster()
  first = broadcaster.subscribe()
  second = broadcaster.subscribe()

  broadcaster.publish("aiJobUpdate", {"id": "job-1"})

  assert first.get_nowait() == second.get_nowait()
  assert broadcaster.published_count == 1


def test_full_queue_drops_oldest_frame():
  broadcaster = EventBroadcaster(queue_size=2)
  queue = broadcaster.subscribe()

  for count in range(3):
    broadcaster.publish("aiJobUpdate", {"generatedCount": count})

  frames = [queue.get_nowait(), queue.get_nowait()]
  counts = [json.loads(frame.split("data: ", 1)[1])["payload"]["generatedCount"] for frame in frames]
  assert counts == [1, 2]


@pytest.mark.anyio
async def test_stream_yields_keepalive_and_frames_then_unsubscribes():
  broadcaster = EventBroadcaster()
  stream = broadcaster.stream(keepalive_seconds=0.05)

  assert await stream.__anext__() == KEEPALIVE_FRAME
  assert broadcaster.subscriber_count == 1

  broadcaster.publish("aiJobUpdate", {"id": "job-1"})
  assert await stream.__anext__() == format_sse("aiJobUpdate", {"id": "job-1"})

  await stream.aclose()
  assert broadcaster.subscriber_count == 0
