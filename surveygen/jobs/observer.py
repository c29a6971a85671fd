"""Assemble the client-side job observer from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from surveygen.config import Settings
from surveygen.jobs.controller import GenerationController
from surveygen.jobs.invalidation import CacheInvalidator
from surveygen.jobs.models import SessionContext
from surveygen.jobs.notices import GenerationNotifier
from surveygen.jobs.store import JobStatusStore
from surveygen.realtime.stream import StreamingChannel
from surveygen.services.backend_client import BackendClient

logger = logging.getLogger(__name__)


@dataclass
class JobObserver:
  """Backend client, event stream, projection store and controller for one session."""

  backend: BackendClient
  channel: StreamingChannel
  store: JobStatusStore
  controller: GenerationController

  def start(self) -> None:
    self.channel.start()

  async def aclose(self) -> None:
    """Stop observing every survey, then release the stream and the backend client."""
    await self.controller.close()
    await self.channel.close()
    await self.backend.aclose()
    logger.info("Job observer closed")

  async def __aenter__(self) -> JobObserver:
    self.start()
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.aclose()


def build_observer(
  settings: Settings,
  context: SessionContext,
  *,
  invalidator: CacheInvalidator | None = None,
  notifier: GenerationNotifier | None = None,
  client: httpx.AsyncClient | None = None,
  stream_client: httpx.AsyncClient | None = None,
) -> JobObserver:
  """Wire the observer for a session; clients passed in stay owned by the caller."""

  backend = BackendClient(settings, context, client=client)
  channel = StreamingChannel(settings.events_url, context, reconnect_delay=settings.reconnect_delay_seconds, client=stream_client)
  store = JobStatusStore(context, invalidator)
  controller = GenerationController(backend=backend, channel=channel, store=store, settings=settings, notifier=notifier)
  logger.info("Job observer ready api=%s events=%s tenant=%s", settings.api_base_url, settings.events_url, context.tenant_id)
  return JobObserver(backend=backend, channel=channel, store=store, controller=controller)
