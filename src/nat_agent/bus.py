"""NATS plumbing for the agent.

The NATS client is asyncio based while reconciliation is made of blocking
provider calls. Each inbound message is handed to a thread pool and the
worker threads publish their reports back through the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from typing import Any, Optional, Set

from nat_routing.event import SUBJECT

from .handler import NatUpdateHandler

LOG = logging.getLogger(__name__)


class NatsPublisher:
    """Thread-safe publisher bound to a NATS client running on ``loop``."""

    def __init__(
        self,
        client: Any,
        loop: asyncio.AbstractEventLoop,
        timeout: Optional[float] = 10.0,
    ) -> None:
        self._client = client
        self._loop = loop
        self._timeout = timeout

    def publish(self, subject: str, data: bytes) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            raise RuntimeError("NatsPublisher.publish must be called from a worker thread")

        future = asyncio.run_coroutine_threadsafe(
            self._client.publish(subject, data), self._loop
        )
        future.result(self._timeout)


class NatSubscription:
    """Dispatch messages from ``subject`` to ``handler`` on ``executor``."""

    def __init__(
        self,
        client: Any,
        handler: NatUpdateHandler,
        executor: Executor,
        *,
        subject: str = SUBJECT,
        queue: str = "",
    ) -> None:
        self._client = client
        self._handler = handler
        self._executor = executor
        self._subject = subject
        self._queue = queue
        self._subscription: Any = None
        self._pending: Set[asyncio.Future] = set()

    async def start(self) -> None:
        self._subscription = await self._client.subscribe(
            self._subject, queue=self._queue, cb=self._on_message
        )
        LOG.info("listening for %s", self._subject)

    async def stop(self) -> None:
        """Stop receiving and wait for in-flight handlers to report."""

        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None
        if self._pending:
            LOG.info("waiting for %d in-flight nat update(s)", len(self._pending))
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _on_message(self, msg: Any) -> None:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, self._dispatch, msg.data)
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    def _dispatch(self, data: bytes) -> None:
        try:
            self._handler.handle(data)
        except Exception:
            LOG.exception("nat update handler failed")
