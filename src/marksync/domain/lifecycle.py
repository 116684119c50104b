"""Bind change-feed subscriptions to host-context activations.

Each activation gets a fresh epoch and its own topic name. Deactivation
excludes the epoch at once, but the transport is only closed after a grace
interval: closing it in the same tick as a replacement subscribes can break
the handshake of either one. Until then the old and new subscriptions coexist
and only the newest epoch reaches the engine.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from marksync.config.sync import DEFAULT_TEARDOWN_GRACE_SECONDS, DEFAULT_TOPIC_PREFIX
from marksync.domain.model import ConnectivityStatus

if TYPE_CHECKING:
    from marksync.domain.model import Event
    from marksync.domain.ports import ChangeFeed, ChangeFeedFactory
    from marksync.domain.reconciliation import ReconciliationEngine

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActivationHandle:
    epoch: int
    owner_id: str
    topic: str


class SubscriptionLifecycleManager:
    def __init__(
        self,
        *,
        engine: ReconciliationEngine,
        feed_factory: ChangeFeedFactory,
        grace_seconds: float = DEFAULT_TEARDOWN_GRACE_SECONDS,
        topic_prefix: str = DEFAULT_TOPIC_PREFIX,
    ) -> None:
        if grace_seconds < 0:
            raise ValueError("Teardown grace interval must be non-negative")
        self._engine = engine
        self._feed_factory = feed_factory
        self._grace_seconds = grace_seconds
        self._topic_prefix = topic_prefix
        self._epoch = 0
        self._active: set[int] = set()
        self._feeds: dict[int, ChangeFeed] = {}
        self._handles: dict[int, ActivationHandle] = {}
        self._teardowns: set[asyncio.Task[None]] = set()
        self._status = ConnectivityStatus.CLOSED

    @property
    def current_epoch(self) -> int:
        return self._epoch

    @property
    def connectivity_status(self) -> ConnectivityStatus:
        return self._status

    @property
    def open_topics(self) -> tuple[str, ...]:
        """Topics whose transport subscription has not been torn down yet."""
        return tuple(self._handles[epoch].topic for epoch in sorted(self._feeds))

    def is_current(self, epoch: int) -> bool:
        return epoch == self._epoch and epoch in self._active

    async def activate(self, owner_id: str) -> ActivationHandle:
        self._epoch += 1
        epoch = self._epoch
        handle = ActivationHandle(
            epoch=epoch,
            owner_id=owner_id,
            topic=f"{self._topic_prefix}-{owner_id}-{epoch}",
        )

        feed = self._feed_factory(
            topic=handle.topic,
            owner_id=owner_id,
            epoch=epoch,
            on_event=self._deliver,
            on_status=self._update_status,
        )
        self._active.add(epoch)
        self._feeds[epoch] = feed
        self._handles[epoch] = handle
        self._status = ConnectivityStatus.CONNECTING
        log.info("Activating change feed %s (epoch %s)", handle.topic, epoch)

        try:
            await feed.open()
        except Exception:
            self._active.discard(epoch)
            self._feeds.pop(epoch, None)
            self._handles.pop(epoch, None)
            if epoch == self._epoch:
                self._status = ConnectivityStatus.ERROR
            raise
        return handle

    def deactivate(self, handle: ActivationHandle) -> None:
        if handle.epoch not in self._active:
            return

        self._active.discard(handle.epoch)
        if handle.epoch == self._epoch:
            self._status = ConnectivityStatus.CLOSED
        log.info(
            "Deactivated epoch %s; closing %s in %.3fs",
            handle.epoch,
            handle.topic,
            self._grace_seconds,
        )

        self._schedule_teardown(handle.epoch)

    async def drain(self) -> None:
        """Wait for every scheduled transport teardown to finish."""

        while self._teardowns:
            await asyncio.gather(*tuple(self._teardowns))

    async def aclose(self) -> None:
        """Deactivate every live epoch and wait for the transports to close."""

        for epoch in sorted(self._active):
            self._active.discard(epoch)
            self._schedule_teardown(epoch)
        self._status = ConnectivityStatus.CLOSED
        await self.drain()

    def _schedule_teardown(self, epoch: int) -> None:
        task = asyncio.get_running_loop().create_task(self._teardown(epoch))
        self._teardowns.add(task)
        task.add_done_callback(self._teardowns.discard)

    async def _teardown(self, epoch: int) -> None:
        await asyncio.sleep(self._grace_seconds)
        feed = self._feeds.pop(epoch, None)
        self._handles.pop(epoch, None)
        if feed is not None:
            await feed.close()
            log.debug("Closed change feed for epoch %s", epoch)

    def _deliver(self, epoch: int, event: Event) -> None:
        if not self.is_current(epoch):
            log.debug("Suppressed %s from stale epoch %s", type(event).__name__, epoch)
            return
        self._engine.apply(event)

    def _update_status(self, epoch: int, status: ConnectivityStatus) -> None:
        if not self.is_current(epoch):
            return
        if status is not self._status:
            log.info("Change feed epoch %s is %s", epoch, status)
        self._status = status

