"""In-process push transport for bookmark change rows.

Subscriptions are filtered on ``user_id`` the way a row-filtered realtime
channel is: insert rows match on the new row, removal rows on the previous
row image. Rows are delivered on later loop iterations, never inline with the
publisher.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from marksync.domain.errors import ChangeStreamError

if TYPE_CHECKING:
    from marksync.domain.ports import ChangeHandler, ChangeRow, StatusHandler

log = getLogger(__name__)


@dataclass(slots=True)
class _Subscription:
    stream: InMemoryChangeStream
    topic: str
    owner_id: str
    on_change: ChangeHandler
    on_status: StatusHandler
    closed: bool = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.stream.release(self)
        self.on_status("CLOSED")


class InMemoryChangeStream:
    def __init__(self, *, handshake_delay: float = 0.0) -> None:
        self._handshake_delay = handshake_delay
        self._subscriptions: dict[str, _Subscription] = {}

    @property
    def open_topics(self) -> tuple[str, ...]:
        return tuple(self._subscriptions)

    async def subscribe(
        self,
        topic: str,
        *,
        owner_id: str,
        on_change: ChangeHandler,
        on_status: StatusHandler,
    ) -> _Subscription:
        if topic in self._subscriptions:
            raise ChangeStreamError(f"Topic already subscribed: {topic}")

        subscription = _Subscription(
            stream=self,
            topic=topic,
            owner_id=owner_id,
            on_change=on_change,
            on_status=on_status,
        )
        self._subscriptions[topic] = subscription
        await asyncio.sleep(self._handshake_delay)
        if subscription.closed:
            raise ChangeStreamError(f"Subscription closed during handshake: {topic}")
        on_status("SUBSCRIBED")
        log.debug("Subscribed %s for owner %s", topic, owner_id)
        return subscription

    async def release(self, subscription: _Subscription) -> None:
        if self._subscriptions.get(subscription.topic) is subscription:
            del self._subscriptions[subscription.topic]
        await asyncio.sleep(0)

    def publish(self, row: ChangeRow) -> None:
        owner_id = _row_owner(row)
        if owner_id is None:
            log.debug("Change row carries no owner; filtered subscriptions skip it")
            return

        loop = asyncio.get_running_loop()
        for subscription in tuple(self._subscriptions.values()):
            if subscription.owner_id == owner_id:
                loop.call_soon(_deliver, subscription, row)

    def signal(self, state: str) -> None:
        """Push a connection state (for example ``"CHANNEL_ERROR"``) to every subscriber."""

        for subscription in tuple(self._subscriptions.values()):
            subscription.on_status(state)


def _deliver(subscription: _Subscription, row: ChangeRow) -> None:
    if not subscription.closed:
        subscription.on_change(row)


def _row_owner(row: ChangeRow) -> str | None:
    image = row.get("old") if row.get("eventType") == "DELETE" else row.get("new")
    if not isinstance(image, dict):
        return None
    owner_id = image.get("user_id")
    return owner_id if isinstance(owner_id, str) else None
