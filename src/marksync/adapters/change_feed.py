"""Normalize change-stream rows into engine events for one activation."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from marksync.adapters.schema import ChangeRowPayload, PartialRowPayload, parse_record
from marksync.domain.model import ConnectivityStatus, Deleted, Inserted

if TYPE_CHECKING:
    from marksync.domain.model import Event
    from marksync.domain.ports import (
        ChangeRow,
        ChangeStreamTransport,
        ChangeSubscription,
        EpochEventSink,
        EpochStatusSink,
    )

log = getLogger(__name__)

_STATUS_BY_TRANSPORT_STATE: dict[str, ConnectivityStatus] = {
    "SUBSCRIBED": ConnectivityStatus.CONNECTED,
    "CHANNEL_ERROR": ConnectivityStatus.ERROR,
    "TIMED_OUT": ConnectivityStatus.TIMED_OUT,
    "CLOSED": ConnectivityStatus.CLOSED,
    **{status.value: status for status in ConnectivityStatus},
}


class ChangeFeedAdapter:
    """Owner-scoped insert/delete notifications tagged with an epoch.

    The stream guarantees neither ordering nor delivery. Rows that cannot be
    attributed to the owner are dropped: in particular a removal row that
    carries only the primary key is unobservable here, which is why the
    upstream table must publish full previous rows on delete.
    """

    def __init__(
        self,
        transport: ChangeStreamTransport,
        *,
        topic: str,
        owner_id: str,
        epoch: int,
        on_event: EpochEventSink,
        on_status: EpochStatusSink,
    ) -> None:
        self._transport = transport
        self._topic = topic
        self._owner_id = owner_id
        self._epoch = epoch
        self._on_event = on_event
        self._on_status = on_status
        self._subscription: ChangeSubscription | None = None

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def topic(self) -> str:
        return self._topic

    async def open(self) -> None:
        self._on_status(self._epoch, ConnectivityStatus.CONNECTING)
        self._subscription = await self._transport.subscribe(
            self._topic,
            owner_id=self._owner_id,
            on_change=self._handle_row,
            on_status=self._handle_status,
        )

    async def close(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        await subscription.close()
        self._on_status(self._epoch, ConnectivityStatus.CLOSED)

    def _handle_status(self, state: str) -> None:
        status = _STATUS_BY_TRANSPORT_STATE.get(state)
        if status is None:
            log.warning("Unknown change-stream state %r on %s", state, self._topic)
            return
        self._on_status(self._epoch, status)

    def _handle_row(self, row: ChangeRow) -> None:
        try:
            event = self._normalize(ChangeRowPayload.model_validate(row))
        except ValidationError as exc:
            log.warning("Dropping malformed change row on %s: %s", self._topic, exc)
            return
        if event is not None:
            self._on_event(self._epoch, event)

    def _normalize(self, change: ChangeRowPayload) -> Event | None:
        match change.event_type:
            case "INSERT":
                record = parse_record(change.new)
                if record.owner != self._owner_id:
                    log.debug("Ignoring insert for foreign owner on %s", self._topic)
                    return None
                return Inserted(record)
            case "DELETE":
                previous = PartialRowPayload.model_validate(change.old)
                if previous.id is None:
                    log.warning("Dropping delete without a row id on %s", self._topic)
                    return None
                if previous.user_id is None:
                    log.warning(
                        "Dropping delete of %s on %s: removal rows carry no owner; "
                        "the stream must publish full previous rows",
                        previous.id,
                        self._topic,
                    )
                    return None
                if previous.user_id != self._owner_id:
                    return None
                return Deleted(previous.id)
            case "UPDATE":
                log.debug("Ignoring update row on %s", self._topic)
                return None
