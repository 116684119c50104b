"""Builders and in-memory doubles shared by the test suite."""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from marksync.adapters.schema import RecordPayload
from marksync.domain.model import ConnectivityStatus, Record

if TYPE_CHECKING:
    from collections.abc import Sequence

    from marksync.domain.model import Event
    from marksync.domain.ports import EpochEventSink, EpochStatusSink

OWNER = "user-1"
OTHER_OWNER = "user-2"
BASE_TIME = datetime(2024, 1, 7, 12, tzinfo=UTC)


def make_record(
    record_id: str,
    *,
    minutes: int = 0,
    owner: str = OWNER,
    title: str | None = None,
    url: str | None = None,
) -> Record:
    return Record(
        id=record_id,
        owner=owner,
        title=title or f"Bookmark {record_id}",
        url=url or f"https://example.com/{record_id}",
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def row_for(record: Record) -> dict[str, object]:
    return RecordPayload.from_record(record).model_dump(mode="json")


async def settle(turns: int = 5) -> None:
    """Let queued loop callbacks (deliveries, background tasks) run."""

    for _ in range(turns):
        await asyncio.sleep(0)


class FakeRecordStore:
    """Async store double; ``gates`` holds one event per upcoming call to wait on."""

    def __init__(self, records: Sequence[Record] = ()) -> None:
        self.records: dict[str, Record] = {record.id: record for record in records}
        self.fail_with: Exception | None = None
        self.affected_override: int | None = None
        self.gates: deque[asyncio.Event] = deque()
        self.calls: list[tuple[str, ...]] = []
        self._next_id = 1

    async def create(self, owner_id: str, title: str, url: str) -> Record:
        self.calls.append(("create", owner_id, title, url))
        await self._wait()
        self._raise()
        record = Record(
            id=str(self._next_id),
            owner=owner_id,
            title=title,
            url=url,
            created_at=BASE_TIME + timedelta(minutes=self._next_id),
        )
        self._next_id += 1
        self.records[record.id] = record
        return record

    async def remove(self, record_id: str, owner_id: str) -> int:
        self.calls.append(("remove", record_id, owner_id))
        await self._wait()
        self._raise()
        if self.affected_override is not None:
            return self.affected_override
        return 1 if self.records.pop(record_id, None) is not None else 0

    async def list(self, owner_id: str) -> list[Record]:
        self.calls.append(("list", owner_id))
        result = sorted(
            (record for record in self.records.values() if record.owner == owner_id),
            key=lambda record: record.created_at,
            reverse=True,
        )
        await self._wait()
        self._raise()
        return result

    async def _wait(self) -> None:
        if self.gates:
            await self.gates.popleft().wait()

    def _raise(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with


class FakeFeed:
    def __init__(
        self,
        *,
        topic: str,
        owner_id: str,
        epoch: int,
        on_event: EpochEventSink,
        on_status: EpochStatusSink,
        fail_with: Exception | None = None,
    ) -> None:
        self.topic = topic
        self.owner_id = owner_id
        self._epoch = epoch
        self._on_event = on_event
        self._on_status = on_status
        self._fail_with = fail_with
        self.close_calls = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    async def open(self) -> None:
        if self._fail_with is not None:
            raise self._fail_with
        self._on_status(self._epoch, ConnectivityStatus.CONNECTED)

    async def close(self) -> None:
        self.close_calls += 1

    def emit(self, event: Event) -> None:
        self._on_event(self._epoch, event)

    def status(self, status: ConnectivityStatus) -> None:
        self._on_status(self._epoch, status)


class FakeFeedFactory:
    def __init__(self, *, fail_with: Exception | None = None) -> None:
        self.feeds: list[FakeFeed] = []
        self.fail_with = fail_with

    def __call__(
        self,
        *,
        topic: str,
        owner_id: str,
        epoch: int,
        on_event: EpochEventSink,
        on_status: EpochStatusSink,
    ) -> FakeFeed:
        feed = FakeFeed(
            topic=topic,
            owner_id=owner_id,
            epoch=epoch,
            on_event=on_event,
            on_status=on_status,
            fail_with=self.fail_with,
        )
        self.feeds.append(feed)
        return feed


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[Event] = []

    def publish(self, event: Event) -> None:
        self.events.append(event)


class StepClock:
    """Clock that advances one minute per reading."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self._now = start

    def __call__(self) -> datetime:
        self._now += timedelta(minutes=1)
        return self._now
