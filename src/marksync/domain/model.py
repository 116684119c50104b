"""Records and the normalized events that mutate the canonical collection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum


class ConnectivityStatus(StrEnum):
    """Connection state of the change feed (observability only)."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    TIMED_OUT = "timed-out"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class Record:
    """A bookmark as confirmed by the record store.

    ``id`` and ``created_at`` are minted by the store; nothing in this package
    creates a ``Record`` for a row the store has not confirmed.
    """

    id: str
    owner: str
    title: str
    url: str
    created_at: datetime

    def __post_init__(self) -> None:
        if self.created_at.tzinfo is None:
            object.__setattr__(self, "created_at", self.created_at.replace(tzinfo=UTC))


@dataclass(frozen=True, slots=True)
class Inserted:
    record: Record


@dataclass(frozen=True, slots=True)
class Deleted:
    id: str


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Complete authoritative collection as of fetch time."""

    records: tuple[Record, ...] = ()


type Event = Inserted | Deleted | Snapshot
