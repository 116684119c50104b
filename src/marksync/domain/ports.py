"""Ports for the external collaborators of the reconciliation core."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from marksync.domain.model import ConnectivityStatus, Event, Record

type ChangeRow = Mapping[str, object]
type ChangeHandler = Callable[[ChangeRow], None]
type StatusHandler = Callable[[str], None]
type MessageHandler = Callable[[Mapping[str, object]], None]


@runtime_checkable
class RecordStore(Protocol):
    """Authoritative persistence with owner-scoped access control.

    Every call requires a currently valid identity; implementations raise
    ``UnauthorizedError`` instead of returning an empty result.
    """

    async def create(self, owner_id: str, title: str, url: str) -> Record: ...

    async def remove(self, record_id: str, owner_id: str) -> int:
        """Delete and return the number of affected rows (zero when absent or not owned)."""
        ...

    async def list(self, owner_id: str) -> Sequence[Record]:
        """Return the owner's records, newest first."""
        ...


@runtime_checkable
class ChangeSubscription(Protocol):
    """Open subscription on a change-stream topic."""

    @property
    def topic(self) -> str: ...

    async def close(self) -> None: ...


@runtime_checkable
class ChangeStreamTransport(Protocol):
    """Push-style change stream scoped by owner identity.

    Removal rows must carry the full previous row (including ``user_id``);
    otherwise owner-filtered deletes never reach the subscriber.
    """

    async def subscribe(
        self,
        topic: str,
        *,
        owner_id: str,
        on_change: ChangeHandler,
        on_status: StatusHandler,
    ) -> ChangeSubscription: ...


@runtime_checkable
class BroadcastEndpoint(Protocol):
    """One context's handle on a same-device broadcast channel."""

    def post_message(self, message: Mapping[str, object]) -> None: ...

    def set_handler(self, handler: MessageHandler | None) -> None: ...

    def close(self) -> None: ...


type EpochEventSink = Callable[[int, Event], None]
type EpochStatusSink = Callable[[int, ConnectivityStatus], None]


@runtime_checkable
class ChangeFeed(Protocol):
    """One activation's subscription, normalizing change rows into events."""

    @property
    def epoch(self) -> int: ...

    async def open(self) -> None: ...

    async def close(self) -> None: ...


@runtime_checkable
class ChangeFeedFactory(Protocol):
    def __call__(
        self,
        *,
        topic: str,
        owner_id: str,
        epoch: int,
        on_event: EpochEventSink,
        on_status: EpochStatusSink,
    ) -> ChangeFeed: ...
