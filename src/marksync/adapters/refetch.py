"""Authoritative full-collection refetch, the safety net for lossy channels."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from marksync.domain.errors import RefetchError, StoreUnavailableError
from marksync.domain.model import Snapshot

if TYPE_CHECKING:
    from marksync.domain.model import Event
    from marksync.domain.ports import RecordStore
    from marksync.domain.reconciliation import ReconciliationEngine

log = getLogger(__name__)


class RefetchAdapter:
    """Fetch and apply snapshots without rolling back confirmed commands.

    Changes confirmed by the command gateway while a refetch is in flight are
    journaled through :meth:`record` and re-applied on top of the snapshot,
    since the store may have answered the list before it committed them.
    """

    def __init__(self, *, store: RecordStore, engine: ReconciliationEngine) -> None:
        self._store = store
        self._engine = engine
        self._started = 0
        self._applied = 0
        self._in_flight = 0
        self._sequence = 0
        self._journal: list[tuple[int, Event]] = []

    async def fetch_snapshot(self, owner_id: str) -> Snapshot:
        """Return the owner's complete collection as of now.

        Transport and server failures raise ``RefetchError``; an
        ``UnauthorizedError`` propagates unchanged.
        """

        try:
            records = await self._store.list(owner_id)
        except StoreUnavailableError as exc:
            raise RefetchError(f"Refetch failed: {exc}") from exc
        return Snapshot(tuple(records))

    def record(self, event: Event) -> None:
        """Journal a confirmed change; a no-op while no refetch is running."""

        if self._in_flight == 0:
            return
        self._sequence += 1
        self._journal.append((self._sequence, event))

    async def refresh(self, owner_id: str) -> bool:
        """Fetch and apply a snapshot; return whether it was applied.

        A snapshot is dropped when a refetch started later has already been
        applied, so overlapping refetches never roll the collection back.
        """

        self._started += 1
        generation = self._started
        mark = self._sequence
        self._in_flight += 1
        try:
            snapshot = await self.fetch_snapshot(owner_id)
        except RefetchError as exc:
            log.warning("Keeping current collection: %s", exc)
            return False
        else:
            return self._apply(generation, mark, snapshot, owner_id)
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._journal.clear()

    def _apply(self, generation: int, mark: int, snapshot: Snapshot, owner_id: str) -> bool:
        if generation < self._applied:
            log.debug("Discarding refetch %s superseded by %s", generation, self._applied)
            return False

        self._applied = generation
        self._engine.apply(snapshot)
        replayed = [event for sequence, event in self._journal if sequence > mark]
        for event in replayed:
            self._engine.apply(event)
        log.info(
            "Refetched %s bookmarks for %s (%s confirmed changes replayed)",
            len(snapshot.records),
            owner_id,
            len(replayed),
        )
        return True
