"""Single writer of the canonical bookmark collection.

Events from the command gateway, the change feed, the local broadcast channel
and the refetch safety net all end up in :meth:`ReconciliationEngine.apply`.
Every merge rule is idempotent, so the same confirmed change arriving over
several channels (or several times over one channel) is applied once:

* ``Inserted`` is a no-op when the id is already present.
* ``Deleted`` is a no-op when the id is absent.
* ``Snapshot`` replaces the collection wholesale and is the only event that
  re-orders existing entries.

The host runs one asyncio loop per context and ``apply`` never awaits, so each
call runs to completion before the next one starts; no lock is needed.
"""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING, assert_never

from marksync.domain.model import Deleted, Inserted, Record, Snapshot

if TYPE_CHECKING:
    from marksync.domain.model import Event

type CollectionListener = Callable[[tuple[Record, ...]], None]

log = getLogger(__name__)


class ReconciliationEngine:
    """Owns the canonical collection: unique ids, newest ``created_at`` first."""

    def __init__(self) -> None:
        self._records: list[Record] = []
        self._ids: set[str] = set()
        self._loaded = False
        self._listeners: list[CollectionListener] = []

    @property
    def is_loaded(self) -> bool:
        """Whether a snapshot has been applied since construction."""
        return self._loaded

    def current_collection(self) -> tuple[Record, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._ids

    def subscribe(self, listener: CollectionListener) -> Callable[[], None]:
        """Call ``listener`` with the new collection after every effective change."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, event: Event) -> None:
        match event:
            case Inserted(record=record):
                changed = self._insert(record)
            case Deleted(id=record_id):
                changed = self._delete(record_id)
            case Snapshot(records=records):
                self._replace(records)
                changed = True
            case _:
                assert_never(event)

        if changed:
            self._notify()

    def _insert(self, record: Record) -> bool:
        if record.id in self._ids:
            log.debug("Ignoring duplicate insert of %s", record.id)
            return False

        position = len(self._records)
        for index, existing in enumerate(self._records):
            if existing.created_at <= record.created_at:
                position = index
                break
        self._records.insert(position, record)
        self._ids.add(record.id)
        log.debug("Inserted %s at position %s", record.id, position)
        return True

    def _delete(self, record_id: str) -> bool:
        if record_id not in self._ids:
            log.debug("Ignoring delete of absent record %s", record_id)
            return False

        self._records = [record for record in self._records if record.id != record_id]
        self._ids.discard(record_id)
        log.debug("Deleted %s", record_id)
        return True

    def _replace(self, records: tuple[Record, ...]) -> None:
        unique: list[Record] = []
        seen: set[str] = set()
        for record in records:
            if record.id in seen:
                continue
            seen.add(record.id)
            unique.append(record)

        self._records = unique
        self._ids = seen
        self._loaded = True
        log.debug("Applied snapshot with %s records", len(unique))

    def _notify(self) -> None:
        collection = self.current_collection()
        for listener in list(self._listeners):
            listener(collection)
