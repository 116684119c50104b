"""Authoritative add/delete commands.

Nothing is applied before the store confirms. A confirmed change is applied to
the engine first and then published to sibling contexts; the same change
reaching the engine again over the change feed is absorbed by its idempotent
merge rules.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from marksync.domain.errors import InvalidCommandError, RecordNotFoundError
from marksync.domain.model import Deleted, Inserted

if TYPE_CHECKING:
    from marksync.domain.model import Event, Record
    from marksync.domain.ports import RecordStore
    from marksync.domain.reconciliation import ReconciliationEngine

log = getLogger(__name__)


class ConfirmedEventPublisher(Protocol):
    def publish(self, event: Event) -> None: ...


class ConfirmationJournal(Protocol):
    def record(self, event: Event) -> None: ...


class CommandGateway:
    def __init__(
        self,
        *,
        store: RecordStore,
        engine: ReconciliationEngine,
        owner_id: str,
        publisher: ConfirmedEventPublisher | None = None,
        journal: ConfirmationJournal | None = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._owner_id = owner_id
        self._publisher = publisher
        self._journal = journal

    @property
    def owner_id(self) -> str:
        return self._owner_id

    async def add_record(self, title: str, url: str) -> Record:
        """Create a bookmark and apply the store-confirmed record.

        Raises ``InvalidCommandError`` for a blank title or url, and whatever
        the store raises (``UnauthorizedError``, ``StoreUnavailableError``)
        without retrying.
        """

        clean_title = title.strip()
        clean_url = url.strip()
        if not clean_title or not clean_url:
            raise InvalidCommandError("title and url are required")

        record = await self._store.create(self._owner_id, clean_title, clean_url)
        log.info("Store confirmed bookmark %s", record.id)
        self._confirm(Inserted(record))
        return record

    async def delete_record(self, record_id: str) -> None:
        """Delete a bookmark; a delete that affected no rows is a failure."""

        if not record_id.strip():
            raise InvalidCommandError("id is required")

        affected = await self._store.remove(record_id, self._owner_id)
        if affected == 0:
            log.info("Delete of %s affected no rows", record_id)
            raise RecordNotFoundError(record_id)

        log.info("Store confirmed delete of %s", record_id)
        self._confirm(Deleted(record_id))

    def _confirm(self, event: Event) -> None:
        self._engine.apply(event)
        if self._journal is not None:
            self._journal.record(event)
        if self._publisher is not None:
            self._publisher.publish(event)
