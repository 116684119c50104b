"""Host-context composition and application entry points."""

from __future__ import annotations

import asyncio
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from marksync.adapters.bookmarks_api import HttpRecordStore
from marksync.adapters.broadcast import LocalBroadcastAdapter, RefetchRequested
from marksync.adapters.change_feed import ChangeFeedAdapter
from marksync.adapters.refetch import RefetchAdapter
from marksync.config.store import get_record_store_config
from marksync.config.sync import get_sync_config
from marksync.domain.commands import CommandGateway
from marksync.domain.lifecycle import SubscriptionLifecycleManager
from marksync.domain.model import Deleted, Inserted
from marksync.domain.reconciliation import ReconciliationEngine

if TYPE_CHECKING:
    from marksync.adapters.broadcast import BroadcastDomain, BroadcastEvent
    from marksync.config.store import RecordStoreConfig
    from marksync.config.sync import SyncConfig
    from marksync.domain.lifecycle import ActivationHandle
    from marksync.domain.model import ConnectivityStatus, Record
    from marksync.domain.ports import ChangeStreamTransport, RecordStore

log = getLogger(__name__)


class BookmarkSession:
    """One live context (a browser tab, a device) showing an owner's bookmarks.

    The session wires the three inbound channels into one engine: the change
    feed through the lifecycle manager, sibling contexts through the broadcast
    domain, and the refetch safety net on start and on every hidden -> visible
    transition.
    """

    def __init__(
        self,
        *,
        owner_id: str,
        store: RecordStore,
        transport: ChangeStreamTransport,
        broadcast: BroadcastDomain | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        self.config = config or get_sync_config()
        self.owner_id = owner_id
        self.engine = ReconciliationEngine()
        self.lifecycle = SubscriptionLifecycleManager(
            engine=self.engine,
            feed_factory=partial(ChangeFeedAdapter, transport),
            grace_seconds=self.config.teardown_grace_seconds,
            topic_prefix=self.config.topic_prefix,
        )
        self._refetch = RefetchAdapter(store=store, engine=self.engine)
        self._broadcast = (
            LocalBroadcastAdapter(broadcast.open(self.config.broadcast_channel))
            if broadcast is not None
            else None
        )
        self.gateway = CommandGateway(
            store=store,
            engine=self.engine,
            owner_id=owner_id,
            publisher=self._broadcast,
            journal=self._refetch,
        )
        self._handle: ActivationHandle | None = None
        self._visible = True
        self._background: set[asyncio.Task[bool]] = set()
        self._background_error: BaseException | None = None

    @property
    def handle(self) -> ActivationHandle | None:
        return self._handle

    @property
    def refetch_error(self) -> BaseException | None:
        """First failure of a sibling-requested refetch; :meth:`stop` re-raises it."""
        return self._background_error

    async def start(self) -> None:
        """Activate the change feed, join the broadcast domain and load the collection."""

        if self._broadcast is not None:
            self._broadcast.subscribe(self._on_broadcast)
        await self.activate()
        await self.refresh()

    async def activate(self) -> ActivationHandle:
        self._handle = await self.lifecycle.activate(self.owner_id)
        return self._handle

    def deactivate(self) -> None:
        if self._handle is not None:
            self.lifecycle.deactivate(self._handle)

    async def remount(self) -> ActivationHandle:
        """Tear the subscription down and immediately re-establish it."""

        self.deactivate()
        return await self.activate()

    async def stop(self) -> None:
        """Leave the broadcast domain and close the change feed after its grace interval."""

        self.deactivate()
        if self._broadcast is not None:
            self._broadcast.close()
        await self.lifecycle.aclose()
        if self._background:
            await asyncio.gather(*tuple(self._background), return_exceptions=True)
        error, self._background_error = self._background_error, None
        if error is not None:
            raise error

    async def refresh(self) -> bool:
        return await self._refetch.refresh(self.owner_id)

    async def set_visible(self, visible: bool) -> bool:
        """Record a visibility change; refetch on a hidden -> visible transition."""

        became_visible = visible and not self._visible
        self._visible = visible
        if not became_visible:
            return False
        return await self.refresh()

    async def request_refetch_everywhere(self) -> bool:
        if self._broadcast is not None:
            self._broadcast.request_refetch()
        return await self.refresh()

    async def request_add(self, title: str, url: str) -> Record:
        return await self.gateway.add_record(title, url)

    async def request_delete(self, record_id: str) -> None:
        await self.gateway.delete_record(record_id)

    def current_collection(self) -> tuple[Record, ...]:
        return self.engine.current_collection()

    def connectivity_status(self) -> ConnectivityStatus:
        return self.lifecycle.connectivity_status

    def _on_broadcast(self, event: BroadcastEvent) -> None:
        match event:
            case Inserted() | Deleted():
                self.engine.apply(event)
            case RefetchRequested():
                task = asyncio.get_running_loop().create_task(self.refresh())
                self._background.add(task)
                task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task[bool]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error("Requested refetch failed: %s", error)
            self._background_error = self._background_error or error


def _http_gateway(
    config: RecordStoreConfig | None,
) -> tuple[HttpRecordStore, ReconciliationEngine, CommandGateway]:
    store_config = config or get_record_store_config()
    store = HttpRecordStore(config=store_config)
    engine = ReconciliationEngine()
    gateway = CommandGateway(store=store, engine=engine, owner_id=store_config.owner_id)
    return store, engine, gateway


async def list_bookmarks(config: RecordStoreConfig | None = None) -> tuple[Record, ...]:
    """Fetch the configured owner's bookmarks from the bookmarks API."""

    store, engine, gateway = _http_gateway(config)
    snapshot = await RefetchAdapter(store=store, engine=engine).fetch_snapshot(gateway.owner_id)
    engine.apply(snapshot)
    return engine.current_collection()


async def add_bookmark(
    title: str, url: str, config: RecordStoreConfig | None = None
) -> tuple[Record, ...]:
    """Add a bookmark, then return the refreshed collection."""

    store, engine, gateway = _http_gateway(config)
    record = await gateway.add_record(title, url)
    log.info("Added bookmark %s (%s)", record.id, record.url)
    await RefetchAdapter(store=store, engine=engine).refresh(gateway.owner_id)
    return engine.current_collection()


async def delete_bookmark(
    record_id: str, config: RecordStoreConfig | None = None
) -> tuple[Record, ...]:
    """Delete a bookmark, then return the refreshed collection."""

    store, engine, gateway = _http_gateway(config)
    await gateway.delete_record(record_id)
    log.info("Deleted bookmark %s", record_id)
    await RefetchAdapter(store=store, engine=engine).refresh(gateway.owner_id)
    return engine.current_collection()
