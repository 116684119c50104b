"""Same-device broadcast of confirmed changes between live contexts.

``BroadcastDomain`` plays the part of the device-wide message bus: every
endpoint opened on a channel name receives the messages posted by the other
endpoints on that name, each delivered as its own loop callback. Messages are
plain JSON-compatible mappings, so nothing is shared by reference between
contexts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Annotated, Literal

from pydantic import Field, TypeAdapter, ValidationError

from marksync.adapters.schema import BookmarkBaseModel, RecordPayload
from marksync.domain.model import Deleted, Inserted, Snapshot

if TYPE_CHECKING:
    from marksync.domain.model import Event
    from marksync.domain.ports import BroadcastEndpoint, MessageHandler

DEFAULT_CHANNEL_NAME = "bookmarks-sync"

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RefetchRequested:
    """A sibling context asked everyone to refetch from the store."""


type BroadcastEvent = Inserted | Deleted | RefetchRequested
type BroadcastHandler = Callable[[BroadcastEvent], None]


class InsertMessage(BookmarkBaseModel):
    type: Literal["INSERT"] = "INSERT"
    bookmark: RecordPayload


class DeleteMessage(BookmarkBaseModel):
    type: Literal["DELETE"] = "DELETE"
    id: str


class RefetchMessage(BookmarkBaseModel):
    type: Literal["REFETCH"] = "REFETCH"


BroadcastMessage = Annotated[
    InsertMessage | DeleteMessage | RefetchMessage,
    Field(discriminator="type"),
]
_MESSAGE_ADAPTER: TypeAdapter[InsertMessage | DeleteMessage | RefetchMessage] = TypeAdapter(
    BroadcastMessage
)


class _Endpoint:
    def __init__(self, domain: BroadcastDomain, name: str) -> None:
        self._domain = domain
        self.name = name
        self.handler: MessageHandler | None = None
        self.closed = False

    def post_message(self, message: Mapping[str, object]) -> None:
        if self.closed:
            raise RuntimeError(f"Broadcast endpoint {self.name!r} is closed")
        self._domain.dispatch(self, dict(message))

    def set_handler(self, handler: MessageHandler | None) -> None:
        self.handler = handler

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._domain.detach(self)


class BroadcastDomain:
    """Device-wide registry of broadcast endpoints, keyed by channel name."""

    def __init__(self) -> None:
        self._endpoints: dict[str, list[_Endpoint]] = {}

    def open(self, name: str = DEFAULT_CHANNEL_NAME) -> _Endpoint:
        endpoint = _Endpoint(self, name)
        self._endpoints.setdefault(name, []).append(endpoint)
        return endpoint

    def detach(self, endpoint: _Endpoint) -> None:
        peers = self._endpoints.get(endpoint.name, [])
        if endpoint in peers:
            peers.remove(endpoint)

    def dispatch(self, sender: _Endpoint, message: dict[str, object]) -> None:
        loop = asyncio.get_running_loop()
        for endpoint in tuple(self._endpoints.get(sender.name, ())):
            if endpoint is not sender:
                loop.call_soon(_deliver, endpoint, dict(message))


def _deliver(endpoint: _Endpoint, message: dict[str, object]) -> None:
    if not endpoint.closed and endpoint.handler is not None:
        endpoint.handler(message)


class LocalBroadcastAdapter:
    """Publish confirmed inserts/deletes to sibling contexts, fire-and-forget."""

    def __init__(self, endpoint: BroadcastEndpoint) -> None:
        self._endpoint = endpoint
        self._handler: BroadcastHandler | None = None
        self._closed = False

    def publish(self, event: Event) -> None:
        if self._closed:
            log.debug("Broadcast channel closed; not publishing %s", type(event).__name__)
            return
        match event:
            case Inserted(record=record):
                message = InsertMessage(bookmark=RecordPayload.from_record(record))
            case Deleted(id=record_id):
                message = DeleteMessage(id=record_id)
            case Snapshot():
                raise ValueError("Snapshots are not broadcast")
        self._endpoint.post_message(message.model_dump(mode="json"))
        log.debug("Broadcast %s", message.type)

    def request_refetch(self) -> None:
        if self._closed:
            return
        self._endpoint.post_message(RefetchMessage().model_dump(mode="json"))

    def subscribe(self, handler: BroadcastHandler) -> None:
        self._handler = handler
        self._endpoint.set_handler(self._receive)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._handler = None
        self._endpoint.set_handler(None)
        self._endpoint.close()

    def _receive(self, payload: Mapping[str, object]) -> None:
        try:
            message = _MESSAGE_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            log.warning("Ignoring malformed broadcast message: %s", exc)
            return

        log.debug("Received broadcast %s", message.type)
        if self._handler is None:
            return
        match message:
            case InsertMessage(bookmark=bookmark):
                self._handler(Inserted(bookmark.to_record()))
            case DeleteMessage(id=record_id):
                self._handler(Deleted(record_id))
            case RefetchMessage():
                self._handler(RefetchRequested())
