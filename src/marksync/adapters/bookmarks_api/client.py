"""HTTP client for the bookmarks API."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import TypeAdapter, ValidationError

from marksync.adapters.http_resilience import ResilientClient
from marksync.adapters.schema import RecordPayload
from marksync.config.store import BOOKMARKS_API_PATH, RecordStoreConfig, get_record_store_config
from marksync.domain.errors import (
    InvalidCommandError,
    StoreUnavailableError,
    UnauthorizedError,
)

from .schema import CreateRequest, DeleteResponse, ErrorPayload

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from marksync.config.http_resilience import ResilienceConfig
    from marksync.domain.model import Record
    from marksync.domain.ports import RecordStore

log = getLogger(__name__)

_RECORD_LIST: TypeAdapter[list[RecordPayload]] = TypeAdapter(list[RecordPayload])


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpRecordStore:
    """``RecordStore`` over ``GET/POST/DELETE /api/bookmarks``.

    The server derives the owner from the bearer token; a returned row owned by
    anyone other than the requested owner is treated as an identity mismatch.
    Only ``GET`` is ever retried (see ``RetryPolicy.allowed_methods``).
    """

    config: RecordStoreConfig = field(default_factory=get_record_store_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    async def create(self, owner_id: str, title: str, url: str) -> Record:
        body = CreateRequest(title=title, url=url).model_dump()
        response = await self._perform("POST", json=body)
        self._raise_for_status(response)
        record = self._parse(RecordPayload, response).to_record()
        self._check_owner(record.owner, owner_id)
        return record

    async def remove(self, record_id: str, owner_id: str) -> int:
        _ = owner_id
        response = await self._perform("DELETE", params={"id": record_id})
        if response.status_code == httpx.codes.NOT_FOUND and _is_api_error(response):
            return 0
        self._raise_for_status(response)
        confirmation = self._parse(DeleteResponse, response)
        return 1 if confirmation.success and confirmation.deleted_id == record_id else 0

    async def list(self, owner_id: str) -> Sequence[Record]:
        response = await self._perform("GET")
        self._raise_for_status(response)
        try:
            payloads = _RECORD_LIST.validate_python(response.json())
        except (ValueError, ValidationError) as exc:
            raise StoreUnavailableError("Malformed bookmark list payload") from exc
        records = [payload.to_record() for payload in payloads]
        for record in records:
            self._check_owner(record.owner, owner_id)
        return records

    async def _perform(
        self,
        method: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, object] | None = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.config.access_token}"}
        try:
            async with self.client_factory(self.config.resilience) as client:
                return await client.request(
                    method,
                    BOOKMARKS_API_PATH,
                    params=params,
                    json=json,
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            log.error("Bookmarks API %s failed: %s", method, exc)
            raise StoreUnavailableError(f"Bookmarks API unreachable: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if status < httpx.codes.BAD_REQUEST:
            return

        message = _error_message(response)
        if status in {httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN}:
            raise UnauthorizedError(message)
        if status == httpx.codes.BAD_REQUEST:
            raise InvalidCommandError(message)
        log.error("Bookmarks API error %s: %s", status, message)
        raise StoreUnavailableError(message, status_code=status)

    @staticmethod
    def _parse[TModel: (RecordPayload, DeleteResponse)](
        model: type[TModel], response: httpx.Response
    ) -> TModel:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise StoreUnavailableError(f"Malformed {model.__name__} payload") from exc

    @staticmethod
    def _check_owner(actual: str, expected: str) -> None:
        if actual != expected:
            raise UnauthorizedError(f"Authenticated identity does not match owner {expected}")


def _is_api_error(response: httpx.Response) -> bool:
    # a 404 without the API error body comes from routing, not from a missing row
    try:
        ErrorPayload.model_validate(response.json())
    except (ValueError, ValidationError):
        return False
    return True


def _error_message(response: httpx.Response) -> str:
    try:
        return ErrorPayload.model_validate(response.json()).error
    except (ValueError, ValidationError):
        return f"HTTP {response.status_code}"


if TYPE_CHECKING:
    _store_check: RecordStore = HttpRecordStore()
