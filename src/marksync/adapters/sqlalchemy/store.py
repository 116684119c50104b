"""Local authoritative record store with an owner-only access policy.

Reads and deletes only ever see rows owned by the authenticated identity, and
inserts are rejected unless the row's owner is that identity. Every committed
change is published as a change row; removal rows carry the full previous row
only when ``full_row_on_delete`` is set, otherwise just the primary key.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import create_engine, delete, insert, select

from marksync.adapters.schema import RecordPayload
from marksync.config.storage import get_database_config
from marksync.domain.errors import UnauthorizedError
from marksync.domain.model import Record

from .mappings import bookmark_table, create_all_tables

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine, RowMapping

    from marksync.domain.ports import ChangeRow, RecordStore

type IdentityProvider = Callable[[], str | None]
type Clock = Callable[[], datetime]

log = getLogger(__name__)


class ChangePublisher(Protocol):
    def publish(self, row: ChangeRow) -> None: ...


def build_engine(database_uri: str | None = None) -> Engine:
    """Create an engine for ``database_uri`` (or the configured one) with tables in place."""

    engine = create_engine(database_uri or get_database_config().uri)
    create_all_tables(engine)
    return engine


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _to_record(row: RowMapping) -> Record:
    return Record(
        id=row["id"],
        owner=row["user_id"],
        title=row["title"],
        url=row["url"],
        created_at=row["created_at"],
    )


class SqlAlchemyRecordStore:
    def __init__(
        self,
        engine: Engine,
        *,
        identity: IdentityProvider,
        changes: ChangePublisher | None = None,
        full_row_on_delete: bool = True,
        clock: Clock = _utcnow,
    ) -> None:
        self._engine = engine
        self._identity = identity
        self._changes = changes
        self._full_row_on_delete = full_row_on_delete
        self._clock = clock

    async def create(self, owner_id: str, title: str, url: str) -> Record:
        caller = self._authenticated()
        if caller != owner_id:
            raise UnauthorizedError("New bookmark must be owned by the authenticated user")

        record = Record(
            id=str(uuid.uuid4()),
            owner=owner_id,
            title=title,
            url=url,
            created_at=self._clock(),
        )
        with self._engine.begin() as connection:
            connection.execute(
                insert(bookmark_table).values(
                    id=record.id,
                    user_id=record.owner,
                    title=record.title,
                    url=record.url,
                    created_at=record.created_at,
                )
            )

        self._publish(
            {
                "eventType": "INSERT",
                "new": RecordPayload.from_record(record).model_dump(mode="json"),
                "old": {},
            }
        )
        return record

    async def remove(self, record_id: str, owner_id: str) -> int:
        caller = self._authenticated()
        if caller != owner_id:
            return 0

        with self._engine.begin() as connection:
            row = (
                connection.execute(
                    select(bookmark_table)
                    .where(bookmark_table.c.id == record_id)
                    .where(bookmark_table.c.user_id == caller)
                )
                .mappings()
                .one_or_none()
            )
            if row is None:
                return 0
            result = connection.execute(
                delete(bookmark_table)
                .where(bookmark_table.c.id == record_id)
                .where(bookmark_table.c.user_id == caller)
            )
            affected = result.rowcount

        previous: dict[str, object] = {"id": record_id}
        if self._full_row_on_delete:
            previous = RecordPayload.from_record(_to_record(row)).model_dump(mode="json")
        self._publish({"eventType": "DELETE", "new": {}, "old": previous})
        return affected

    async def list(self, owner_id: str) -> Sequence[Record]:
        caller = self._authenticated()
        stmt = (
            select(bookmark_table)
            .where(bookmark_table.c.user_id == owner_id)
            .where(bookmark_table.c.user_id == caller)
            .order_by(bookmark_table.c.created_at.desc())
        )
        with self._engine.connect() as connection:
            rows = connection.execute(stmt).mappings().all()
        return [_to_record(row) for row in rows]

    def _authenticated(self) -> str:
        caller = self._identity()
        if not caller:
            raise UnauthorizedError("No authenticated identity")
        return caller

    def _publish(self, row: ChangeRow) -> None:
        if self._changes is None:
            return
        log.debug("Publishing %s change row", row.get("eventType"))
        self._changes.publish(row)


if TYPE_CHECKING:
    _store_check: RecordStore = SqlAlchemyRecordStore(
        create_engine("sqlite://"), identity=lambda: None
    )
