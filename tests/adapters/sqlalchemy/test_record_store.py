from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select

from marksync.adapters.sqlalchemy import SqlAlchemyRecordStore, bookmark_table
from marksync.domain.errors import UnauthorizedError
from tests.helpers.records import OTHER_OWNER, OWNER, StepClock, settle

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from marksync.adapters.change_stream import InMemoryChangeStream
    from marksync.domain.ports import ChangeRow
    from tests.conftest import IdentityHolder


class _RowLog:
    def __init__(self) -> None:
        self.rows: list[ChangeRow] = []

    def publish(self, row: ChangeRow) -> None:
        self.rows.append(row)


def _count(engine: Engine) -> int:
    with engine.connect() as connection:
        return connection.execute(select(func.count()).select_from(bookmark_table)).scalar_one()


@pytest.mark.asyncio
async def test_create_assigns_id_and_timestamp(sqlite_store: SqlAlchemyRecordStore) -> None:
    first = await sqlite_store.create(OWNER, "First", "https://first.example")
    second = await sqlite_store.create(OWNER, "Second", "https://second.example")

    assert first.id != second.id
    assert first.owner == OWNER
    assert second.created_at > first.created_at
    assert [record.id for record in await sqlite_store.list(OWNER)] == [second.id, first.id]


@pytest.mark.asyncio
async def test_create_for_someone_else_is_refused(
    sqlite_store: SqlAlchemyRecordStore, sqlite_engine: Engine
) -> None:
    with pytest.raises(UnauthorizedError):
        await sqlite_store.create(OTHER_OWNER, "Title", "https://example.com")

    assert _count(sqlite_engine) == 0


@pytest.mark.asyncio
async def test_signed_out_caller_is_refused(
    sqlite_store: SqlAlchemyRecordStore, identity: IdentityHolder
) -> None:
    identity.user_id = None

    with pytest.raises(UnauthorizedError):
        await sqlite_store.list(OWNER)


@pytest.mark.asyncio
async def test_rows_of_other_owners_are_invisible(
    sqlite_store: SqlAlchemyRecordStore, identity: IdentityHolder
) -> None:
    mine = await sqlite_store.create(OWNER, "Mine", "https://mine.example")
    identity.user_id = OTHER_OWNER
    theirs = await sqlite_store.create(OTHER_OWNER, "Theirs", "https://theirs.example")

    assert [record.id for record in await sqlite_store.list(OTHER_OWNER)] == [theirs.id]
    assert await sqlite_store.list(OWNER) == []
    assert await sqlite_store.remove(mine.id, OTHER_OWNER) == 0
    assert await sqlite_store.remove(mine.id, OWNER) == 0

    identity.user_id = OWNER
    assert [record.id for record in await sqlite_store.list(OWNER)] == [mine.id]


@pytest.mark.asyncio
async def test_remove_reports_affected_rows(sqlite_store: SqlAlchemyRecordStore) -> None:
    record = await sqlite_store.create(OWNER, "Title", "https://example.com")

    assert await sqlite_store.remove(record.id, OWNER) == 1
    assert await sqlite_store.remove(record.id, OWNER) == 0
    assert await sqlite_store.list(OWNER) == []


@pytest.mark.asyncio
async def test_change_rows_carry_full_previous_row(
    sqlite_engine: Engine, identity: IdentityHolder
) -> None:
    log = _RowLog()
    store = SqlAlchemyRecordStore(
        sqlite_engine, identity=identity, changes=log, clock=StepClock()
    )

    record = await store.create(OWNER, "Title", "https://example.com")
    await store.remove(record.id, OWNER)

    inserted, deleted = log.rows
    assert inserted["eventType"] == "INSERT"
    assert inserted["new"]["id"] == record.id  # type: ignore[index]
    assert deleted == {
        "eventType": "DELETE",
        "new": {},
        "old": inserted["new"],
    }


@pytest.mark.asyncio
async def test_key_only_removal_rows(sqlite_engine: Engine, identity: IdentityHolder) -> None:
    log = _RowLog()
    store = SqlAlchemyRecordStore(
        sqlite_engine,
        identity=identity,
        changes=log,
        full_row_on_delete=False,
        clock=StepClock(),
    )

    record = await store.create(OWNER, "Title", "https://example.com")
    await store.remove(record.id, OWNER)

    assert log.rows[-1] == {"eventType": "DELETE", "new": {}, "old": {"id": record.id}}


@pytest.mark.asyncio
async def test_committed_changes_reach_the_change_stream(
    sqlite_store: SqlAlchemyRecordStore, change_stream: InMemoryChangeStream
) -> None:
    rows: list[ChangeRow] = []
    await change_stream.subscribe(
        "probe", owner_id=OWNER, on_change=rows.append, on_status=lambda _state: None
    )

    record = await sqlite_store.create(OWNER, "Title", "https://example.com")
    await sqlite_store.remove(record.id, OWNER)
    await settle()

    assert [row["eventType"] for row in rows] == ["INSERT", "DELETE"]
