from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from marksync.adapters.broadcast import BroadcastDomain
from marksync.adapters.change_stream import InMemoryChangeStream
from marksync.adapters.sqlalchemy import SqlAlchemyRecordStore, build_engine
from marksync.config.sync import SyncConfig
from marksync.domain.reconciliation import ReconciliationEngine
from tests.helpers.records import OWNER, StepClock

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


class IdentityHolder:
    """Mutable stand-in for the signed-in user of the store."""

    def __init__(self, user_id: str | None = OWNER) -> None:
        self.user_id = user_id

    def __call__(self) -> str | None:
        return self.user_id


@pytest.fixture
def engine() -> ReconciliationEngine:
    return ReconciliationEngine()


@pytest.fixture
def identity() -> IdentityHolder:
    return IdentityHolder()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = build_engine("sqlite+pysqlite:///:memory:")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def change_stream() -> InMemoryChangeStream:
    return InMemoryChangeStream()


@pytest.fixture
def sqlite_store(
    sqlite_engine: Engine,
    identity: IdentityHolder,
    change_stream: InMemoryChangeStream,
) -> SqlAlchemyRecordStore:
    return SqlAlchemyRecordStore(
        sqlite_engine,
        identity=identity,
        changes=change_stream,
        clock=StepClock(),
    )


@pytest.fixture
def broadcast_domain() -> BroadcastDomain:
    return BroadcastDomain()


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(teardown_grace_seconds=0.01)
