"""Reconciliation and subscription defaults."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float

DEFAULT_TEARDOWN_GRACE_SECONDS = 0.1
DEFAULT_BROADCAST_CHANNEL = "bookmarks-sync"
DEFAULT_TOPIC_PREFIX = "bookmarks-rt"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    teardown_grace_seconds: float = DEFAULT_TEARDOWN_GRACE_SECONDS
    broadcast_channel: str = DEFAULT_BROADCAST_CHANNEL
    topic_prefix: str = DEFAULT_TOPIC_PREFIX


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        teardown_grace_seconds=env_float(
            "MARKSYNC_TEARDOWN_GRACE_SECONDS", DEFAULT_TEARDOWN_GRACE_SECONDS, minimum=0.0
        ),
    )
