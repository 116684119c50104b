"""Bookmarks API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

BOOKMARKS_API_PATH = "/api/bookmarks"
DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True, slots=True)
class RecordStoreConfig:
    """Where the bookmarks API lives and how to authenticate against it."""

    base_url: str
    access_token: str
    owner_id: str
    resilience: ResilienceConfig


def get_record_store_config(*, resilience: ResilienceConfig | None = None) -> RecordStoreConfig:
    values = require_env_vars(
        ("MARKSYNC_API_URL", "MARKSYNC_ACCESS_TOKEN", "MARKSYNC_OWNER_ID")
    )
    base_url = values["MARKSYNC_API_URL"].rstrip("/")
    return RecordStoreConfig(
        base_url=base_url,
        access_token=values["MARKSYNC_ACCESS_TOKEN"],
        owner_id=values["MARKSYNC_OWNER_ID"],
        resilience=resilience
        or ResilienceConfig(
            name="bookmarks",
            base_url=base_url,
            timeout_seconds=env_float(
                "MARKSYNC_API_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS, minimum=0.0
            ),
            retry=RetryPolicy(),
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        ),
    )
