"""Public interface for the bookmarks HTTP API adapter."""

from __future__ import annotations

from .client import HttpRecordStore
from .schema import CreateRequest, DeleteResponse, ErrorPayload

__all__ = [
    "CreateRequest",
    "DeleteResponse",
    "ErrorPayload",
    "HttpRecordStore",
]
