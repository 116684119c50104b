"""SQLAlchemy-backed record store."""

from __future__ import annotations

from .mappings import bookmark_table, create_all_tables, metadata
from .store import SqlAlchemyRecordStore, build_engine

__all__ = [
    "SqlAlchemyRecordStore",
    "bookmark_table",
    "build_engine",
    "create_all_tables",
    "metadata",
]
