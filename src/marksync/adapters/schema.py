"""Pydantic models for bookmark rows as they appear on the wire."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime  # noqa: TC003
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from marksync.domain.model import Record

type RecordPayloadInput = Mapping[str, object] | RecordPayload


class BookmarkBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RecordPayload(BookmarkBaseModel):
    id: str
    user_id: str
    title: str
    url: str
    created_at: datetime

    def to_record(self) -> Record:
        return Record(
            id=self.id,
            owner=self.user_id,
            title=self.title,
            url=self.url,
            created_at=self.created_at,
        )

    @classmethod
    def from_record(cls, record: Record) -> RecordPayload:
        return cls(
            id=record.id,
            user_id=record.owner,
            title=record.title,
            url=record.url,
            created_at=record.created_at,
        )


class PartialRowPayload(BookmarkBaseModel):
    """Row image on a change event; removals may carry only the key."""

    id: str | None = None
    user_id: str | None = None


class ChangeRowPayload(BookmarkBaseModel):
    event_type: Literal["INSERT", "UPDATE", "DELETE"] = Field(alias="eventType")
    new: dict[str, object] = Field(default_factory=dict)
    old: dict[str, object] = Field(default_factory=dict)


def parse_record(payload: RecordPayloadInput) -> Record:
    if isinstance(payload, RecordPayload):
        return payload.to_record()
    return RecordPayload.model_validate(payload).to_record()
