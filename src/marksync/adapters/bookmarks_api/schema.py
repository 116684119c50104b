"""Pydantic models for the bookmarks HTTP API payloads."""

from __future__ import annotations

from pydantic import Field

from marksync.adapters.schema import BookmarkBaseModel


class ErrorPayload(BookmarkBaseModel):
    error: str


class CreateRequest(BookmarkBaseModel):
    title: str
    url: str


class DeleteResponse(BookmarkBaseModel):
    success: bool
    deleted_id: str = Field(alias="deletedId")
