"""Bookmark data models.

``Bookmark`` is the confidential record: its ``PROTECTED_FIELDS`` hold
envelopes at rest and plaintext in memory. Every other attribute is stored
in the clear so storage can filter on it.
"""
from typing import Optional
from datetime import datetime

from pydantic import BaseModel, Field

PROTECTED_FIELDS = ("title", "url", "description", "image")


class Bookmark(BaseModel):
    """A bookmark as seen by storage (envelopes) or callers (plaintext)."""

    id: str
    user_id: str
    title: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    collection_id: Optional[str] = None
    is_favorite: bool = False
    is_read: bool = False
    tags: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class BookmarkCreate(BaseModel):
    """Plaintext input for a new bookmark."""

    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    collection_id: Optional[str] = None
    favorite: bool = False
    read: bool = False


class BookmarkUpdate(BaseModel):
    """Partial plaintext update.

    ``title`` and ``url`` only change when a non-empty value is given; the
    remaining fields change whenever they are explicitly set, even to None.
    """

    title: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    collection_id: Optional[str] = None
    favorite: Optional[bool] = None
    read: Optional[bool] = None

    def changes(self) -> dict:
        """Return the bookmark attributes this update replaces."""
        given = self.model_dump(exclude_unset=True)
        changes = {}
        for name in ("title", "url"):
            if given.get(name):
                changes[name] = given[name]
        for name in ("description", "image", "collection_id"):
            if name in given:
                changes[name] = given[name]
        if given.get("favorite") is not None:
            changes["is_favorite"] = given["favorite"]
        if given.get("read") is not None:
            changes["is_read"] = given["read"]
        return changes


class BookmarkQuery(BaseModel):
    """Listing filters plus an optional text search over protected fields."""

    search: Optional[str] = None
    tag: Optional[str] = None
    collection_id: Optional[str] = None
    is_favorite: Optional[bool] = None
    is_read: Optional[bool] = None
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)

    @property
    def has_text_search(self) -> bool:
        return bool(self.search)


class BookmarkPage(BaseModel):
    """One page of plaintext bookmarks; ``total`` counts the whole result set."""

    data: list[Bookmark]
    total: int
    limit: int
    offset: int
