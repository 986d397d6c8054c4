"""Pydantic models for the sync storage wire format."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

BackgroundType = Literal["gradient", "icon", "image", "library"]


class Bookmark(BaseModel):
    """A start-page shortcut.

    Unknown keys are kept so a snapshot round-trips exactly.
    """

    id: str
    title: str
    url: str
    color_from: str = Field(default="", alias="colorFrom")
    color_to: str = Field(default="", alias="colorTo")
    bg_type: BackgroundType = Field(default="gradient", alias="bgType")
    bg_image: str | None = Field(default=None, alias="bgImage")
    icon_key: str | None = Field(default=None, alias="iconKey")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class SyncRecord(BaseModel):
    """Stored record for one hashed PIN."""

    bookmarks: list[dict[str, Any]] | None = None
    settings: dict[str, Any] | None = None
    last_modified: int | None = Field(default=None, alias="lastModified")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def is_empty(self) -> bool:
        return self.bookmarks is None and self.settings is None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class SaveResult(BaseModel):
    """Response of a successful write."""

    success: bool = True
    last_modified: int = Field(alias="lastModified")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SaveRequest(BaseModel):
    """Body of ``POST /api/sync/save``."""

    pin: Any = None
    bookmarks: list[dict[str, Any]] | None = None
    settings: dict[str, Any] | None = None

    model_config = ConfigDict(extra="ignore")

    @property
    def has_data(self) -> bool:
        return self.bookmarks is not None or self.settings is not None


def validate_bookmarks(bookmarks: list[dict[str, Any]]) -> list[Bookmark]:
    """Parse a raw snapshot and check that bookmark ids are unique.

    Raises:
        ValueError: On a malformed entry or a duplicate id.
    """
    parsed = [Bookmark.model_validate(item) for item in bookmarks]
    seen: set[str] = set()
    for bookmark in parsed:
        if bookmark.id in seen:
            msg = f"Duplicate bookmark id: {bookmark.id}"
            raise ValueError(msg)
        seen.add(bookmark.id)
    return parsed
