"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from schemas.validators import validate_and_normalize_tags, validate_http_url, validate_title
from services.summary_service import is_fallback_summary


class BookmarkCreate(BaseModel):
    """Schema for saving a new bookmark. Title, favicon and summary are fetched."""

    url: str
    tags: list[str] = []

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        return validate_http_url(v)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Normalize and validate tags."""
        return validate_and_normalize_tags(v)


class BookmarkUpdate(BaseModel):
    """Schema for editing a bookmark. Omitted (or null) fields are left unchanged."""

    title: str | None = None
    tags: list[str] | None = None

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str | None) -> str | None:
        """Trim and length-check the title if provided."""
        return validate_title(v)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        """Normalize and validate tags if provided."""
        if v is None:
            return None
        return validate_and_normalize_tags(v)


class BookmarkReorder(BaseModel):
    """Schema for a manual reorder: every bookmark id of the user, in display order."""

    model_config = ConfigDict(populate_by_name=True)

    bookmark_ids: list[int] = Field(alias="bookmarkIds")


class BookmarkResponse(BaseModel):
    """Schema for bookmark responses (camelCase on the wire)."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    title: str
    url: str
    favicon: str | None
    summary: str | None
    tags: list[str]
    order: int
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    user_id: int = Field(alias="userId")

    @computed_field(alias="summaryIsFallback")
    @property
    def summary_is_fallback(self) -> bool:
        """Whether the stored summary is a placeholder worth refreshing."""
        return is_fallback_summary(self.summary)


class BookmarkEnvelope(BaseModel):
    """Single bookmark response body."""

    bookmark: BookmarkResponse


class BookmarkSummaryResponse(BaseModel):
    """Response body for a summary refresh."""

    bookmark: BookmarkResponse
    message: str


class BookmarkListResponse(BaseModel):
    """List response body, ordered by the manual `order` field."""

    bookmarks: list[BookmarkResponse]
