"""Bookmark CRUD, reorder, and summary refresh endpoints."""
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user, get_summary_pipeline
from schemas.auth import MessageResponse
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkEnvelope,
    BookmarkListResponse,
    BookmarkReorder,
    BookmarkResponse,
    BookmarkSummaryResponse,
    BookmarkUpdate,
)
from schemas.validators import validate_and_normalize_tags
from services import bookmark_service
from services.exceptions import BookmarkNotFoundError, DuplicateUrlError, ReorderMismatchError
from services.summary_service import SummaryPipeline
from services.token_service import SessionClaims

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bookmark not found")


@router.get("", response_model=BookmarkListResponse)
async def list_bookmarks(
    q: str | None = Query(default=None, description="Search query (matches title, url, summary)"),
    tags: list[str] = Query(default=[], description="Filter by tags"),
    tag_match: Literal["all", "any"] = Query(default="all", description="Tag matching mode: 'all' (AND) or 'any' (OR)"),  # noqa: E501
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """
    List the current user's bookmarks in manual display order.

    - **q**: Text search across title, url, and summary (case-insensitive)
    - **tags**: Filter by one or more tags (normalized to lowercase)
    - **tag_match**: 'all' requires bookmark to have ALL specified tags, 'any' requires ANY tag
    """
    try:
        normalized_tags = validate_and_normalize_tags(tags) if tags else None
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    bookmarks = await bookmark_service.list_bookmarks(
        db,
        current_user.user_id,
        query=q,
        tags=normalized_tags,
        tag_match=tag_match,
    )
    return BookmarkListResponse(
        bookmarks=[BookmarkResponse.model_validate(b) for b in bookmarks],
    )


@router.post("", response_model=BookmarkEnvelope, status_code=status.HTTP_201_CREATED)
async def create_bookmark(
    data: BookmarkCreate,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    summary_pipeline: SummaryPipeline = Depends(get_summary_pipeline),
) -> BookmarkEnvelope:
    """Save a URL. Title, favicon and summary are fetched before responding."""
    try:
        bookmark = await bookmark_service.create_bookmark(
            db, current_user.user_id, data, summary_pipeline,
        )
    except DuplicateUrlError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bookmark already exists",
        )
    return BookmarkEnvelope(bookmark=BookmarkResponse.model_validate(bookmark))


# Declared before /{bookmark_id} so "reorder" is never parsed as an id
@router.put("/reorder", response_model=MessageResponse)
async def reorder_bookmarks(
    data: BookmarkReorder,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Persist a new manual order. The body must list every bookmark exactly once."""
    try:
        await bookmark_service.reorder_bookmarks(db, current_user.user_id, data.bookmark_ids)
    except ReorderMismatchError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Some bookmarks not found",
        )
    return MessageResponse(message="Bookmarks reordered successfully")


@router.get("/{bookmark_id}", response_model=BookmarkEnvelope)
async def get_bookmark(
    bookmark_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkEnvelope:
    """Get a single bookmark by ID."""
    bookmark = await bookmark_service.get_bookmark(db, current_user.user_id, bookmark_id)
    if bookmark is None:
        raise _not_found()
    return BookmarkEnvelope(bookmark=BookmarkResponse.model_validate(bookmark))


@router.put("/{bookmark_id}", response_model=BookmarkEnvelope)
async def update_bookmark(
    bookmark_id: int,
    data: BookmarkUpdate,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkEnvelope:
    """Edit a bookmark's title and/or tags."""
    try:
        bookmark = await bookmark_service.update_bookmark(
            db, current_user.user_id, bookmark_id, data,
        )
    except BookmarkNotFoundError:
        raise _not_found()
    return BookmarkEnvelope(bookmark=BookmarkResponse.model_validate(bookmark))


@router.delete("/{bookmark_id}", response_model=MessageResponse)
async def delete_bookmark(
    bookmark_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Permanently delete a bookmark."""
    try:
        await bookmark_service.delete_bookmark(db, current_user.user_id, bookmark_id)
    except BookmarkNotFoundError:
        raise _not_found()
    return MessageResponse(message="Bookmark deleted successfully")


@router.post("/{bookmark_id}/summary", response_model=BookmarkSummaryResponse)
async def refresh_summary(
    bookmark_id: int,
    current_user: SessionClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    summary_pipeline: SummaryPipeline = Depends(get_summary_pipeline),
) -> BookmarkSummaryResponse:
    """Regenerate the summary, typically after a fallback was stored."""
    try:
        bookmark = await bookmark_service.refresh_summary(
            db, current_user.user_id, bookmark_id, summary_pipeline,
        )
    except BookmarkNotFoundError:
        raise _not_found()
    return BookmarkSummaryResponse(
        bookmark=BookmarkResponse.model_validate(bookmark),
        message="Summary refreshed successfully",
    )
