"""Service layer for bookmark operations."""
import asyncio
import logging
from collections.abc import Sequence
from typing import Literal, Protocol

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import TITLE_MAX_LENGTH, Bookmark
from schemas.bookmark import BookmarkCreate, BookmarkUpdate
from services.exceptions import BookmarkNotFoundError, DuplicateUrlError, ReorderMismatchError
from services.url_scraper import fetch_url_metadata

logger = logging.getLogger(__name__)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards (and the escape character) so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Summarizer(Protocol):
    """Anything that turns a URL into summary text without raising."""

    async def summarize(self, url: str) -> str:
        """Return a summary or a fallback sentence."""
        ...


async def _check_url_exists(db: AsyncSession, user_id: int, url: str) -> Bookmark | None:
    """Return the user's bookmark for this exact URL, if any."""
    result = await db.execute(
        select(Bookmark).where(Bookmark.user_id == user_id, Bookmark.url == url),
    )
    return result.scalar_one_or_none()


async def _next_order(db: AsyncSession, user_id: int) -> int:
    """One past the user's current highest order value (1 for the first bookmark)."""
    result = await db.execute(
        select(func.max(Bookmark.order)).where(Bookmark.user_id == user_id),
    )
    current_max = result.scalar_one_or_none()
    return (current_max or 0) + 1


async def list_bookmarks(
    db: AsyncSession,
    user_id: int,
    query: str | None = None,
    tags: list[str] | None = None,
    tag_match: Literal["all", "any"] = "all",
) -> list[Bookmark]:
    """
    List a user's bookmarks in manual display order.

    Args:
        db: Database session.
        user_id: Owner of the bookmarks.
        query: Case-insensitive substring matched against title, url and summary.
        tags: Normalized tags to filter by.
        tag_match: 'all' requires every tag, 'any' requires at least one.
    """
    stmt = select(Bookmark).where(Bookmark.user_id == user_id)

    if query and query.strip():
        pattern = f"%{escape_like(query.strip())}%"
        stmt = stmt.where(
            or_(
                Bookmark.title.ilike(pattern, escape="\\"),
                Bookmark.url.ilike(pattern, escape="\\"),
                Bookmark.summary.ilike(pattern, escape="\\"),
            ),
        )

    if tags:
        # Tags are a JSON array; match the quoted element in its text form
        tags_text = cast(Bookmark.tags, String)
        conditions = [
            tags_text.like(f'%"{escape_like(tag)}"%', escape="\\") for tag in tags
        ]
        stmt = stmt.where(or_(*conditions)) if tag_match == "any" else stmt.where(*conditions)

    stmt = stmt.order_by(Bookmark.order.asc(), Bookmark.id.asc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_bookmark(db: AsyncSession, user_id: int, bookmark_id: int) -> Bookmark | None:
    """Get a bookmark by ID, scoped to its owner."""
    result = await db.execute(
        select(Bookmark).where(Bookmark.id == bookmark_id, Bookmark.user_id == user_id),
    )
    return result.scalar_one_or_none()


async def _get_owned_bookmark(db: AsyncSession, user_id: int, bookmark_id: int) -> Bookmark:
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        raise BookmarkNotFoundError(bookmark_id)
    return bookmark


async def create_bookmark(
    db: AsyncSession,
    user_id: int,
    data: BookmarkCreate,
    summarizer: Summarizer,
) -> Bookmark:
    """
    Save a URL for a user, fetching its metadata and summary.

    The metadata scrape and the summary pipeline are independent and run
    concurrently; creation waits for both. Neither can fail the request: each
    degrades to placeholder values on its own.

    Raises:
        DuplicateUrlError: If the user already saved this URL.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    url = data.url
    if await _check_url_exists(db, user_id, url):
        raise DuplicateUrlError(url)

    metadata, summary = await asyncio.gather(
        fetch_url_metadata(url),
        summarizer.summarize(url),
    )

    bookmark = Bookmark(
        user_id=user_id,
        url=url,
        title=metadata.title[:TITLE_MAX_LENGTH],
        favicon=metadata.favicon,
        summary=summary,
        tags=list(data.tags),
        order=await _next_order(db, user_id),
    )
    db.add(bookmark)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        # Fallback for race condition: unique (user_id, url) constraint
        if "uq_bookmark_user_url" in str(e) or "UNIQUE" in str(e):
            raise DuplicateUrlError(url) from e
        raise
    await db.refresh(bookmark)
    logger.info("bookmark_created", extra={"user_id": user_id, "bookmark_id": bookmark.id})
    return bookmark


async def update_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
    data: BookmarkUpdate,
) -> Bookmark:
    """
    Apply the supplied fields (title and/or tags) to a bookmark.

    Raises:
        BookmarkNotFoundError: If the bookmark is absent or owned by someone else.
    """
    bookmark = await _get_owned_bookmark(db, user_id, bookmark_id)

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "title" in changes:
        bookmark.title = changes["title"]
    if "tags" in changes:
        bookmark.tags = list(changes["tags"])

    if changes:
        await db.flush()
        await db.refresh(bookmark)
    return bookmark


async def delete_bookmark(db: AsyncSession, user_id: int, bookmark_id: int) -> None:
    """
    Permanently delete a bookmark.

    Raises:
        BookmarkNotFoundError: If the bookmark is absent or owned by someone else.
    """
    bookmark = await _get_owned_bookmark(db, user_id, bookmark_id)
    await db.delete(bookmark)
    await db.flush()
    logger.info("bookmark_deleted", extra={"user_id": user_id, "bookmark_id": bookmark_id})


async def reorder_bookmarks(
    db: AsyncSession,
    user_id: int,
    bookmark_ids: Sequence[int],
) -> None:
    """
    Set each bookmark's order to its index in `bookmark_ids`.

    The submission must be exactly the user's full bookmark set: no missing ids,
    no foreign or unknown ids, no duplicates. Anything else is rejected before
    a single row changes.

    Raises:
        ReorderMismatchError: If the ids do not match the user's bookmark set.
    """
    result = await db.execute(select(Bookmark).where(Bookmark.user_id == user_id))
    owned = {bookmark.id: bookmark for bookmark in result.scalars().all()}

    submitted = set(bookmark_ids)
    if len(submitted) != len(bookmark_ids) or submitted != owned.keys():
        raise ReorderMismatchError(expected=len(owned), received=len(bookmark_ids))

    for index, bookmark_id in enumerate(bookmark_ids):
        owned[bookmark_id].order = index
    await db.flush()


async def refresh_summary(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
    summarizer: Summarizer,
) -> Bookmark:
    """
    Rerun the summary pipeline for a bookmark. Title and favicon are untouched.

    Raises:
        BookmarkNotFoundError: If the bookmark is absent or owned by someone else.
    """
    bookmark = await _get_owned_bookmark(db, user_id, bookmark_id)
    bookmark.summary = await summarizer.summarize(bookmark.url)
    await db.flush()
    await db.refresh(bookmark)
    return bookmark
