"""Bookshelf endpoints: site registration, book sync and public listing.

Handlers are plain functions; FastAPI runs them in its threadpool so the
synchronous SQLAlchemy session never blocks the event loop.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from authorkit.core.dependencies import get_db_session, json_body
from authorkit.core.rate_limit import BOOKSHELF_READ_POLICY, BOOKSHELF_WRITE_POLICY, rate_limit
from authorkit.core.validation import ensure_valid
from authorkit.schemas.bookshelf import BooksResponse, KeepaliveResponse
from authorkit.schemas.requests import (
    DEREGISTER_SITE_SCHEMA,
    REGISTER_SITE_SCHEMA,
    REMOVE_BOOK_SCHEMA,
    SYNC_BOOK_SCHEMA,
)
from authorkit.services.bookshelf_service import BookQuery, BookshelfRepository

router = APIRouter(prefix="/bookshelf", tags=["Bookshelf"])

Payload = Annotated[dict[str, Any], Depends(json_body)]
DbSession = Annotated[Session, Depends(get_db_session)]

_writes = [Depends(rate_limit(BOOKSHELF_WRITE_POLICY))]


@router.post("/register", dependencies=_writes)
def register_site(payload: Payload, session: DbSession) -> dict[str, Any]:
    data = ensure_valid(payload, REGISTER_SITE_SCHEMA)
    site = BookshelfRepository(session).register_site(data["site_url"], data["site_name"])
    return {
        "success": True,
        "site_id": site.id,
        "message": "Site registered successfully",
    }


@router.post("/deregister", dependencies=_writes)
def deregister_site(payload: Payload, session: DbSession) -> dict[str, Any]:
    """Remove a site's books from the shared catalogue and mark it inactive."""
    data = ensure_valid(payload, DEREGISTER_SITE_SCHEMA)
    removed = BookshelfRepository(session).deregister_site(data["site_url"])
    return {
        "success": True,
        "books_removed": removed,
        "message": f"Site deregistered. {removed} book(s) removed.",
    }


@router.post("/sync", dependencies=_writes)
def sync_book(payload: Payload, session: DbSession) -> dict[str, Any]:
    """Upsert one book; genre, format and category lists come from the raw body."""
    data = ensure_valid(payload, SYNC_BOOK_SCHEMA)
    book = BookshelfRepository(session).sync_book(data, payload)
    return {
        "success": True,
        "book_id": book.id,
        "message": "Book synced successfully",
    }


@router.post("/remove", dependencies=_writes)
def remove_book(payload: Payload, session: DbSession) -> dict[str, Any]:
    data = ensure_valid(payload, REMOVE_BOOK_SCHEMA)
    BookshelfRepository(session).remove_book(data["site_url"], data["book_post_id"])
    return {"success": True, "message": "Book removed successfully"}


@router.get(
    "/books",
    response_model=BooksResponse,
    dependencies=[Depends(rate_limit(BOOKSHELF_READ_POLICY))],
)
def list_books(
    session: DbSession,
    genre: Annotated[str | None, Query(max_length=100)] = None,
    search: Annotated[str | None, Query(max_length=200)] = None,
    page: str | None = None,
    limit: str | None = None,
    sort: str | None = None,
) -> BooksResponse:
    """List catalogue books with filtering, sorting and pagination.

    ``page`` and ``limit`` are parsed leniently: malformed values fall back to
    the defaults and out-of-range values are clamped (limit 1..100).
    """
    query = BookQuery.from_params(genre=genre, search=search, page=page, limit=limit, sort=sort)
    return BookshelfRepository(session).list_books(query)


@router.get("/keepalive", response_model=KeepaliveResponse)
def keepalive(session: DbSession) -> KeepaliveResponse:
    """Touch the database so hosted free tiers do not pause it."""
    return KeepaliveResponse(
        timestamp=datetime.now(timezone.utc),
        books_count=BookshelfRepository(session).count_books(),
    )
