"""Pydantic schemas for bookshelf responses."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class BookCover(BaseModel):
    medium: str | None = None
    large: str | None = None


class BookAuthor(BaseModel):
    name: str | None = None
    bio: str | None = None
    site_url: str


class PurchaseLinks(BaseModel):
    amazon_in: str | None = None
    amazon_com: str | None = None
    other: str | None = None


class BookOut(BaseModel):
    """Public representation of a synced book."""

    id: int
    title: str
    slug: str | None = None
    description: str | None = None
    cover: BookCover
    author: BookAuthor
    genres: list[str] = Field(default_factory=list)
    purchase_links: PurchaseLinks
    formats: list[Any] = Field(default_factory=list)
    rating: float | None = None
    review_count: int | None = None
    publication_date: date | None = None
    synced_at: datetime | None = None


class Pagination(BaseModel):
    page: int = Field(..., ge=1, description="Current page (1-based).")
    limit: int = Field(..., ge=1, le=100, description="Items per page.")
    total: int = Field(..., ge=0, description="Books matching the filters.")
    pages: int = Field(..., ge=0, description="Number of pages for the filters.")


class BookshelfStats(BaseModel):
    total_books: int = Field(..., description="Books in the whole catalogue.")
    total_authors: int = Field(..., description="Distinct sites contributing books.")


class BooksResponse(BaseModel):
    """Paginated catalogue listing."""

    success: bool = True
    books: list[BookOut]
    pagination: Pagination
    stats: BookshelfStats


class KeepaliveResponse(BaseModel):
    success: bool = True
    message: str = "Database keepalive successful"
    timestamp: datetime
    books_count: int
