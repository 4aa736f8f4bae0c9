"""Bookshelf catalogue: site registration, book sync and public listing."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Mapping

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session, lazyload

from authorkit.db.models import BookshelfBook, BookshelfBookGenre, BookshelfSite
from authorkit.db.session import database_errors
from authorkit.schemas.bookshelf import (
    BookAuthor,
    BookCover,
    BookOut,
    BooksResponse,
    BookshelfStats,
    Pagination,
    PurchaseLinks,
)

logger = logging.getLogger(__name__)

MAX_GENRES_PER_BOOK = 2
MAX_GENRE_SLUG_LENGTH = 100
MAX_RATING = 5.0
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
SORT_OPTIONS = ("latest", "oldest", "title-asc", "title-desc")


def _coerce_int(value: Any, default: int) -> int:
    """Parse a query value leniently; unparseable or zero values fall back to ``default``."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed or default


@dataclass(frozen=True)
class BookQuery:
    """Normalized listing parameters."""

    genre: str | None = None
    search: str | None = None
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    sort: str = "latest"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(
        cls,
        *,
        genre: str | None = None,
        search: str | None = None,
        page: Any = None,
        limit: Any = None,
        sort: str | None = None,
    ) -> "BookQuery":
        """Clamp page to >= 1 and limit to 1..100; unknown sorts become ``latest``."""
        return cls(
            genre=(genre or "").strip() or None,
            search=(search or "").strip() or None,
            page=max(1, _coerce_int(page, 1)),
            limit=min(MAX_PAGE_SIZE, max(1, _coerce_int(limit, DEFAULT_PAGE_SIZE))),
            sort=sort if sort in SORT_OPTIONS else "latest",
        )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _json_list(raw: str | None) -> list[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        return []
    return value if isinstance(value, list) else []


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _parse_rating(value: Any) -> float | None:
    """Round to one decimal; anything outside 0..5 (or not a number) is dropped."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        rating = round(float(value), 1)
    except (TypeError, ValueError):
        return None
    return rating if 0 <= rating <= MAX_RATING else None


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, "")]


def select_genres(raw: Any) -> list[str]:
    """Keep at most two distinct, non-empty genre slugs in submitted order.

    Slugs longer than the column allows are skipped.
    """
    genres: list[str] = []
    for slug in _string_list(raw):
        slug = slug.strip().lower()
        if slug and len(slug) <= MAX_GENRE_SLUG_LENGTH and slug not in genres:
            genres.append(slug)
        if len(genres) == MAX_GENRES_PER_BOOK:
            break
    return genres


def format_book(book: BookshelfBook) -> BookOut:
    return BookOut(
        id=book.id,
        title=book.title,
        slug=book.slug,
        description=book.description,
        cover=BookCover(medium=book.cover_medium, large=book.cover_large),
        author=BookAuthor(name=book.author_name, bio=book.author_bio, site_url=book.site_url),
        genres=[genre.genre_slug for genre in book.genres],
        purchase_links=PurchaseLinks(
            amazon_in=book.purchase_amazon_in,
            amazon_com=book.purchase_amazon_com,
            other=book.purchase_other,
        ),
        formats=_json_list(book.formats),
        rating=book.rating,
        review_count=book.review_count,
        publication_date=book.publication_date,
        synced_at=book.synced_at,
    )


class BookshelfRepository:
    """Queries and mutations of the bookshelf tables within one session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _upsert_site(self, site_url: str, site_name: str, *, touch_registration: bool) -> BookshelfSite:
        site = self._session.scalar(select(BookshelfSite).where(BookshelfSite.site_url == site_url))
        if site is None:
            site = BookshelfSite(site_url=site_url, site_name=site_name, active=True)
            self._session.add(site)
        else:
            site.site_name = site_name
            site.active = True
        if touch_registration:
            site.registered_at = datetime.now(timezone.utc)
        self._session.flush()
        return site

    def register_site(self, site_url: str, site_name: str) -> BookshelfSite:
        """Insert or reactivate a site; idempotent per ``site_url``."""
        with database_errors(self._session, "register_site"):
            site = self._upsert_site(site_url, site_name, touch_registration=True)
            self._session.commit()
        logger.info("bookshelf.site_registered", extra={"site_url": site_url, "site_id": site.id})
        return site

    def deregister_site(self, site_url: str) -> int:
        """Remove every book of ``site_url`` and mark the site inactive.

        Returns:
            Number of books removed.
        """
        with database_errors(self._session, "deregister_site"):
            removed = self._session.scalar(
                select(func.count(BookshelfBook.id)).where(BookshelfBook.site_url == site_url)
            ) or 0
            self._session.execute(delete(BookshelfBook).where(BookshelfBook.site_url == site_url))
            self._session.execute(
                update(BookshelfSite).where(BookshelfSite.site_url == site_url).values(active=False)
            )
            self._session.commit()
        logger.info("bookshelf.site_deregistered", extra={"site_url": site_url, "books_removed": removed})
        return removed

    def sync_book(self, fields: Mapping[str, Any], payload: Mapping[str, Any]) -> BookshelfBook:
        """Upsert a book on ``(site_url, book_post_id)`` and replace its genres.

        Args:
            fields: Validated and sanitized fields, including the nested
                ``cover`` and ``purchase_links`` objects.
            payload: Raw request body, for the list fields and the rating.
        """
        site_url = fields["site_url"]
        cover = fields.get("cover") or {}
        purchase = fields.get("purchase_links") or {}
        values = {
            "title": fields["title"],
            "slug": fields.get("slug") or "",
            "description": fields.get("description") or "",
            "cover_thumbnail": cover.get("thumbnail") or "",
            "cover_medium": cover.get("medium") or "",
            "cover_large": cover.get("large") or "",
            "cover_full": cover.get("full") or "",
            "author_name": fields.get("author") or "",
            "author_bio": fields.get("author_bio") or "",
            "author_website": fields.get("author_website") or "",
            "author_twitter": fields.get("author_twitter") or "",
            "author_instagram": fields.get("author_instagram") or "",
            "purchase_amazon_in": purchase.get("amazon_in") or "",
            "purchase_amazon_com": purchase.get("amazon_com") or "",
            "purchase_other": purchase.get("other") or "",
            "local_categories": json.dumps(_string_list(payload.get("local_categories"))),
            "formats": json.dumps(_string_list(payload.get("formats"))),
            "isbn": fields.get("isbn") or "",
            "rating": _parse_rating(payload.get("rating")),
            "review_count": fields.get("review_count"),
            "publication_date": _parse_date(fields.get("publication_date")),
            "synced_at": datetime.now(timezone.utc),
        }
        genres = select_genres(payload.get("bookshelf_genres"))

        with database_errors(self._session, "sync_book"):
            self._upsert_site(site_url, fields["site_name"], touch_registration=False)

            book = self._session.scalar(
                select(BookshelfBook)
                .options(lazyload(BookshelfBook.genres))
                .where(
                    BookshelfBook.site_url == site_url,
                    BookshelfBook.book_post_id == fields["book_post_id"],
                )
            )
            if book is None:
                book = BookshelfBook(site_url=site_url, book_post_id=fields["book_post_id"], **values)
                self._session.add(book)
            else:
                for name, value in values.items():
                    setattr(book, name, value)
            self._session.flush()

            self._session.execute(delete(BookshelfBookGenre).where(BookshelfBookGenre.book_id == book.id))
            self._session.add_all(BookshelfBookGenre(book_id=book.id, genre_slug=slug) for slug in genres)
            self._session.commit()

        logger.info(
            "bookshelf.book_synced",
            extra={"site_url": site_url, "book_id": book.id, "genres": genres},
        )
        return book

    def remove_book(self, site_url: str, book_post_id: int) -> int:
        """Delete one book; genres cascade. Returns the number of rows removed."""
        with database_errors(self._session, "remove_book"):
            result = self._session.execute(
                delete(BookshelfBook).where(
                    BookshelfBook.site_url == site_url,
                    BookshelfBook.book_post_id == book_post_id,
                )
            )
            self._session.commit()
        logger.info("bookshelf.book_removed", extra={"site_url": site_url, "removed": result.rowcount})
        return result.rowcount or 0

    def count_books(self) -> int:
        with database_errors(self._session, "count_books"):
            return self._session.scalar(select(func.count(BookshelfBook.id))) or 0

    def stats(self) -> BookshelfStats:
        with database_errors(self._session, "stats"):
            total_books, total_authors = self._session.execute(
                select(func.count(BookshelfBook.id), func.count(func.distinct(BookshelfBook.site_url)))
            ).one()
        return BookshelfStats(total_books=total_books or 0, total_authors=total_authors or 0)

    def list_books(self, query: BookQuery) -> BooksResponse:
        """Return one page of books matching ``query`` plus catalogue stats."""
        stmt = select(BookshelfBook)
        if query.genre:
            stmt = stmt.where(BookshelfBook.genres.any(BookshelfBookGenre.genre_slug == query.genre.lower()))
        if query.search:
            pattern = f"%{_escape_like(query.search)}%"
            stmt = stmt.where(
                or_(
                    BookshelfBook.title.ilike(pattern, escape="\\"),
                    BookshelfBook.author_name.ilike(pattern, escape="\\"),
                )
            )

        if query.sort == "oldest":
            ordering = (BookshelfBook.publication_date.asc(), BookshelfBook.id.asc())
        elif query.sort == "title-asc":
            ordering = (BookshelfBook.title.asc(), BookshelfBook.id.asc())
        elif query.sort == "title-desc":
            ordering = (BookshelfBook.title.desc(), BookshelfBook.id.desc())
        else:
            ordering = (BookshelfBook.synced_at.desc(), BookshelfBook.id.desc())

        with database_errors(self._session, "list_books"):
            total = self._session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
            books = self._session.scalars(
                stmt.order_by(*ordering).offset(query.offset).limit(query.limit)
            ).all()

        return BooksResponse(
            books=[format_book(book) for book in books],
            pagination=Pagination(
                page=query.page,
                limit=query.limit,
                total=total,
                pages=math.ceil(total / query.limit),
            ),
            stats=self.stats(),
        )
