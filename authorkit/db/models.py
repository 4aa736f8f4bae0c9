"""ORM models for the bookshelf catalogue and e-mail subscribers."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authorkit.db.session import Base


class BookshelfSite(Base):
    """WordPress site that opted into the bookshelf."""

    __tablename__ = "bookshelf_sites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    site_url: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    site_name: Mapped[str | None] = mapped_column(Text)
    registered_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<BookshelfSite {self.id} {self.site_url} active={self.active}>"


class BookshelfBook(Base):
    """Book synced from a WordPress site."""

    __tablename__ = "bookshelf_books"
    __table_args__ = (UniqueConstraint("site_url", "book_post_id", name="uq_books_site_post"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    site_url: Mapped[str] = mapped_column(
        Text,
        ForeignKey("bookshelf_sites.site_url", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    book_post_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    cover_thumbnail: Mapped[str | None] = mapped_column(Text)
    cover_medium: Mapped[str | None] = mapped_column(Text)
    cover_large: Mapped[str | None] = mapped_column(Text)
    cover_full: Mapped[str | None] = mapped_column(Text)
    author_name: Mapped[str | None] = mapped_column(Text)
    author_bio: Mapped[str | None] = mapped_column(Text)
    author_website: Mapped[str | None] = mapped_column(Text)
    author_twitter: Mapped[str | None] = mapped_column(Text)
    author_instagram: Mapped[str | None] = mapped_column(Text)
    purchase_amazon_in: Mapped[str | None] = mapped_column(Text)
    purchase_amazon_com: Mapped[str | None] = mapped_column(Text)
    purchase_other: Mapped[str | None] = mapped_column(Text)
    # JSON arrays stored as text
    local_categories: Mapped[str | None] = mapped_column(Text)
    formats: Mapped[str | None] = mapped_column(Text)
    isbn: Mapped[str | None] = mapped_column(Text)
    rating: Mapped[float | None] = mapped_column(Numeric(3, 1, asdecimal=False))
    review_count: Mapped[int | None] = mapped_column(Integer)
    publication_date: Mapped[date | None] = mapped_column(Date, index=True)
    synced_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    genres: Mapped[list["BookshelfBookGenre"]] = relationship(
        back_populates="book",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<BookshelfBook {self.id} site={self.site_url} post={self.book_post_id}>"


class BookshelfBookGenre(Base):
    """Genre assignment of a book (at most two per book)."""

    __tablename__ = "bookshelf_book_genres"

    book_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bookshelf_books.id", ondelete="CASCADE"), primary_key=True
    )
    genre_slug: Mapped[str] = mapped_column(String(100), primary_key=True, index=True)

    book: Mapped[BookshelfBook] = relationship(back_populates="genres")


class EmailSubscriber(Base):
    """E-mail captured from a plugin install; unique per (email, site_url)."""

    __tablename__ = "email_subscribers"
    __table_args__ = (UniqueConstraint("email", "site_url", name="unique_email_per_site"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    site_url: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    site_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_login: Mapped[str | None] = mapped_column(String(100))
    user_role: Mapped[str | None] = mapped_column(String(100))
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="free")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    subscribed_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<EmailSubscriber {self.id} site={self.site_url} type={self.type}>"
