"""Domain entities for Bookhive."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID


@dataclass
class User:
    id: UUID
    email: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Review:
    reviewer_id: str
    rating: int
    comment: str


@dataclass
class Book:
    """A catalog book with its denormalized rating aggregate.

    ``rating_count``, ``rating_sum``, ``rating_avg`` and ``has_reviews`` are
    derived from ``reviews`` by the store pipeline and never written directly.
    """

    id: UUID
    key: str
    title: str
    author: list[str] = field(default_factory=list)
    publication_year: Optional[int] = None
    cover_asset: Optional[str] = None
    reviews: list[Review] = field(default_factory=list)
    rating_count: int = 0
    rating_sum: int = 0
    rating_avg: Optional[float] = None
    has_reviews: bool = False
    title_tokens: list[str] = field(default_factory=list)
    author_tokens: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class NewBook:
    """A validated candidate ready to be inserted with empty aggregates."""

    key: str
    title: str
    author: list[str] = field(default_factory=list)
    publication_year: Optional[int] = None
    title_tokens: list[str] = field(default_factory=list)
    author_tokens: list[str] = field(default_factory=list)


@dataclass
class BookView:
    """Display projection of a book, optionally annotated for one user.

    ``in_library`` is ``None`` for anonymous callers and is never persisted.
    """

    id: UUID
    key: str
    title: str
    author: list[str] = field(default_factory=list)
    publication_year: Optional[int] = None
    cover_asset: Optional[str] = None
    rating_count: int = 0
    rating_avg: Optional[float] = None
    has_reviews: bool = False
    in_library: Optional[bool] = None


@dataclass
class Library:
    user_id: UUID
    book_ids: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class SearchHistory:
    user_id: UUID
    queries: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ExternalBookRef:
    """A search-provider hit, as returned before any validation."""

    external_key: Optional[str]
    title: Optional[str]
    authors: list[str] = field(default_factory=list)
    publication_year: Optional[int] = None
    cover_url: Optional[str] = None
