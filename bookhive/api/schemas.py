"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class UserCreateRequest(BaseModel):
    email: EmailStr


class UserResponse(BaseModel):
    id: UUID
    email: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------
class BookViewResponse(BaseModel):
    """Summary projection used by search and listing endpoints."""

    id: UUID
    key: str
    title: str
    author: list[str]
    publication_year: Optional[int] = None
    cover_asset: Optional[str] = None
    rating_count: int
    rating_avg: Optional[float] = None
    has_reviews: bool
    in_library: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)


class BookListResponse(BaseModel):
    books: list[BookViewResponse]
    page: int
    limit: int


class ReviewResponse(BaseModel):
    reviewer_id: str
    rating: int
    comment: str

    model_config = ConfigDict(from_attributes=True)


class BookResponse(BaseModel):
    id: UUID
    key: str
    title: str
    author: list[str]
    publication_year: Optional[int] = None
    cover_asset: Optional[str] = None
    reviews: list[ReviewResponse]
    rating_count: int
    rating_sum: int
    rating_avg: Optional[float] = None
    has_reviews: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
class ReviewCreateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5, strict=True)
    comment: str = Field("", max_length=5000)


# ---------------------------------------------------------------------------
# Search history
# ---------------------------------------------------------------------------
class SearchHistoryResponse(BaseModel):
    queries: list[str]
