"""SQLAlchemy database models.

Each table is one document collection. ``version`` backs the optimistic
transform loop in :mod:`bookhive.infrastructure.database.collection`; the
timestamps are stamped by the collection, never by callers.
"""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class DocumentMixin:
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class UserModel(DocumentMixin, Base):
    __tablename__ = "users"

    email = Column(String(255), nullable=False)
    email_normalized = Column(String(255), nullable=False, unique=True, index=True)


class BookModel(DocumentMixin, Base):
    __tablename__ = "books"

    key = Column(String(255), nullable=False)
    key_normalized = Column(String(255), nullable=False, unique=True, index=True)
    title = Column(String(1024), nullable=False)
    author = Column(JSON, nullable=False, default=list)
    publication_year = Column(Integer, nullable=True)
    cover_asset = Column(String(512), nullable=True)
    reviews = Column(JSON, nullable=False, default=list)  # [{reviewer_id, rating, comment}]
    rating_count = Column(Integer, nullable=False, default=0)
    rating_sum = Column(Integer, nullable=False, default=0)
    rating_avg = Column(Float, nullable=True, index=True)
    has_reviews = Column(Boolean, nullable=False, default=False, index=True)
    title_tokens = Column(JSON, nullable=False, default=list)
    author_tokens = Column(JSON, nullable=False, default=list)
    token_index = Column(Text, nullable=False, default="")  # " tok1 tok2 " for prefix LIKE


class LibraryModel(DocumentMixin, Base):
    __tablename__ = "libraries"

    user_id = Column(Uuid, nullable=False, unique=True, index=True)
    books = Column(JSON, nullable=False, default=list)  # book ids as strings


class SearchHistoryModel(DocumentMixin, Base):
    __tablename__ = "search_histories"

    user_id = Column(Uuid, nullable=False, unique=True, index=True)
    queries = Column(JSON, nullable=False, default=list)
