"""Repository implementations on top of :class:`DocumentCollection`."""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import Text, cast

from bookhive.domain.entities import (
    Book,
    BookView,
    Library,
    NewBook,
    Review,
    SearchHistory,
    User,
)
from bookhive.domain.repositories import (
    IBookRepository,
    ILibraryRepository,
    ISearchHistoryRepository,
    IUserRepository,
)
from bookhive.domain.tokenizer import normalize
from bookhive.infrastructure.database.collection import DocumentCollection
from bookhive.infrastructure.database.models import (
    BookModel,
    LibraryModel,
    SearchHistoryModel,
    UserModel,
)
from bookhive.infrastructure.database.pipeline import (
    Document,
    Stage,
    list_field,
    set_default,
)

BOOK_VIEW_FIELDS = (
    "id",
    "key",
    "title",
    "author",
    "publication_year",
    "cover_asset",
    "rating_count",
    "rating_avg",
    "has_reviews",
)


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------
def append_review(review: Review) -> Stage:
    entry = {"reviewer_id": review.reviewer_id, "rating": review.rating, "comment": review.comment}

    def append_review(doc: Document) -> Document:
        return {**doc, "reviews": [*list_field(doc, "reviews"), entry]}

    return append_review


def recompute_rating(doc: Document) -> Document:
    """Derive the whole rating aggregate from the reviews in ``doc``."""
    ratings = [review["rating"] for review in list_field(doc, "reviews")]
    count = len(ratings)
    total = sum(ratings)
    return {
        **doc,
        "rating_count": count,
        "rating_sum": total,
        "rating_avg": total / count if count else None,
        "has_reviews": count > 0,
    }


def push_recent(query: str, limit: int) -> Stage:
    def push_recent(doc: Document) -> Document:
        recent: list[str] = []
        for candidate in [query, *list_field(doc, "queries")]:
            if candidate not in recent:
                recent.append(candidate)
        return {**doc, "queries": recent[:limit]}

    return push_recent


def add_to_set(field: str, value: Any) -> Stage:
    def add_to_set(doc: Document) -> Document:
        values = list_field(doc, field)
        if value not in values:
            values.append(value)
        return {**doc, field: values}

    return add_to_set


def pull(field: str, value: Any) -> Stage:
    def pull(doc: Document) -> Document:
        return {**doc, field: [item for item in list_field(doc, field) if item != value]}

    return pull


# ---------------------------------------------------------------------------
# User Repository
# ---------------------------------------------------------------------------
class UserRepository(IUserRepository):

    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def create(self, email: str) -> User:
        doc = await self.collection.insert_one(
            {"email": email.strip(), "email_normalized": normalize(email)}
        )
        return self._to_entity(doc)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        doc = await self.collection.find_one([UserModel.id == user_id])
        return self._to_entity(doc) if doc else None

    @staticmethod
    def _to_entity(doc: Document) -> User:
        return User(
            id=doc["id"],
            email=doc["email"],
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


# ---------------------------------------------------------------------------
# Book Repository
# ---------------------------------------------------------------------------
class BookRepository(IBookRepository):

    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def create(self, book: NewBook) -> Book:
        return self._to_entity(await self.collection.insert_one(self._new_document(book)))

    async def create_many(self, books: list[NewBook]) -> list[Book]:
        docs = await self.collection.insert_many([self._new_document(book) for book in books])
        return [self._to_entity(doc) for doc in docs]

    async def get_by_id(self, book_id: UUID) -> Optional[Book]:
        doc = await self.collection.find_one([BookModel.id == book_id])
        return self._to_entity(doc) if doc else None

    async def find_views_by_keys(self, keys: list[str]) -> list[BookView]:
        normalized = sorted({normalize(key) for key in keys})
        if not normalized:
            return []
        docs = await self.collection.find(
            [BookModel.key_normalized.in_(normalized)], projection=BOOK_VIEW_FIELDS
        )
        return [self._to_view(doc) for doc in docs]

    async def find_views_by_ids(self, book_ids: list[UUID]) -> list[BookView]:
        if not book_ids:
            return []
        docs = await self.collection.find(
            [BookModel.id.in_(book_ids)],
            projection=BOOK_VIEW_FIELDS,
            order_by=[BookModel.title, BookModel.id],
        )
        return [self._to_view(doc) for doc in docs]

    async def search(
        self,
        tokens: list[str],
        has_reviews: Optional[bool] = None,
        min_rating: Optional[float] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> list[BookView]:
        # Tokens are [a-z0-9]+ so they need no LIKE escaping.
        where = [BookModel.token_index.like(f"% {token}%") for token in tokens]
        if has_reviews is not None:
            where.append(BookModel.has_reviews.is_(has_reviews))
        if min_rating is not None:
            where.append(BookModel.rating_avg >= min_rating)
        docs = await self.collection.find(
            where,
            projection=BOOK_VIEW_FIELDS,
            order_by=[BookModel.title, BookModel.id],
            skip=skip,
            limit=limit,
        )
        return [self._to_view(doc) for doc in docs]

    async def append_review(self, book_id: UUID, review: Review) -> Optional[Book]:
        doc = await self.collection.find_one_and_update(
            [BookModel.id == book_id],
            [append_review(review), recompute_rating],
        )
        return self._to_entity(doc) if doc else None

    async def set_cover(self, book_id: UUID, cover_asset: str) -> bool:
        result = await self.collection.update_one(
            [BookModel.id == book_id], {"cover_asset": cover_asset}
        )
        return result.matched_count == 1

    @staticmethod
    def _new_document(book: NewBook) -> Document:
        return {
            "key": book.key,
            "key_normalized": normalize(book.key),
            "title": book.title,
            "author": list(book.author),
            "publication_year": book.publication_year,
            "cover_asset": None,
            "reviews": [],
            "rating_count": 0,
            "rating_sum": 0,
            "rating_avg": None,
            "has_reviews": False,
            "title_tokens": list(book.title_tokens),
            "author_tokens": list(book.author_tokens),
            "token_index": " " + " ".join([*book.title_tokens, *book.author_tokens]) + " ",
        }

    @staticmethod
    def _to_view(doc: Document) -> BookView:
        return BookView(
            id=doc["id"],
            key=doc["key"],
            title=doc["title"],
            author=list(doc.get("author") or []),
            publication_year=doc.get("publication_year"),
            cover_asset=doc.get("cover_asset"),
            rating_count=doc.get("rating_count") or 0,
            rating_avg=doc.get("rating_avg"),
            has_reviews=bool(doc.get("has_reviews")),
        )

    @staticmethod
    def _to_entity(doc: Document) -> Book:
        return Book(
            id=doc["id"],
            key=doc["key"],
            title=doc["title"],
            author=list(doc.get("author") or []),
            publication_year=doc.get("publication_year"),
            cover_asset=doc.get("cover_asset"),
            reviews=[Review(**review) for review in doc.get("reviews") or []],
            rating_count=doc.get("rating_count") or 0,
            rating_sum=doc.get("rating_sum") or 0,
            rating_avg=doc.get("rating_avg"),
            has_reviews=bool(doc.get("has_reviews")),
            title_tokens=list(doc.get("title_tokens") or []),
            author_tokens=list(doc.get("author_tokens") or []),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


# ---------------------------------------------------------------------------
# Library Repository
# ---------------------------------------------------------------------------
class LibraryRepository(ILibraryRepository):

    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def get(self, user_id: UUID) -> Optional[Library]:
        doc = await self.collection.find_one([LibraryModel.user_id == user_id])
        return self._to_entity(doc) if doc else None

    async def add_book(self, user_id: UUID, book_id: UUID) -> Library:
        doc = await self.collection.find_one_and_update(
            [LibraryModel.user_id == user_id],
            [set_default("user_id", user_id), add_to_set("books", str(book_id))],
            upsert=True,
        )
        return self._to_entity(doc)

    async def remove_book(self, user_id: UUID, book_id: UUID) -> Optional[Library]:
        doc = await self.collection.find_one_and_update(
            [LibraryModel.user_id == user_id],
            [pull("books", str(book_id))],
        )
        return self._to_entity(doc) if doc else None

    async def find_user_ids_holding(self, book_id: UUID) -> list[UUID]:
        # Book ids are stored as quoted UUID strings inside the JSON array.
        docs = await self.collection.find(
            [cast(LibraryModel.books, Text).like(f'%"{book_id}"%')],
            projection=("user_id",),
        )
        return [doc["user_id"] for doc in docs]

    @staticmethod
    def _to_entity(doc: Document) -> Library:
        return Library(
            user_id=doc["user_id"],
            book_ids=list(doc.get("books") or []),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


# ---------------------------------------------------------------------------
# Search History Repository
# ---------------------------------------------------------------------------
class SearchHistoryRepository(ISearchHistoryRepository):

    def __init__(self, collection: DocumentCollection):
        self.collection = collection

    async def get(self, user_id: UUID) -> Optional[SearchHistory]:
        doc = await self.collection.find_one([SearchHistoryModel.user_id == user_id])
        return self._to_entity(doc) if doc else None

    async def push_query(self, user_id: UUID, query: str, limit: int) -> SearchHistory:
        doc = await self.collection.find_one_and_update(
            [SearchHistoryModel.user_id == user_id],
            [push_recent(query, limit), set_default("user_id", user_id)],
            upsert=True,
        )
        return self._to_entity(doc)

    @staticmethod
    def _to_entity(doc: Document) -> SearchHistory:
        return SearchHistory(
            user_id=doc["user_id"],
            queries=list(doc.get("queries") or []),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )
