"""Repository and collaborator interfaces (ports) for dependency inversion."""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from bookhive.domain.entities import (
    Book,
    BookView,
    ExternalBookRef,
    Library,
    NewBook,
    Review,
    SearchHistory,
    User,
)


class IUserRepository(ABC):

    @abstractmethod
    async def create(self, email: str) -> User:
        """Insert a user. Raises ``ConflictError`` if the email is taken."""
        pass

    @abstractmethod
    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        pass


class IBookRepository(ABC):

    @abstractmethod
    async def create(self, book: NewBook) -> Book:
        """Insert one book. Raises ``ConflictError`` if its key already exists."""
        pass

    @abstractmethod
    async def create_many(self, books: list[NewBook]) -> list[Book]:
        """Insert all books in one transaction, or none of them."""
        pass

    @abstractmethod
    async def get_by_id(self, book_id: UUID) -> Optional[Book]:
        pass

    @abstractmethod
    async def find_views_by_keys(self, keys: list[str]) -> list[BookView]:
        """Display projections of the books whose key matches, ignoring case and accents."""
        pass

    @abstractmethod
    async def find_views_by_ids(self, book_ids: list[UUID]) -> list[BookView]:
        pass

    @abstractmethod
    async def search(
        self,
        tokens: list[str],
        has_reviews: Optional[bool] = None,
        min_rating: Optional[float] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> list[BookView]:
        """Books where every token prefixes some title or author token."""
        pass

    @abstractmethod
    async def append_review(self, book_id: UUID, review: Review) -> Optional[Book]:
        """Append a review and recompute the rating aggregate in one atomic step.

        Returns ``None`` when the book does not exist.
        """
        pass

    @abstractmethod
    async def set_cover(self, book_id: UUID, cover_asset: str) -> bool:
        pass


class ILibraryRepository(ABC):

    @abstractmethod
    async def get(self, user_id: UUID) -> Optional[Library]:
        pass

    @abstractmethod
    async def add_book(self, user_id: UUID, book_id: UUID) -> Library:
        """Add a book id to the user's library, creating the library if needed."""
        pass

    @abstractmethod
    async def remove_book(self, user_id: UUID, book_id: UUID) -> Optional[Library]:
        """Returns ``None`` when the user has no library."""
        pass

    @abstractmethod
    async def find_user_ids_holding(self, book_id: UUID) -> list[UUID]:
        """Users whose library contains ``book_id``."""
        pass


class ISearchHistoryRepository(ABC):

    @abstractmethod
    async def get(self, user_id: UUID) -> Optional[SearchHistory]:
        pass

    @abstractmethod
    async def push_query(self, user_id: UUID, query: str, limit: int) -> SearchHistory:
        """Move ``query`` to the front of the history, dropping duplicates and overflow."""
        pass


class ICacheService(ABC):

    @abstractmethod
    async def get_json(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        pass

    @abstractmethod
    async def invalidate(self, key: str) -> None:
        pass

    @abstractmethod
    async def invalidate_prefix(self, prefix: str) -> None:
        pass


class IStorageService(ABC):

    @abstractmethod
    async def save_file(self, file_content: bytes, filename: str) -> str:
        pass

    @abstractmethod
    async def get_file(self, file_path: str) -> bytes:
        pass


class ISearchProvider(ABC):

    @abstractmethod
    async def search(self, query: str, page: int = 1) -> list[ExternalBookRef]:
        """Idempotent external lookup; entries may lack a key or title."""
        pass


class IAssetFetcher(ABC):

    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """Download ``url``. Raises ``AssetFetchError`` on any failure."""
        pass
