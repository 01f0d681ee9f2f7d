"""Domain-level application service interfaces (ports).

These abstract classes define the contracts that the API layer depends on.
Concrete implementations live in ``bookhive/services/`` and are wired together
by :class:`bookhive.core.context.AppContext`.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from bookhive.domain.entities import Book, BookView, ExternalBookRef


class ICatalogService(ABC):

    @abstractmethod
    async def search(
        self, query: str, page: int = 1, user_id: Optional[UUID] = None
    ) -> list[BookView]:
        """Search the provider, record the query for ``user_id`` and reconcile the hits."""
        pass

    @abstractmethod
    async def reconcile(
        self, candidates: list[ExternalBookRef], user_id: Optional[UUID] = None
    ) -> list[BookView]:
        """Match candidates against stored books and persist the unknown ones.

        Known books are returned as they are stored; duplicate keys never
        reach the caller as an error.
        """
        pass

    @abstractmethod
    async def get_book(self, book_id: UUID) -> Optional[Book]:
        pass

    @abstractmethod
    async def search_local(
        self,
        text: str,
        has_reviews: Optional[bool] = None,
        min_rating: Optional[float] = None,
        page: int = 1,
        limit: int = 20,
    ) -> list[BookView]:
        pass


class IReviewService(ABC):

    @abstractmethod
    async def add_review(
        self, book_id: UUID, reviewer_id: UUID, rating: int, comment: str
    ) -> Book:
        pass


class ILibraryService(ABC):

    @abstractmethod
    async def add_book(self, user_id: UUID, book_id: UUID) -> None:
        pass

    @abstractmethod
    async def remove_book(self, user_id: UUID, book_id: UUID) -> None:
        pass

    @abstractmethod
    async def list_books(self, user_id: UUID, page: int = 1, limit: int = 20) -> list[BookView]:
        pass


class ISearchHistoryService(ABC):

    @abstractmethod
    async def record(self, user_id: UUID, query: str) -> list[str]:
        pass

    @abstractmethod
    async def last_search(self, user_id: UUID) -> list[str]:
        pass
