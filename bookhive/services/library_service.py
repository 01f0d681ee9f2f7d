"""Per-user library membership."""

import logging
from uuid import UUID

from bookhive.domain.entities import BookView
from bookhive.domain.errors import NotFoundError, ValidationError
from bookhive.domain.repositories import IBookRepository, ILibraryRepository
from bookhive.domain.services import ILibraryService
from bookhive.services.invalidation import CacheInvalidationCoordinator

logger = logging.getLogger(__name__)


class LibraryService(ILibraryService):

    def __init__(
        self,
        library_repository: ILibraryRepository,
        book_repository: IBookRepository,
        invalidation: CacheInvalidationCoordinator,
    ):
        self.library_repository = library_repository
        self.book_repository = book_repository
        self.invalidation = invalidation

    async def add_book(self, user_id: UUID, book_id: UUID) -> None:
        """Add a book to the user's library. Adding it twice is a no-op."""
        if await self.book_repository.get_by_id(book_id) is None:
            raise NotFoundError(f"Book {book_id} not found")
        await self.library_repository.add_book(user_id, book_id)
        logger.info("Book %s added to library of %s", book_id, user_id)
        await self.invalidation.library_changed(user_id)

    async def remove_book(self, user_id: UUID, book_id: UUID) -> None:
        library = await self.library_repository.remove_book(user_id, book_id)
        if library is None:
            raise NotFoundError(f"User {user_id} has no library")
        logger.info("Book %s removed from library of %s", book_id, user_id)
        await self.invalidation.library_changed(user_id)

    async def list_books(self, user_id: UUID, page: int = 1, limit: int = 20) -> list[BookView]:
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be >= 1")
        library = await self.library_repository.get(user_id)
        if library is None or not library.book_ids:
            return []

        views = await self.book_repository.find_views_by_ids(
            [UUID(book_id) for book_id in library.book_ids]
        )
        skip = (page - 1) * limit
        page_views = views[skip:skip + limit]
        for view in page_views:
            view.in_library = True
        return page_views
