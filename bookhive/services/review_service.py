"""Review service with business logic."""

import logging
from uuid import UUID

from bookhive.domain.entities import Book, Review
from bookhive.domain.errors import NotFoundError, ValidationError
from bookhive.domain.repositories import IBookRepository
from bookhive.domain.services import IReviewService
from bookhive.services.invalidation import CacheInvalidationCoordinator

logger = logging.getLogger(__name__)


class ReviewService(IReviewService):
    """Appends reviews and keeps the book's rating aggregate in step."""

    def __init__(
        self,
        book_repository: IBookRepository,
        invalidation: CacheInvalidationCoordinator,
    ):
        self.book_repository = book_repository
        self.invalidation = invalidation

    async def add_review(
        self, book_id: UUID, reviewer_id: UUID, rating: int, comment: str
    ) -> Book:
        """Append a review to a book.

        The append and the recomputation of ``rating_count``, ``rating_sum``,
        ``rating_avg`` and ``has_reviews`` happen in a single store-side
        transform, so no reader sees a review without its aggregate and
        concurrent reviews never count from a stale total.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be an integer between 1 and 5")
        if not isinstance(comment, str):
            raise ValidationError("Comment must be a string")

        review = Review(reviewer_id=str(reviewer_id), rating=rating, comment=comment.strip())
        book = await self.book_repository.append_review(book_id, review)
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")

        logger.info(
            "Review added to book %s by %s (count=%d, avg=%s)",
            book_id, reviewer_id, book.rating_count, book.rating_avg,
        )
        await self.invalidation.review_added(book_id)
        return book
