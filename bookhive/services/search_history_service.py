"""Bounded recent-search history per user."""

import logging
from uuid import UUID

from bookhive.domain.errors import ValidationError
from bookhive.domain.repositories import ISearchHistoryRepository
from bookhive.domain.services import ISearchHistoryService
from bookhive.services.invalidation import CacheInvalidationCoordinator

logger = logging.getLogger(__name__)


class SearchHistoryService(ISearchHistoryService):
    """Keeps the ``limit`` most recent distinct queries, newest first.

    The merge (prepend, de-duplicate, truncate) runs as one store-side
    upsert, so two searches by the same user cannot overwrite each other.
    """

    def __init__(
        self,
        history_repository: ISearchHistoryRepository,
        invalidation: CacheInvalidationCoordinator,
        limit: int = 5,
    ):
        self.history_repository = history_repository
        self.invalidation = invalidation
        self.limit = limit

    async def record(self, user_id: UUID, query: str) -> list[str]:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query must not be empty")
        history = await self.history_repository.push_query(user_id, query, self.limit)
        logger.debug("Search history of %s: %s", user_id, history.queries)
        await self.invalidation.search_recorded(user_id)
        return history.queries

    async def last_search(self, user_id: UUID) -> list[str]:
        history = await self.history_repository.get(user_id)
        return history.queries if history else []
