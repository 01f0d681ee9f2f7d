"""Maps each successful mutation to the cache entries it makes stale.

| Mutation             | Invalidated                                         |
|----------------------|-----------------------------------------------------|
| book inserted        | fetch prefix, the book's key                        |
| cover attached       | fetch prefix, the book's key, holders' listings     |
| review added         | the book's key, holders' listings                   |
| library add / remove | the user's library-listing prefix                   |
| search recorded      | the user's last-search key                          |

"Holders' listings" are the library-listing prefixes of every user whose
library contains the book.

Invalidation runs after the write has committed. A failure is logged and
never turns a successful write into an error; purging twice is harmless.
"""

import logging
from typing import Iterable, Optional
from uuid import UUID

from bookhive.domain.repositories import ICacheService, ILibraryRepository
from bookhive.services.caching import (
    FETCH_PREFIX,
    book_key,
    last_search_key,
    library_prefix,
)

logger = logging.getLogger(__name__)


class CacheInvalidationCoordinator:

    def __init__(
        self,
        cache: ICacheService,
        library_repository: Optional[ILibraryRepository] = None,
    ):
        self.cache = cache
        self.library_repository = library_repository

    async def book_inserted(self, book_id: UUID) -> None:
        await self._invalidate("book_inserted", keys=[book_key(book_id)], prefixes=[FETCH_PREFIX])

    async def cover_attached(self, book_id: UUID) -> None:
        holders = await self._holder_prefixes("cover_attached", book_id)
        await self._invalidate(
            "cover_attached", keys=[book_key(book_id)], prefixes=[FETCH_PREFIX, *holders]
        )

    async def review_added(self, book_id: UUID) -> None:
        holders = await self._holder_prefixes("review_added", book_id)
        await self._invalidate("review_added", keys=[book_key(book_id)], prefixes=holders)

    async def library_changed(self, user_id: UUID) -> None:
        await self._invalidate("library_changed", prefixes=[library_prefix(user_id)])

    async def search_recorded(self, user_id: UUID) -> None:
        await self._invalidate("search_recorded", keys=[last_search_key(user_id)])

    async def _holder_prefixes(self, mutation: str, book_id: UUID) -> list[str]:
        """Library-listing prefixes of every user whose library holds ``book_id``."""
        if self.library_repository is None:
            return []
        try:
            user_ids = await self.library_repository.find_user_ids_holding(book_id)
        except Exception as exc:
            logger.warning("Library lookup for %s after %s failed: %s", book_id, mutation, exc)
            return []
        return [library_prefix(user_id) for user_id in user_ids]

    async def _invalidate(
        self, mutation: str, keys: Iterable[str] = (), prefixes: Iterable[str] = ()
    ) -> None:
        for key in keys:
            try:
                await self.cache.invalidate(key)
            except Exception as exc:
                logger.warning("Invalidation of %s after %s failed: %s", key, mutation, exc)
        for prefix in prefixes:
            try:
                await self.cache.invalidate_prefix(prefix)
            except Exception as exc:
                logger.warning(
                    "Invalidation of prefix %s after %s failed: %s", prefix, mutation, exc
                )
