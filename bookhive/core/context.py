"""Application object graph.

Everything with a lifetime longer than a request (engine, Redis client,
HTTP clients, background tasks) is built once here and torn down in
:meth:`AppContext.aclose`. Request handlers reach it through
``request.app.state.context``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncEngine

from bookhive.core.config import Settings
from bookhive.core.redis_client import create_redis
from bookhive.domain.repositories import (
    IAssetFetcher,
    IBookRepository,
    ICacheService,
    ILibraryRepository,
    ISearchHistoryRepository,
    ISearchProvider,
    IStorageService,
    IUserRepository,
)
from bookhive.infrastructure.cache.redis_cache import RedisCacheService
from bookhive.infrastructure.database.collection import DocumentCollection
from bookhive.infrastructure.database.connection import create_engine, create_session_maker
from bookhive.infrastructure.database.models import (
    BookModel,
    LibraryModel,
    SearchHistoryModel,
    UserModel,
)
from bookhive.infrastructure.database.repository import (
    BookRepository,
    LibraryRepository,
    SearchHistoryRepository,
    UserRepository,
)
from bookhive.infrastructure.openlibrary.client import HttpAssetFetcher, OpenLibraryClient
from bookhive.infrastructure.storage.local import LocalStorageService
from bookhive.services.background_tasks import BackgroundTaskRunner
from bookhive.services.catalog_service import CatalogService
from bookhive.services.invalidation import CacheInvalidationCoordinator
from bookhive.services.library_service import LibraryService
from bookhive.services.review_service import ReviewService
from bookhive.services.search_history_service import SearchHistoryService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    redis: Optional[aioredis.Redis]
    cache: ICacheService
    search_provider: ISearchProvider
    asset_fetcher: IAssetFetcher
    storage: IStorageService
    tasks: BackgroundTaskRunner
    invalidation: CacheInvalidationCoordinator
    user_repository: IUserRepository
    book_repository: IBookRepository
    library_repository: ILibraryRepository
    history_repository: ISearchHistoryRepository
    catalog_service: CatalogService
    review_service: ReviewService
    library_service: LibraryService
    history_service: SearchHistoryService

    async def aclose(self) -> None:
        """Finish background work, then release every client."""
        await self.tasks.drain()
        for client in (self.search_provider, self.asset_fetcher):
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()
        if self.redis is not None:
            await self.redis.aclose()
        await self.engine.dispose()
        logger.info("Application context closed")


def build_context(
    settings: Settings,
    *,
    engine: Optional[AsyncEngine] = None,
    cache: Optional[ICacheService] = None,
    search_provider: Optional[ISearchProvider] = None,
    asset_fetcher: Optional[IAssetFetcher] = None,
    storage: Optional[IStorageService] = None,
) -> AppContext:
    """Wire the application. Any collaborator may be supplied pre-built."""
    engine = engine or create_engine(settings.database_url)
    session_maker = create_session_maker(engine)

    redis = None
    if cache is None:
        redis = create_redis(settings.redis_url)
        cache = RedisCacheService(
            redis,
            namespace=settings.cache_namespace,
            default_ttl=settings.cache_ttl_seconds,
        )

    search_provider = search_provider or OpenLibraryClient(
        base_url=settings.openlibrary_base_url,
        covers_url=settings.openlibrary_covers_url,
        page_size=settings.search_page_size,
        timeout=settings.http_timeout_seconds,
    )
    asset_fetcher = asset_fetcher or HttpAssetFetcher(timeout=settings.asset_fetch_timeout_seconds)
    storage = storage or LocalStorageService(settings.storage_path)

    def collection(model) -> DocumentCollection:
        return DocumentCollection(session_maker, model, max_attempts=settings.update_max_attempts)

    user_repository = UserRepository(collection(UserModel))
    book_repository = BookRepository(collection(BookModel))
    library_repository = LibraryRepository(collection(LibraryModel))
    history_repository = SearchHistoryRepository(collection(SearchHistoryModel))

    tasks = BackgroundTaskRunner()
    invalidation = CacheInvalidationCoordinator(cache, library_repository)
    history_service = SearchHistoryService(
        history_repository, invalidation, limit=settings.search_history_limit
    )
    catalog_service = CatalogService(
        book_repository=book_repository,
        library_repository=library_repository,
        search_provider=search_provider,
        history_service=history_service,
        asset_fetcher=asset_fetcher,
        storage_service=storage,
        cache=cache,
        invalidation=invalidation,
        tasks=tasks,
        fetch_ttl_seconds=settings.cache_ttl_seconds,
    )

    return AppContext(
        settings=settings,
        engine=engine,
        redis=redis,
        cache=cache,
        search_provider=search_provider,
        asset_fetcher=asset_fetcher,
        storage=storage,
        tasks=tasks,
        invalidation=invalidation,
        user_repository=user_repository,
        book_repository=book_repository,
        library_repository=library_repository,
        history_repository=history_repository,
        catalog_service=catalog_service,
        review_service=ReviewService(book_repository, invalidation),
        library_service=LibraryService(library_repository, book_repository, invalidation),
        history_service=history_service,
    )
