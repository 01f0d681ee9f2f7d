"""Detached background work started by request handlers.

Tasks run on the application's event loop and outlive the request that
spawned them. :class:`BackgroundTaskRunner` keeps a reference to each running
task so it is not garbage-collected mid-flight, logs any task that dies with
an exception, and lets shutdown (and tests) wait for everything to finish.
"""

import asyncio
import logging
from typing import Coroutine
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from bookhive.domain.errors import AssetFetchError
from bookhive.domain.repositories import IAssetFetcher, IBookRepository, IStorageService
from bookhive.services.invalidation import CacheInvalidationCoordinator

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine, name: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every spawned task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("BG-TASK: %s failed", task.get_name(), exc_info=exc)


async def attach_cover_task(
    book_id: UUID,
    book_key: str,
    cover_url: str,
    *,
    asset_fetcher: IAssetFetcher,
    storage_service: IStorageService,
    book_repository: IBookRepository,
    invalidation: CacheInvalidationCoordinator,
) -> None:
    """Download a cover, store it and point the book at it.

    A failed download or store write is logged and leaves ``cover_asset``
    null; it is not retried. Either way the book's cache entries are
    invalidated on completion.
    """
    logger.info("BG-TASK: fetching cover for book %s from %s", book_id, cover_url)
    try:
        content = await asset_fetcher.fetch(cover_url)
        cover_asset = await storage_service.save_file(content, f"{book_key}.jpg")
        await book_repository.set_cover(book_id, cover_asset)
        logger.info("BG-TASK: cover saved for book %s", book_id)
    except (AssetFetchError, OSError, SQLAlchemyError) as exc:
        logger.warning("BG-TASK: cover unavailable for book %s: %s", book_id, exc)
    finally:
        await invalidation.cover_attached(book_id)
