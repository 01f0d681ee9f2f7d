"""Cache key layout and read-through helper.

Keys follow ``<action>:<params>``. Prefix-scoped entries (provider fetches,
per-user library listings) share a prefix so a single invalidation purges
every parameter combination.
"""

import logging
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from bookhive.domain.repositories import ICacheService
from bookhive.domain.tokenizer import normalize

logger = logging.getLogger(__name__)

FETCH_PREFIX = "books.fetch:"


def fetch_key(query: str, page: int) -> str:
    return f"{FETCH_PREFIX}{normalize(query)}|{page}"


def book_key(book_id: UUID) -> str:
    return f"books.get:{book_id}"


def library_prefix(user_id: UUID) -> str:
    return f"library.list:{user_id}:"


def library_key(user_id: UUID, page: int, limit: int) -> str:
    return f"{library_prefix(user_id)}{page}|{limit}"


def last_search_key(user_id: UUID) -> str:
    return f"history.lastSearch:{user_id}"


async def read_through(
    cache: ICacheService,
    key: str,
    loader: Callable[[], Awaitable[Any]],
    ttl_seconds: Optional[int] = None,
) -> Any:
    """Return the cached JSON value for ``key``, loading and storing it on a miss.

    A ``None`` result is not stored. Cache outages degrade to calling
    ``loader`` directly.
    """
    try:
        cached = await cache.get_json(key)
    except Exception as exc:
        logger.warning("Cache read failed for %s: %s", key, exc)
        return await loader()
    if cached is not None:
        return cached

    value = await loader()
    if value is None:
        return None
    try:
        await cache.set_json(key, value, ttl_seconds)
    except Exception as exc:
        logger.warning("Cache write failed for %s: %s", key, exc)
    return value
