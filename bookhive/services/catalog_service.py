"""Catalog service: provider search, reconciliation and local lookup."""

import asyncio
import logging
from dataclasses import asdict
from typing import Optional
from uuid import UUID

from bookhive.domain.entities import Book, BookView, ExternalBookRef, NewBook
from bookhive.domain.errors import ConflictError, ValidationError
from bookhive.domain.repositories import (
    IAssetFetcher,
    IBookRepository,
    ICacheService,
    ILibraryRepository,
    ISearchProvider,
    IStorageService,
)
from bookhive.domain.services import ICatalogService, ISearchHistoryService
from bookhive.domain.tokenizer import normalize, tokenize, tokenize_many
from bookhive.services.background_tasks import BackgroundTaskRunner, attach_cover_task
from bookhive.services.caching import fetch_key, read_through
from bookhive.services.invalidation import CacheInvalidationCoordinator

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
# Column widths of books.key, books.key_normalized and books.title.
MAX_KEY_LENGTH = 255
MAX_TITLE_LENGTH = 1024


class CatalogService(ICatalogService):
    """Imports provider hits into the local catalog without duplicating books."""

    def __init__(
        self,
        book_repository: IBookRepository,
        library_repository: ILibraryRepository,
        search_provider: ISearchProvider,
        history_service: ISearchHistoryService,
        asset_fetcher: IAssetFetcher,
        storage_service: IStorageService,
        cache: ICacheService,
        invalidation: CacheInvalidationCoordinator,
        tasks: BackgroundTaskRunner,
        fetch_ttl_seconds: Optional[int] = None,
    ):
        self.book_repository = book_repository
        self.library_repository = library_repository
        self.search_provider = search_provider
        self.history_service = history_service
        self.asset_fetcher = asset_fetcher
        self.storage_service = storage_service
        self.cache = cache
        self.invalidation = invalidation
        self.tasks = tasks
        self.fetch_ttl_seconds = fetch_ttl_seconds

    async def search(
        self, query: str, page: int = 1, user_id: Optional[UUID] = None
    ) -> list[BookView]:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query must not be empty")
        if page < 1:
            raise ValidationError("Page must be >= 1")

        if user_id is None:
            candidates = await self._fetch(query, page)
        else:
            candidates, _ = await asyncio.gather(
                self._fetch(query, page),
                self.history_service.record(user_id, query),
            )
        return await self.reconcile(candidates, user_id)

    async def reconcile(
        self, candidates: list[ExternalBookRef], user_id: Optional[UUID] = None
    ) -> list[BookView]:
        """Return stored views for ``candidates``, inserting the unknown ones.

        Candidates repeating a key (ignoring case and accents) are collapsed to
        the first occurrence. Invalid candidates are never persisted but still
        resolve to a stored book when their key is already known.
        """
        ordered: dict[str, ExternalBookRef] = {}
        for ref in candidates:
            key = normalize(ref.external_key)
            if key and key not in ordered:
                ordered[key] = ref
        if not ordered:
            return []

        views, library_ids = await asyncio.gather(
            self._existing_views(list(ordered)),
            self._library_ids(user_id),
        )

        new_books: list[NewBook] = []
        cover_urls: dict[str, str] = {}
        for key, ref in ordered.items():
            if key in views:
                continue
            try:
                new_books.append(self._validate(ref))
            except ValidationError as exc:
                logger.warning("Skipping invalid candidate %r: %s", ref.external_key, exc)
                continue
            if ref.cover_url:
                cover_urls[key] = ref.cover_url

        created, recovered = await self._insert(new_books)
        for view in recovered:
            views[normalize(view.key)] = view
        for book in created:
            key = normalize(book.key)
            views[key] = self._to_view(book)
            logger.info("Book imported: %s (%s)", book.id, book.key)
            await self.invalidation.book_inserted(book.id)
            if key in cover_urls:
                self.tasks.spawn(
                    attach_cover_task(
                        book.id,
                        book.key,
                        cover_urls[key],
                        asset_fetcher=self.asset_fetcher,
                        storage_service=self.storage_service,
                        book_repository=self.book_repository,
                        invalidation=self.invalidation,
                    ),
                    name=f"cover:{book.id}",
                )

        results = [views[key] for key in ordered if key in views]
        if user_id is not None:
            for view in results:
                view.in_library = str(view.id) in library_ids
        return results

    async def get_book(self, book_id: UUID) -> Optional[Book]:
        return await self.book_repository.get_by_id(book_id)

    async def search_local(
        self,
        text: str,
        has_reviews: Optional[bool] = None,
        min_rating: Optional[float] = None,
        page: int = 1,
        limit: int = 20,
    ) -> list[BookView]:
        if page < 1:
            raise ValidationError("Page must be >= 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        return await self.book_repository.search(
            tokenize(text),
            has_reviews=has_reviews,
            min_rating=min_rating,
            skip=(page - 1) * limit,
            limit=limit,
        )

    # ------------------------------------------------------------------
    async def _fetch(self, query: str, page: int) -> list[ExternalBookRef]:
        async def load() -> list[dict]:
            refs = await self.search_provider.search(query, page)
            return [asdict(ref) for ref in refs]

        raw = await read_through(self.cache, fetch_key(query, page), load, self.fetch_ttl_seconds)
        return [ExternalBookRef(**item) for item in raw]

    async def _existing_views(self, keys: list[str]) -> dict[str, BookView]:
        views = await self.book_repository.find_views_by_keys(keys)
        return {normalize(view.key): view for view in views}

    async def _library_ids(self, user_id: Optional[UUID]) -> set[str]:
        if user_id is None:
            return set()
        library = await self.library_repository.get(user_id)
        return set(library.book_ids) if library else set()

    async def _insert(self, new_books: list[NewBook]) -> tuple[list[Book], list[BookView]]:
        """Insert ``new_books``; keys that appeared concurrently come back as views.

        The existence check before this call is not atomic with the insert, so
        another request may have stored the same key in between. The unique
        key constraint decides the winner and the loser re-reads it.
        """
        if not new_books:
            return [], []
        try:
            return await self.book_repository.create_many(new_books), []
        except ConflictError:
            logger.info("Batch insert of %d books hit an existing key", len(new_books))

        created: list[Book] = []
        recovered: list[BookView] = []
        for new_book in new_books:
            try:
                created.append(await self.book_repository.create(new_book))
            except ConflictError:
                existing = await self.book_repository.find_views_by_keys([new_book.key])
                if not existing:
                    raise
                logger.info("Book %s was imported concurrently; using stored copy", new_book.key)
                recovered.extend(existing)
        return created, recovered

    @staticmethod
    def _validate(ref: ExternalBookRef) -> NewBook:
        key = str(ref.external_key or "").strip()
        title = (ref.title or "").strip() if isinstance(ref.title, str) else ""
        if not key:
            raise ValidationError("Candidate has no key")
        if not title:
            raise ValidationError(f"Candidate {key} has no title")
        if len(key) > MAX_KEY_LENGTH or len(normalize(key)) > MAX_KEY_LENGTH:
            raise ValidationError(f"Candidate key {key[:40]}... exceeds {MAX_KEY_LENGTH} characters")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Candidate {key} title exceeds {MAX_TITLE_LENGTH} characters")
        authors = [name.strip() for name in ref.authors or [] if isinstance(name, str) and name.strip()]
        year = ref.publication_year
        if isinstance(year, bool) or not isinstance(year, int):
            year = None
        return NewBook(
            key=key,
            title=title,
            author=authors,
            publication_year=year,
            title_tokens=tokenize(title),
            author_tokens=sorted(tokenize_many(authors)),
        )

    @staticmethod
    def _to_view(book: Book) -> BookView:
        return BookView(
            id=book.id,
            key=book.key,
            title=book.title,
            author=list(book.author),
            publication_year=book.publication_year,
            cover_asset=book.cover_asset,
            rating_count=book.rating_count,
            rating_avg=book.rating_avg,
            has_reviews=book.has_reviews,
        )
