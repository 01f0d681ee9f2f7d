"""Book API routes (provider search, local search, details, covers, reviews)."""

import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from bookhive.api.schemas import (
    BookListResponse,
    BookResponse,
    BookViewResponse,
    ReviewCreateRequest,
)
from bookhive.core.dependencies import (
    get_cache,
    get_catalog_service,
    get_current_user_id,
    get_optional_user_id,
    get_review_service,
    get_storage_service,
)
from bookhive.domain.repositories import ICacheService, IStorageService
from bookhive.domain.services import ICatalogService, IReviewService
from bookhive.services.caching import book_key, read_through

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/books", tags=["books"])


@router.get("/search", response_model=list[BookViewResponse])
async def search_books(
    catalog_service: Annotated[ICatalogService, Depends(get_catalog_service)],
    user_id: Annotated[Optional[UUID], Depends(get_optional_user_id)],
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
) -> list[BookViewResponse]:
    """Search the external provider and import unseen books into the catalog.

    Known books are returned from the catalog as stored. When the caller is
    identified, the query is recorded in their search history and every
    result carries ``in_library``.
    """
    views = await catalog_service.search(q, page, user_id)
    return [BookViewResponse.model_validate(view) for view in views]


@router.get("/", response_model=BookListResponse)
async def list_books(
    catalog_service: Annotated[ICatalogService, Depends(get_catalog_service)],
    q: str = "",
    has_reviews: Optional[bool] = None,
    min_rating: Optional[float] = Query(None, ge=1, le=5),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> BookListResponse:
    """Search the local catalog by title/author token prefixes."""
    views = await catalog_service.search_local(
        q, has_reviews=has_reviews, min_rating=min_rating, page=page, limit=limit
    )
    return BookListResponse(
        books=[BookViewResponse.model_validate(view) for view in views],
        page=page,
        limit=limit,
    )


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(
    book_id: UUID,
    catalog_service: Annotated[ICatalogService, Depends(get_catalog_service)],
    cache: Annotated[ICacheService, Depends(get_cache)],
) -> BookResponse:
    """Get a book by ID."""

    async def load() -> Optional[dict]:
        book = await catalog_service.get_book(book_id)
        if book is None:
            return None
        return BookResponse.model_validate(book).model_dump(mode="json")

    payload = await read_through(cache, book_key(book_id), load)
    if payload is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return BookResponse.model_validate(payload)


@router.get("/{book_id}/cover")
async def get_book_cover(
    book_id: UUID,
    catalog_service: Annotated[ICatalogService, Depends(get_catalog_service)],
    storage: Annotated[IStorageService, Depends(get_storage_service)],
) -> Response:
    """Return the stored cover image."""
    book = await catalog_service.get_book(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    if not book.cover_asset:
        raise HTTPException(status_code=404, detail="Cover not available")
    try:
        content = await storage.get_file(book.cover_asset)
    except FileNotFoundError:
        logger.warning("Cover asset %s of book %s is missing", book.cover_asset, book_id)
        raise HTTPException(status_code=404, detail="Cover not available")
    return Response(content=content, media_type="image/jpeg")


@router.post(
    "/{book_id}/reviews",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    book_id: UUID,
    body: ReviewCreateRequest,
    review_service: Annotated[IReviewService, Depends(get_review_service)],
    user_id: Annotated[UUID, Depends(get_current_user_id)],
) -> BookResponse:
    """Add a review and return the book with its updated rating."""
    book = await review_service.add_review(book_id, user_id, body.rating, body.comment)
    return BookResponse.model_validate(book)
