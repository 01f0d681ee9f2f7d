"""Personal library routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from bookhive.api.schemas import BookListResponse, BookViewResponse
from bookhive.core.dependencies import get_cache, get_current_user_id, get_library_service
from bookhive.domain.repositories import ICacheService
from bookhive.domain.services import ILibraryService
from bookhive.services.caching import library_key, read_through

router = APIRouter(prefix="/library", tags=["library"])


@router.get("/", response_model=BookListResponse)
async def list_library(
    library_service: Annotated[ILibraryService, Depends(get_library_service)],
    cache: Annotated[ICacheService, Depends(get_cache)],
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> BookListResponse:
    async def load() -> dict:
        views = await library_service.list_books(user_id, page, limit)
        return BookListResponse(
            books=[BookViewResponse.model_validate(view) for view in views],
            page=page,
            limit=limit,
        ).model_dump(mode="json")

    payload = await read_through(cache, library_key(user_id, page, limit), load)
    return BookListResponse.model_validate(payload)


@router.put("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def add_to_library(
    book_id: UUID,
    library_service: Annotated[ILibraryService, Depends(get_library_service)],
    user_id: Annotated[UUID, Depends(get_current_user_id)],
) -> None:
    """Add a book to the caller's library; repeating the call is harmless."""
    await library_service.add_book(user_id, book_id)


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_library(
    book_id: UUID,
    library_service: Annotated[ILibraryService, Depends(get_library_service)],
    user_id: Annotated[UUID, Depends(get_current_user_id)],
) -> None:
    await library_service.remove_book(user_id, book_id)
