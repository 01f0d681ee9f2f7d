"""Dependency injection providers."""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from bookhive.core.context import AppContext
from bookhive.domain.repositories import ICacheService, IStorageService, IUserRepository
from bookhive.domain.services import (
    ICatalogService,
    ILibraryService,
    IReviewService,
    ISearchHistoryService,
)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


# ---------------------------------------------------------------------------
# Infrastructure providers
# ---------------------------------------------------------------------------
def get_cache(context: AppContext = Depends(get_context)) -> ICacheService:
    return context.cache


def get_storage_service(context: AppContext = Depends(get_context)) -> IStorageService:
    return context.storage


def get_user_repository(context: AppContext = Depends(get_context)) -> IUserRepository:
    return context.user_repository


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------
def get_catalog_service(context: AppContext = Depends(get_context)) -> ICatalogService:
    return context.catalog_service


def get_review_service(context: AppContext = Depends(get_context)) -> IReviewService:
    return context.review_service


def get_library_service(context: AppContext = Depends(get_context)) -> ILibraryService:
    return context.library_service


def get_history_service(context: AppContext = Depends(get_context)) -> ISearchHistoryService:
    return context.history_service


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------
async def get_optional_user_id(
    user_repo: Annotated[IUserRepository, Depends(get_user_repository)],
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> Optional[UUID]:
    """Resolve the ``X-User-Id`` header to a known user, if one was sent.

    Authentication is out of scope; the header is trusted once the user
    exists.
    """
    if x_user_id is None:
        return None
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unknown user",
    )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise credentials_exception
    if await user_repo.get_by_id(user_id) is None:
        raise credentials_exception
    return user_id


async def get_current_user_id(
    user_id: Annotated[Optional[UUID], Depends(get_optional_user_id)],
) -> UUID:
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header required",
        )
    return user_id
