"""Search history routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from bookhive.api.schemas import SearchHistoryResponse
from bookhive.core.dependencies import get_cache, get_current_user_id, get_history_service
from bookhive.domain.repositories import ICacheService
from bookhive.domain.services import ISearchHistoryService
from bookhive.services.caching import last_search_key, read_through

router = APIRouter(prefix="/history", tags=["history"])


@router.get("/last-search", response_model=SearchHistoryResponse)
async def last_search(
    history_service: Annotated[ISearchHistoryService, Depends(get_history_service)],
    cache: Annotated[ICacheService, Depends(get_cache)],
    user_id: Annotated[UUID, Depends(get_current_user_id)],
) -> SearchHistoryResponse:
    """Most recent distinct queries of the caller, newest first."""

    async def load() -> dict:
        return {"queries": await history_service.last_search(user_id)}

    payload = await read_through(cache, last_search_key(user_id), load)
    return SearchHistoryResponse.model_validate(payload)
