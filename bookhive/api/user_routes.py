"""User registration routes."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from bookhive.api.schemas import UserCreateRequest, UserResponse
from bookhive.core.dependencies import get_user_repository
from bookhive.domain.errors import ConflictError
from bookhive.domain.repositories import IUserRepository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreateRequest,
    user_repo: Annotated[IUserRepository, Depends(get_user_repository)],
) -> UserResponse:
    """Register a user. Emails are unique ignoring case."""
    try:
        user = await user_repo.create(body.email)
    except ConflictError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    logger.info("User registered: %s", user.id)
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    user_repo: Annotated[IUserRepository, Depends(get_user_repository)],
) -> UserResponse:
    user = await user_repo.get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse.model_validate(user)
