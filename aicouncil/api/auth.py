"""Authentication endpoints"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from aicouncil.api.deps import get_current_user
from aicouncil.db import get_db, User
from aicouncil.schemas import UserCreate, UserLogin, UserResponse, ok
from aicouncil.services import authenticate_user, create_user, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def user_payload(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json", by_alias=True)


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register a new FREE-tier user and return an access token"""
    user = await create_user(db, user_data.email, user_data.password, user_data.name)
    logger.info(f"New user registered: {user.id}")
    return ok(
        {"token": create_access_token(user.id), "user": user_payload(user)},
        message="Account created successfully",
    )


@router.post("/login")
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Exchange email + password for an access token"""
    user = await authenticate_user(db, credentials.email, credentials.password)
    if not user:
        # Same answer whether the email exists or not
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return ok(
        {"token": create_access_token(user.id), "user": user_payload(user)},
        message="Login successful",
    )


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info"""
    return ok(user_payload(current_user))


@router.post("/logout")
async def logout(current_user: User = Depends(get_current_user)):
    """Stateless tokens: the client drops its token, nothing is revoked server-side."""
    return ok(message="Logged out successfully")
