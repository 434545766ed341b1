import logging
from datetime import timedelta
from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import (
    create_access_token,
    create_refresh_token,
    verify_token,
    get_current_user
)
from app.core.config import settings
from app.core.redis_client import get_redis
from app.models.user import User
from app.schemas.auth import Token
from app.schemas.user import UserCreate, UserResponse
from app.services import users as user_service

logger = logging.getLogger(__name__)

router = APIRouter()


async def _store_tokens(user: User, access_token: str, refresh_token: str = None):
    redis_client = await get_redis()
    await redis_client.setex(
        f"access_token:{user.id}",
        settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        access_token
    )
    if refresh_token is not None:
        await redis_client.setex(
            f"refresh_token:{user.id}",
            settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
            refresh_token
        )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new user"""
    return await user_service.create_user(db, user.email, user.password, user.name)


@router.post("/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_db)):
    """Login user and return JWT tokens"""
    # The OAuth2 form field is called username, it carries the email
    user = await user_service.authenticate_user(db, form_data.username, form_data.password)

    if not user:
        logger.info("Failed login for %s", form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )

    # Create tokens
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": str(user.id)}, expires_delta=access_token_expires
    )
    refresh_token = create_refresh_token(data={"sub": str(user.id)})

    # Store tokens in Redis
    await _store_tokens(user, access_token, refresh_token)
    logger.info("User %s logged in", user.id)

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer"
    }


@router.post("/refresh", response_model=Token)
async def refresh_token(refresh_token: str = Body(..., embed=True), db: AsyncSession = Depends(get_db)):
    """Refresh access token using refresh token"""
    # Verify refresh token
    payload = verify_token(refresh_token, "refresh")
    user = await user_service.get_user_by_id(db, int(payload["sub"]))

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    # Check if refresh token exists in Redis
    redis_client = await get_redis()
    stored_refresh_token = await redis_client.get(f"refresh_token:{user.id}")

    if not stored_refresh_token or stored_refresh_token != refresh_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token"
        )

    # Create new access token
    access_token = create_access_token(data={"sub": str(user.id)})
    await _store_tokens(user, access_token)

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer"
    }


@router.post("/logout")
async def logout(current_user: User = Depends(get_current_user)):
    """Logout user by removing tokens from Redis"""
    redis_client = await get_redis()
    await redis_client.delete(f"access_token:{current_user.id}")
    await redis_client.delete(f"refresh_token:{current_user.id}")
    logger.info("User %s logged out", current_user.id)

    return {"message": "Successfully logged out"}
