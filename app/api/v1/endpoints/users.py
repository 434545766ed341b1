from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.user import User
from app.schemas.user import UserResponse, UserPreferences, UserPreferencesUpdate
from app.services import users as user_service

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_active_user)):
    """Get current user information"""
    return current_user


@router.get("/me/preferences", response_model=UserPreferences)
async def get_preferences(current_user: User = Depends(get_current_active_user)):
    """Get the current user's preferences"""
    return user_service.get_preferences(current_user)


@router.put("/me/preferences", response_model=UserPreferences)
async def update_preferences(
    preferences: UserPreferencesUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Update the current user's preferences"""
    return await user_service.update_preferences(db, current_user, preferences)
