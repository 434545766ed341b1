import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError
from app.core.security import get_password_hash, verify_password
from app.models.page import Page
from app.models.user import User
from app.schemas.user import UserPreferences, UserPreferencesUpdate
from app.services import notifications
from app.services.access import normalize_email
from app.services.pages import get_or_create_tags
from app.services.workspaces import create_default_workspace

logger = logging.getLogger(__name__)

WELCOME_PAGE_TITLE = "Home"
WELCOME_PAGE_CONTENT = "Welcome! This is your home page. Keep your important notes here."
WELCOME_PAGE_TAGS = ["home", "important"]


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, email: str, password: str, name: Optional[str] = None) -> User:
    """Register a user with a default workspace and a welcome page"""
    email = normalize_email(email)
    if await get_user_by_email(db, email):
        raise ConflictError("Email already registered")

    user = User(email=email, name=name, hashed_password=get_password_hash(password))
    db.add(user)
    try:
        await db.flush()
        workspace = await create_default_workspace(db, user)

        welcome_page = Page(
            title=WELCOME_PAGE_TITLE,
            content=WELCOME_PAGE_CONTENT,
            is_favorite=True,
            owner_id=user.id,
            workspace_id=workspace.id,
        )
        welcome_page.tags = await get_or_create_tags(WELCOME_PAGE_TAGS, db)
        db.add(welcome_page)
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent signup for the same email
        await db.rollback()
        raise ConflictError("Email already registered")

    logger.info("Registered user %s", user.id)
    await notifications.notify(
        user.email,
        notifications.USER_REGISTERED,
        f"Welcome to Étude, {user.name or user.email}!",
        "/app",
        {"user_id": user.id},
    )
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    user = await get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def get_preferences(user: User) -> UserPreferences:
    return UserPreferences(**(user.preferences or {}))


async def update_preferences(db: AsyncSession, user: User, update: UserPreferencesUpdate) -> UserPreferences:
    preferences = get_preferences(user).model_copy(update=update.model_dump(exclude_none=True))
    # Reassign so the JSON column is flagged as changed
    user.preferences = preferences.model_dump()
    await db.commit()
    return preferences
