import logging
from typing import List, Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import cache
from app.core.errors import ForbiddenError, InvalidInputError, NotFoundError
from app.models.page import Page
from app.models.share import AccessLevel, ResourceKind, Share, ShareStatus
from app.models.tag import Tag
from app.models.user import User
from app.schemas.page import PageCreate, PageOwner, PageResponse, PageUpdate, PublicPageResponse
from app.services.access import (
    actor_for,
    parse_id,
    require_level,
    resolve_page_access,
    resolve_workspace_access,
)
from app.services.workspaces import get_default_workspace, remove_page_from_all_workspaces

logger = logging.getLogger(__name__)

PAGE_NOT_FOUND = "Page not found"

# Non-nullable columns a PATCH may not clear
REQUIRED_FIELDS = {"title", "is_favorite", "is_public"}


def normalize_tag(tag_name: str) -> str:
    return tag_name.strip().lower()


async def get_or_create_tags(tag_names: List[str], db: AsyncSession) -> List[Tag]:
    """Get existing tags or create new ones"""
    if not tag_names:
        return []

    tags = {}
    for tag_name in tag_names:
        tag_name = normalize_tag(tag_name)
        if not tag_name or tag_name in tags:
            continue

        # Try to get existing tag
        result = await db.execute(select(Tag).where(Tag.name == tag_name))
        tag = result.scalar_one_or_none()

        if not tag:
            # Create new tag
            tag = Tag(name=tag_name)
            db.add(tag)
            await db.flush()  # Flush to get the ID

        tags[tag_name] = tag

    return list(tags.values())


def tags_to_names(tags) -> List[str]:
    """Convert Tag objects to a sorted list of tag names"""
    if not tags:
        return []
    return sorted(tag.name for tag in tags)


def page_to_response(page: Page, access_level: Optional[AccessLevel]) -> PageResponse:
    return PageResponse(
        id=page.id,
        title=page.title,
        content=page.content,
        tags=tags_to_names(page.tags),
        is_favorite=page.is_favorite,
        is_public=page.is_public,
        owner_id=page.owner_id,
        owner_name=(page.owner.name or page.owner.email) if page.owner else None,
        workspace_id=page.workspace_id,
        access_level=access_level.value if access_level else None,
        created_at=page.created_at,
        updated_at=page.updated_at,
    )


async def load_page(db: AsyncSession, page_id: int) -> Optional[Page]:
    """Load a page with owner and tags, bypassing stale identity-map state"""
    result = await db.execute(
        select(Page).where(Page.id == page_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_page(db: AsyncSession, user: User, data: PageCreate) -> PageResponse:
    """Create a page in the user's default workspace or one they can edit"""
    if data.workspace_id is not None:
        access = await resolve_workspace_access(db, data.workspace_id, actor_for(user))
        require_level(access, AccessLevel.EDIT, "Workspace not found")
        workspace_id = data.workspace_id
    else:
        workspace = await get_default_workspace(db, user)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        workspace_id = workspace.id

    tag_objects = await get_or_create_tags(data.tags or [], db)

    page = Page(
        title=data.title,
        content=data.content,
        is_favorite=data.is_favorite,
        owner_id=user.id,
        workspace_id=workspace_id,
    )
    page.tags = tag_objects
    db.add(page)
    await db.commit()

    await cache.invalidate_user_pages(user.id)
    logger.info("User %s created page %s", user.id, page.id)

    # Reload the page with tags and owner to avoid lazy loading issues
    page = await load_page(db, page.id)
    return page_to_response(page, AccessLevel.OWNER)


async def get_page(db: AsyncSession, page_id, user: User) -> PageResponse:
    """Read a page through the per-user cache"""
    parsed = parse_id(page_id)
    if parsed is None:
        raise NotFoundError(PAGE_NOT_FOUND)

    cached = await cache.get_cached_page(parsed, user.id)
    if cached is not None:
        return PageResponse(**cached)

    access = await resolve_page_access(db, parsed, actor_for(user))
    level = require_level(access, AccessLevel.VIEW, PAGE_NOT_FOUND)

    page = await load_page(db, parsed)
    if page is None:
        raise NotFoundError(PAGE_NOT_FOUND)

    response = page_to_response(page, level)
    await cache.set_cached_page(parsed, user.id, response.model_dump(mode="json"))
    return response


async def update_page(db: AsyncSession, page_id, user: User, page_update: PageUpdate) -> PageResponse:
    """Update a page (owner or edit access)"""
    access = await resolve_page_access(db, page_id, actor_for(user))
    level = require_level(access, AccessLevel.EDIT, PAGE_NOT_FOUND)

    page = await load_page(db, parse_id(page_id))
    update_data = page_update.model_dump(exclude_unset=True)

    if "is_public" in update_data and level != AccessLevel.OWNER:
        raise ForbiddenError("Only the owner can change public access")

    for field in REQUIRED_FIELDS:
        if field in update_data and update_data[field] is None:
            raise InvalidInputError(f"{field} cannot be null")

    # Handle tags separately
    if "tags" in update_data:
        page.tags = await get_or_create_tags(update_data.pop("tags") or [], db)

    for field, value in update_data.items():
        setattr(page, field, value)

    await db.commit()
    await cache.invalidate_page(page.id, page.owner_id)

    page = await load_page(db, page.id)
    return page_to_response(page, level)


async def delete_page(db: AsyncSession, page_id, user: User) -> None:
    """Delete a page with its shares (owner only)"""
    access = await resolve_page_access(db, page_id, actor_for(user))
    level = require_level(access, AccessLevel.VIEW, PAGE_NOT_FOUND)
    if level != AccessLevel.OWNER:
        raise ForbiddenError("Only the owner can delete this page")

    page = await load_page(db, parse_id(page_id))
    await remove_page_from_all_workspaces(db, page.id)
    await db.execute(
        delete(Share).where(
            Share.resource_kind == ResourceKind.PAGE.value,
            Share.resource_id == page.id,
        )
    )
    await db.delete(page)
    await db.commit()

    await cache.invalidate_page(page.id, page.owner_id)
    logger.info("User %s deleted page %s", user.id, page.id)


async def list_user_pages(db: AsyncSession, user: User) -> List[PageResponse]:
    """The user's own pages, served from ``user_pages:{id}`` when cached"""
    cached = await cache.get_cached_user_pages(user.id)
    if cached is not None:
        return [PageResponse(**item) for item in cached]

    result = await db.execute(
        select(Page).where(Page.owner_id == user.id).order_by(Page.updated_at.desc(), Page.id.desc())
    )
    pages = [page_to_response(page, AccessLevel.OWNER) for page in result.scalars().all()]
    await cache.set_cached_user_pages(user.id, [page.model_dump(mode="json") for page in pages])
    return pages


async def list_shared_pages(db: AsyncSession, user: User) -> List[PageResponse]:
    """Pages other users shared with the user and the user accepted"""
    result = await db.execute(
        select(Page, Share.access_level)
        .join(
            Share,
            and_(
                Share.resource_kind == ResourceKind.PAGE.value,
                Share.resource_id == Page.id,
            ),
        )
        .where(
            Share.shared_with_email == user.email,
            Share.status == ShareStatus.ACCEPTED.value,
            Page.owner_id != user.id,
        )
        .order_by(Page.updated_at.desc(), Page.id.desc())
    )
    return [page_to_response(page, AccessLevel(level)) for page, level in result.all()]


async def list_favorite_pages(db: AsyncSession, user: User) -> List[PageResponse]:
    result = await db.execute(
        select(Page)
        .where(Page.owner_id == user.id, Page.is_favorite == True)  # noqa: E712
        .order_by(Page.updated_at.desc(), Page.id.desc())
    )
    return [page_to_response(page, AccessLevel.OWNER) for page in result.scalars().all()]


async def search_pages(db: AsyncSession, user: User, query: str) -> List[PageResponse]:
    """Case-insensitive search over title, content and tags of own pages"""
    search_term = f"%{query.strip()}%"
    result = await db.execute(
        select(Page)
        .outerjoin(Page.tags)
        .where(
            Page.owner_id == user.id,
            or_(
                Page.title.ilike(search_term),
                Page.content.ilike(search_term),
                Tag.name.ilike(search_term),
            ),
        )
        .distinct()
        .order_by(Page.updated_at.desc(), Page.id.desc())
    )
    return [page_to_response(page, AccessLevel.OWNER) for page in result.scalars().all()]


async def search_pages_by_tag(db: AsyncSession, user: User, tag: str) -> List[PageResponse]:
    result = await db.execute(
        select(Page)
        .join(Page.tags)
        .where(Page.owner_id == user.id, Tag.name == normalize_tag(tag))
        .distinct()
        .order_by(Page.updated_at.desc(), Page.id.desc())
    )
    return [page_to_response(page, AccessLevel.OWNER) for page in result.scalars().all()]


async def list_tags(db: AsyncSession, user: User) -> List[str]:
    """Get all tags used on the user's own pages"""
    result = await db.execute(
        select(Tag.name)
        .join(Page.tags)
        .where(Page.owner_id == user.id)
        .distinct()
        .order_by(Tag.name)
    )
    return [row[0] for row in result.all()]


def mask_email(email: str) -> str:
    return email.split("@")[0] + "@***"


async def get_public_page(db: AsyncSession, page_id) -> PublicPageResponse:
    """Read-only view of a page its owner made public"""
    parsed = parse_id(page_id)
    page = await load_page(db, parsed) if parsed is not None else None
    if page is None or not page.is_public:
        raise NotFoundError(PAGE_NOT_FOUND)

    return PublicPageResponse(
        id=page.id,
        title=page.title,
        content=page.content,
        tags=tags_to_names(page.tags),
        owner=PageOwner(
            name=page.owner.name or "Anonymous",
            email=mask_email(page.owner.email),
        ),
        created_at=page.created_at,
        updated_at=page.updated_at,
    )
