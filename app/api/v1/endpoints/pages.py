from typing import List
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.share import ResourceKind
from app.models.user import User
from app.schemas.page import PageCreate, PageUpdate, PageResponse, AccessResponse
from app.schemas.share import ShareCreate, ShareResponse, ShareCreateResponse
from app.services import pages as page_service
from app.services import shares as share_service
from app.services.access import actor_for, resolve_page_access

router = APIRouter()


@router.post("/", response_model=PageResponse, status_code=status.HTTP_201_CREATED)
async def create_page(
    page: PageCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a new page"""
    return await page_service.create_page(db, current_user, page)


@router.get("/", response_model=List[PageResponse])
async def get_pages(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get all pages owned by the current user"""
    return await page_service.list_user_pages(db, current_user)


@router.get("/shared", response_model=List[PageResponse])
async def get_shared_pages(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get pages shared with the current user"""
    return await page_service.list_shared_pages(db, current_user)


@router.get("/favorites", response_model=List[PageResponse])
async def get_favorite_pages(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the current user's favorite pages"""
    return await page_service.list_favorite_pages(db, current_user)


@router.get("/search", response_model=List[PageResponse])
async def search_pages(
    q: str = Query(..., min_length=1, description="Search text in title, content and tags"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Search pages by title, content or tags"""
    return await page_service.search_pages(db, current_user, q)


@router.get("/search-by-tag", response_model=List[PageResponse])
async def search_pages_by_tag(
    tag: str = Query(..., min_length=1),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get pages carrying a tag"""
    return await page_service.search_pages_by_tag(db, current_user, tag)


@router.get("/tags", response_model=List[str])
async def get_user_tags(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get all tags used by the current user"""
    return await page_service.list_tags(db, current_user)


@router.get("/{page_id}", response_model=PageResponse)
async def get_page(
    page_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a specific page"""
    return await page_service.get_page(db, page_id, current_user)


@router.patch("/{page_id}", response_model=PageResponse)
async def update_page(
    page_id: str,
    page_update: PageUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Update a page (owner or edit access)"""
    return await page_service.update_page(db, page_id, current_user, page_update)


@router.delete("/{page_id}")
async def delete_page(
    page_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a page (only owner can delete)"""
    await page_service.delete_page(db, page_id, current_user)
    return {"message": "Page deleted successfully"}


@router.get("/{page_id}/access", response_model=AccessResponse)
async def get_page_access(
    page_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the current user's access level on a page"""
    result = await resolve_page_access(db, page_id, actor_for(current_user))
    return AccessResponse(
        has_access=result.has_access,
        access_level=result.level.value if result.level else None,
    )


@router.post("/{page_id}/share", response_model=ShareCreateResponse)
async def share_page(
    page_id: str,
    share_data: ShareCreate,
    response: Response,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Share a page with an email address, or change the level of an existing share"""
    result = await share_service.create_share(
        db, ResourceKind.PAGE, page_id, current_user, share_data.email, share_data.access_level
    )
    if result.created:
        response.status_code = status.HTTP_201_CREATED
    return ShareCreateResponse(
        message="Page shared successfully" if result.created else "Share updated successfully",
        created=result.created,
        share=ShareResponse.model_validate(result.share),
        invite_link=share_service.invite_link(result.share),
    )


@router.get("/{page_id}/shares", response_model=List[ShareResponse])
async def get_page_shares(
    page_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """List everyone a page is shared with"""
    return await share_service.list_page_shares(db, page_id, current_user)
