from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.page import Page
from app.models.user import User
from app.schemas.share import InvitePreview, InviteAcceptResponse
from app.services import shares as share_service

router = APIRouter()


@router.get("/{token}", response_model=InvitePreview)
async def get_invite(token: str, db: AsyncSession = Depends(get_db)):
    """Preview a pending page invitation (no login required)"""
    return await share_service.get_invite_preview(db, token)


@router.post("/{token}", response_model=InviteAcceptResponse)
async def accept_invite(
    token: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Accept a page invitation addressed to the current user"""
    share = await share_service.accept_invite(db, token, current_user)
    page = await db.get(Page, share.resource_id)
    return InviteAcceptResponse(
        message="Invitation accepted",
        page_id=page.id,
        page_title=page.title,
        access_level=share.access_level,
    )


@router.delete("/{token}")
async def reject_invite(
    token: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Decline a page invitation addressed to the current user"""
    await share_service.reject_invite(db, token, current_user)
    return {"message": "Invitation declined"}
