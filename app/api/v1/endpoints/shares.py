from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.user import User
from app.schemas.share import ShareResponse, ShareStatusUpdate
from app.services import shares as share_service

router = APIRouter()


@router.patch("/{share_id}", response_model=ShareResponse)
async def update_share_status(
    share_id: str,
    status_update: ShareStatusUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Accept or reject a pending share"""
    if status_update.status == "accepted":
        return await share_service.accept_share(db, share_id, current_user)
    return await share_service.reject_share(db, share_id, current_user)


@router.delete("/{share_id}")
async def delete_share(
    share_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Revoke a share (resource owner only)"""
    await share_service.delete_share(db, share_id, current_user)
    return {"message": "Share deleted successfully"}
