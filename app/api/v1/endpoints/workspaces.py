from typing import List
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_active_user
from app.models.share import ResourceKind, Share
from app.models.user import User
from app.schemas.page import PageResponse
from app.schemas.share import ShareCreate, ShareResponse, ShareCreateResponse, ShareStatusUpdate
from app.schemas.workspace import WorkspaceCreate, WorkspaceResponse, WorkspaceInvitation, InvitationSender
from app.services import shares as share_service
from app.services import workspaces as workspace_service
from app.services.pages import page_to_response

router = APIRouter()


def to_invitation(share: Share) -> WorkspaceInvitation:
    sender = share.shared_by
    return WorkspaceInvitation(
        id=share.id,
        workspace_id=share.workspace_id,
        workspace_name=share.workspace.name if share.workspace else None,
        shared_by=InvitationSender(id=sender.id, name=sender.name, email=sender.email) if sender else None,
        access_level=share.access_level,
        status=share.status,
        created_at=share.created_at,
    )


@router.get("/", response_model=List[WorkspaceResponse])
async def get_workspaces(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get workspaces the current user owns or was given access to"""
    workspaces = await workspace_service.get_user_workspaces(db, current_user)
    return [
        WorkspaceResponse(
            id=workspace.id,
            name=workspace.name,
            owner_id=workspace.owner_id,
            is_default=workspace.is_default,
            access_level=level.value,
            created_at=workspace.created_at,
        )
        for workspace, level in workspaces
    ]


@router.post("/", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(
    workspace: WorkspaceCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a workspace"""
    created = await workspace_service.create_workspace(db, current_user, workspace.name)
    return WorkspaceResponse(
        id=created.id,
        name=created.name,
        owner_id=created.owner_id,
        is_default=created.is_default,
        access_level="owner",
        created_at=created.created_at,
    )


@router.get("/invitations", response_model=List[WorkspaceInvitation])
async def get_invitations(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get pending workspace invitations for the current user"""
    shares = await workspace_service.list_pending_invitations(db, current_user)
    return [to_invitation(share) for share in shares]


@router.patch("/invitations/{share_id}", response_model=WorkspaceInvitation)
async def respond_to_invitation(
    share_id: str,
    status_update: ShareStatusUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Accept or reject a workspace invitation"""
    share = await share_service.respond_to_workspace_invitation(
        db, share_id, current_user, status_update.status
    )
    return to_invitation(share)


@router.get("/{workspace_id}/pages", response_model=List[PageResponse])
async def get_workspace_pages(
    workspace_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the pages of a workspace visible to the current user"""
    pages = await workspace_service.get_workspace_pages(db, workspace_id, current_user)
    return [page_to_response(page, level) for page, level in pages]


@router.post("/{workspace_id}/share", response_model=ShareCreateResponse)
async def share_workspace(
    workspace_id: str,
    share_data: ShareCreate,
    response: Response,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Invite an email address to a workspace (owner only)"""
    result = await share_service.create_share(
        db, ResourceKind.WORKSPACE, workspace_id, current_user, share_data.email, share_data.access_level
    )
    if result.created:
        response.status_code = status.HTTP_201_CREATED
    return ShareCreateResponse(
        message="Workspace shared successfully" if result.created else "Share updated successfully",
        created=result.created,
        share=ShareResponse.model_validate(result.share),
    )
