from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class WorkspaceCreate(BaseModel):
    name: str


class WorkspaceResponse(BaseModel):
    id: int
    name: str
    owner_id: int
    is_default: bool
    access_level: Optional[str] = None
    created_at: Optional[datetime] = None


class InvitationSender(BaseModel):
    id: int
    name: Optional[str] = None
    email: str


class WorkspaceInvitation(BaseModel):
    id: int
    workspace_id: int
    workspace_name: Optional[str] = None
    shared_by: Optional[InvitationSender] = None
    access_level: str
    status: str
    created_at: Optional[datetime] = None
