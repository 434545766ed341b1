from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List, Literal


class ShareCreate(BaseModel):
    # Validated by the share service so bad values map to invalid_input
    email: str
    access_level: str


class ShareStatusUpdate(BaseModel):
    status: Literal["accepted", "rejected"]


class ShareResponse(BaseModel):
    id: int
    resource_kind: str
    resource_id: int
    workspace_id: int
    shared_by_user_id: int
    shared_with_email: str
    access_level: str
    status: str
    is_scoped: bool = False
    shared_page_ids: List[int] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ShareCreateResponse(BaseModel):
    message: str
    created: bool
    share: ShareResponse
    invite_link: Optional[str] = None


class InvitePreview(BaseModel):
    page_title: str
    shared_by_name: str
    shared_with_email: str
    access_level: str
    created_at: Optional[datetime] = None


class InviteAcceptResponse(BaseModel):
    message: str
    page_id: int
    page_title: str
    access_level: str
