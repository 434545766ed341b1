from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class PageBase(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: Optional[str] = None
    tags: Optional[List[str]] = []


class PageCreate(PageBase):
    is_favorite: bool = False
    workspace_id: Optional[int] = None


class PageUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    is_favorite: Optional[bool] = None
    is_public: Optional[bool] = None


class PageResponse(PageBase):
    id: int
    is_favorite: bool
    is_public: bool
    owner_id: int
    owner_name: Optional[str] = None
    workspace_id: int
    access_level: Optional[str] = None  # Requesting user's resolved level
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PageOwner(BaseModel):
    name: str
    email: str


class PublicPageResponse(BaseModel):
    id: int
    title: str
    content: Optional[str] = None
    tags: List[str] = []
    owner: PageOwner
    access_level: str = "view"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AccessResponse(BaseModel):
    has_access: bool
    access_level: Optional[str] = None
