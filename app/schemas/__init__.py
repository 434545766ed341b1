from .user import UserCreate, UserResponse, UserPreferences, UserPreferencesUpdate
from .page import PageCreate, PageUpdate, PageResponse, PublicPageResponse, AccessResponse
from .share import ShareCreate, ShareStatusUpdate, ShareResponse, ShareCreateResponse, InvitePreview
from .workspace import WorkspaceCreate, WorkspaceResponse, WorkspaceInvitation
from .notification import NotificationResponse
from .auth import Token

__all__ = [
    "UserCreate", "UserResponse", "UserPreferences", "UserPreferencesUpdate",
    "PageCreate", "PageUpdate", "PageResponse", "PublicPageResponse", "AccessResponse",
    "ShareCreate", "ShareStatusUpdate", "ShareResponse", "ShareCreateResponse", "InvitePreview",
    "WorkspaceCreate", "WorkspaceResponse", "WorkspaceInvitation",
    "NotificationResponse",
    "Token"
]
