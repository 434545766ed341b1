from .user import User
from .workspace import Workspace
from .page import Page
from .share import Share, ShareStatus, ResourceKind, AccessLevel, share_pages
from .tag import Tag
from .page_tag import page_tags
from .notification import Notification

__all__ = [
    "User", "Workspace", "Page", "Share", "ShareStatus", "ResourceKind",
    "AccessLevel", "share_pages", "Tag", "page_tags", "Notification",
]
