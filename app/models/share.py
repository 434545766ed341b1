from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Table, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.clock import utcnow


class ResourceKind(str, Enum):
    PAGE = "page"
    WORKSPACE = "workspace"


class ShareStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class AccessLevel(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    EDIT = "edit"
    VIEW = "view"


# Levels a share row may grant, per resource kind. Owner is never stored.
SHAREABLE_LEVELS = {
    ResourceKind.PAGE: (AccessLevel.VIEW, AccessLevel.EDIT),
    ResourceKind.WORKSPACE: (AccessLevel.VIEW, AccessLevel.EDIT, AccessLevel.ADMIN),
}


# Pages visible through a scoped workspace share
share_pages = Table(
    'share_pages',
    Base.metadata,
    Column('share_id', Integer, ForeignKey('shares.id', ondelete='CASCADE'), primary_key=True),
    Column('page_id', Integer, ForeignKey('pages.id', ondelete='CASCADE'), primary_key=True)
)


class Share(Base):
    __tablename__ = "shares"
    __table_args__ = (
        UniqueConstraint("resource_kind", "resource_id", "shared_with_email", name="uq_shares_resource_recipient"),
    )

    id = Column(Integer, primary_key=True, index=True)
    resource_kind = Column(String(20), nullable=False)
    # Page id for page shares, workspace id for workspace shares
    resource_id = Column(Integer, nullable=False, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    shared_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    shared_with_email = Column(String(255), nullable=False, index=True)
    access_level = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=ShareStatus.PENDING.value)
    invite_token = Column(String(64), unique=True, nullable=True, index=True)
    # Set on workspace shares created by accepting a page share
    is_scoped = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    shared_by = relationship("User", lazy="selectin")
    workspace = relationship("Workspace", lazy="selectin")
    shared_pages = relationship("Page", secondary=share_pages, lazy="selectin", viewonly=True)

    @property
    def shared_page_ids(self):
        return sorted(page.id for page in self.shared_pages)
