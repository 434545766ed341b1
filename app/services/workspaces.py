import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import upsert_insert
from app.core.errors import ConflictError, InvalidInputError, NotFoundError
from app.models.clock import utcnow
from app.models.page import Page
from app.models.share import AccessLevel, ResourceKind, Share, ShareStatus, share_pages
from app.models.user import User
from app.models.workspace import Workspace
from app.services.access import (
    AccessResult,
    actor_for,
    parse_id,
    require_level,
    resolve_page_access,
    resolve_workspace_access,
)

logger = logging.getLogger(__name__)

WORKSPACE_NOT_FOUND = "Workspace not found"


def default_workspace_name(user: User) -> str:
    if user.name:
        return f"{user.name}'s workspace"
    username = user.email.split("@")[0]
    return f"{username[:1].upper()}{username[1:]}'s workspace"


async def create_default_workspace(db: AsyncSession, user: User) -> Workspace:
    """Add the user's default workspace to the session (caller commits)"""
    workspace = Workspace(name=default_workspace_name(user), owner_id=user.id, is_default=True)
    db.add(workspace)
    await db.flush()
    logger.info("Created default workspace %s for user %s", workspace.id, user.id)
    return workspace


async def get_default_workspace(db: AsyncSession, user: User) -> Optional[Workspace]:
    result = await db.execute(
        select(Workspace)
        .where(Workspace.owner_id == user.id)
        .order_by(Workspace.is_default.desc(), Workspace.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_workspace(db: AsyncSession, user: User, name: str) -> Workspace:
    """Create a workspace; users are currently limited to the one made at signup"""
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Workspace name is required")

    owned = await db.scalar(select(func.count(Workspace.id)).where(Workspace.owner_id == user.id))
    if owned:
        raise ConflictError("Only one workspace per user is supported")

    workspace = Workspace(name=name, owner_id=user.id, is_default=True)
    db.add(workspace)
    await db.commit()
    return workspace


async def get_user_workspaces(db: AsyncSession, user: User) -> List[Tuple[Workspace, AccessLevel]]:
    """Workspaces the user owns plus those reachable through accepted shares"""
    result = await db.execute(
        select(Workspace).where(Workspace.owner_id == user.id).order_by(Workspace.id)
    )
    workspaces = [(workspace, AccessLevel.OWNER) for workspace in result.scalars().all()]
    seen = {workspace.id for workspace, _ in workspaces}

    result = await db.execute(
        select(Workspace, Share.access_level)
        .join(Share, Share.resource_id == Workspace.id)
        .where(
            Share.resource_kind == ResourceKind.WORKSPACE.value,
            Share.shared_with_email == user.email,
            Share.status == ShareStatus.ACCEPTED.value,
        )
        .order_by(Workspace.id)
    )
    for workspace, level in result.all():
        if workspace.id not in seen:
            seen.add(workspace.id)
            workspaces.append((workspace, AccessLevel(level)))
    return workspaces


async def get_workspace_share(db: AsyncSession, workspace_id: int, email: str) -> Optional[Share]:
    result = await db.execute(
        select(Share)
        .where(
            Share.resource_kind == ResourceKind.WORKSPACE.value,
            Share.resource_id == workspace_id,
            Share.shared_with_email == email,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_workspace_pages(db: AsyncSession, workspace_id, user: User) -> List[Tuple[Page, AccessLevel]]:
    """Pages of a workspace visible to the user, with the user's level on each.

    A scoped share (created by accepting a page share) only exposes the pages
    listed on it.
    """
    access = await resolve_workspace_access(db, workspace_id, actor_for(user))
    workspace_level = require_level(access, AccessLevel.VIEW, WORKSPACE_NOT_FOUND)
    workspace_id = parse_id(workspace_id)

    query = select(Page).where(Page.workspace_id == workspace_id).order_by(Page.updated_at.desc(), Page.id.desc())
    if workspace_level != AccessLevel.OWNER:
        share = await get_workspace_share(db, workspace_id, user.email)
        if share is not None and share.is_scoped:
            query = query.where(Page.id.in_(share.shared_page_ids or [-1]))

    result = await db.execute(query)
    pages = []
    for page in result.scalars().all():
        page_access: AccessResult = await resolve_page_access(db, page.id, actor_for(user))
        # Listed through the workspace only, which implies viewing
        level = page_access.level if page_access.has_access else AccessLevel.VIEW
        pages.append((page, level))
    return pages


async def ensure_page_in_recipient_workspace(db: AsyncSession, page: Page, recipient_email: str) -> int:
    """Give the recipient of an accepted page share a view into its workspace.

    Creates an accepted, view-level, scoped workspace share if none exists.
    An existing row keeps its level, scope and status; a pending or rejected
    full invitation is never answered on the recipient's behalf. The page is
    then recorded on the row. Runs inside the caller's transaction and
    returns the share id.
    """
    workspace = await db.get(Workspace, page.workspace_id)
    if workspace is None:
        raise NotFoundError(WORKSPACE_NOT_FOUND)

    now = utcnow()
    stmt = upsert_insert(db, Share).values(
        resource_kind=ResourceKind.WORKSPACE.value,
        resource_id=workspace.id,
        workspace_id=workspace.id,
        shared_by_user_id=workspace.owner_id,
        shared_with_email=recipient_email,
        access_level=AccessLevel.VIEW.value,
        status=ShareStatus.ACCEPTED.value,
        is_scoped=True,
        created_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Share.resource_kind, Share.resource_id, Share.shared_with_email],
        set_={"updated_at": now},
        where=Share.status == ShareStatus.ACCEPTED.value,
    ).returning(Share.id)
    share_id = (await db.execute(stmt)).scalar_one_or_none()
    if share_id is None:
        # Conflicting row is an unanswered or rejected invitation
        existing = await get_workspace_share(db, workspace.id, recipient_email)
        share_id = existing.id
        logger.info("Workspace share %s left %s for %s", share_id, existing.status, recipient_email)

    link = upsert_insert(db, share_pages).values(share_id=share_id, page_id=page.id)
    await db.execute(link.on_conflict_do_nothing(index_elements=["share_id", "page_id"]))
    logger.info("Page %s added to workspace share %s for %s", page.id, share_id, recipient_email)
    return share_id


async def _drop_empty_scoped_shares(db: AsyncSession, share_ids) -> None:
    for share_id in share_ids:
        share = await db.get(Share, share_id)
        if share is None or not share.is_scoped:
            continue
        remaining = await db.scalar(
            select(func.count()).select_from(share_pages).where(share_pages.c.share_id == share_id)
        )
        if not remaining:
            await db.delete(share)


async def remove_page_from_recipient_workspace(db: AsyncSession, page_id: int, workspace_id: int, recipient_email: str) -> None:
    """Undo the propagation of one page share (caller commits)"""
    share = await get_workspace_share(db, workspace_id, recipient_email)
    if share is None:
        return
    await db.execute(
        delete(share_pages).where(share_pages.c.share_id == share.id, share_pages.c.page_id == page_id)
    )
    await _drop_empty_scoped_shares(db, [share.id])


async def remove_page_from_all_workspaces(db: AsyncSession, page_id: int) -> None:
    """Detach a page from every scoped share before it is deleted (caller commits)"""
    result = await db.execute(select(share_pages.c.share_id).where(share_pages.c.page_id == page_id))
    share_ids = [row[0] for row in result.all()]
    if not share_ids:
        return
    await db.execute(delete(share_pages).where(share_pages.c.page_id == page_id))
    await _drop_empty_scoped_shares(db, share_ids)


async def list_pending_invitations(db: AsyncSession, user: User) -> List[Share]:
    """Pending full-workspace invitations addressed to the user"""
    result = await db.execute(
        select(Share)
        .where(
            Share.resource_kind == ResourceKind.WORKSPACE.value,
            Share.shared_with_email == user.email,
            Share.status == ShareStatus.PENDING.value,
        )
        .order_by(Share.created_at.desc(), Share.id.desc())
    )
    return list(result.scalars().all())
