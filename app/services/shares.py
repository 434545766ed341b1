"""Share lifecycle, shared by page and workspace shares.

A share starts ``pending``. Only the invited address may accept it; the
invited address or the sharer may reject it. ``accepted`` and ``rejected``
are terminal, leaving deletion by the resource owner as the only way out.
Re-sharing with an existing recipient overwrites the access level and keeps
the status. Accepting a page share also opens the page's workspace to the
recipient through a scoped, view-level workspace share.
"""
import logging
import secrets
from dataclasses import dataclass
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import cache
from app.core.config import settings
from app.core.database import upsert_insert
from app.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from app.models.clock import utcnow
from app.models.page import Page
from app.models.share import SHAREABLE_LEVELS, AccessLevel, ResourceKind, Share, ShareStatus
from app.models.user import User
from app.models.workspace import Workspace
from app.services import notifications
from app.services.access import (
    actor_for,
    normalize_email,
    parse_id,
    require_level,
    resolve_page_access,
    resolve_workspace_access,
)
from app.services.workspaces import (
    ensure_page_in_recipient_workspace,
    get_workspace_share,
    remove_page_from_recipient_workspace,
)

logger = logging.getLogger(__name__)

SHARE_NOT_FOUND = "Share not found"
INVITE_NOT_FOUND = "Invalid or expired invitation"

NOT_FOUND_MESSAGES = {
    ResourceKind.PAGE: "Page not found",
    ResourceKind.WORKSPACE: "Workspace not found",
}

# Minimum level on the resource needed to share it
SHARE_PERMISSION = {
    ResourceKind.PAGE: AccessLevel.EDIT,
    ResourceKind.WORKSPACE: AccessLevel.OWNER,
}


@dataclass
class ShareResult:
    share: Share
    created: bool


def validate_recipient_email(email: str) -> str:
    try:
        validated = validate_email(email or "", check_deliverability=False)
    except EmailNotValidError:
        raise InvalidInputError("Invalid email address")
    return normalize_email(validated.normalized)


def validate_access_level(kind: ResourceKind, access_level: str) -> AccessLevel:
    try:
        level = AccessLevel(access_level)
    except ValueError:
        raise InvalidInputError("Invalid access level")
    if level not in SHAREABLE_LEVELS[kind]:
        raise InvalidInputError("Invalid access level")
    return level


def invite_link(share: Share) -> Optional[str]:
    if not share.invite_token:
        return None
    return f"{settings.APP_URL}/invite/{share.invite_token}"


async def load_share(db: AsyncSession, share_id: int) -> Optional[Share]:
    result = await db.execute(
        select(Share).where(Share.id == share_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _resource_owner_id(db: AsyncSession, share: Share) -> Optional[int]:
    if share.resource_kind == ResourceKind.PAGE.value:
        page = await db.get(Page, share.resource_id)
        return page.owner_id if page else None
    workspace = await db.get(Workspace, share.resource_id)
    return workspace.owner_id if workspace else None


async def _invalidate(db: AsyncSession, share: Share) -> None:
    """Drop cached page views whose access level a share change may affect"""
    if share.resource_kind != ResourceKind.PAGE.value:
        return
    page = await db.get(Page, share.resource_id)
    if page is not None:
        await cache.invalidate_page(page.id, page.owner_id)


async def create_share(
    db: AsyncSession,
    kind: ResourceKind,
    resource_id,
    actor: User,
    recipient_email: str,
    access_level: str
) -> ShareResult:
    """Invite ``recipient_email`` to a page or workspace, or change their level"""
    level = validate_access_level(kind, access_level)
    email = validate_recipient_email(recipient_email)

    if kind == ResourceKind.PAGE:
        access = await resolve_page_access(db, resource_id, actor_for(actor))
    else:
        access = await resolve_workspace_access(db, resource_id, actor_for(actor))
    actor_level = require_level(access, AccessLevel.VIEW, NOT_FOUND_MESSAGES[kind])
    if actor_level not in (AccessLevel.OWNER, SHARE_PERMISSION[kind]):
        raise ForbiddenError(f"You do not have permission to share this {kind.value}")

    if email == normalize_email(actor.email):
        raise InvalidInputError(f"You cannot share a {kind.value} with yourself")

    resource_id = parse_id(resource_id)
    if kind == ResourceKind.PAGE:
        page = await db.get(Page, resource_id)
        workspace_id = page.workspace_id
        title = page.title
    else:
        workspace = await db.get(Workspace, resource_id)
        workspace_id = workspace.id
        title = workspace.name

    # A scoped row only came from accepting page shares, not from an invitation
    was_scoped = False
    if kind == ResourceKind.WORKSPACE:
        existing = await get_workspace_share(db, resource_id, email)
        was_scoped = existing is not None and existing.is_scoped

    now = utcnow()
    stmt = upsert_insert(db, Share).values(
        resource_kind=kind.value,
        resource_id=resource_id,
        workspace_id=workspace_id,
        shared_by_user_id=actor.id,
        shared_with_email=email,
        access_level=level.value,
        status=ShareStatus.PENDING.value,
        invite_token=secrets.token_hex(32) if kind == ResourceKind.PAGE else None,
        is_scoped=False,
        created_at=now,
    )
    # Existing recipients keep their status; only the level changes, and an
    # explicit workspace invitation lifts the page-only restriction
    update_values = {"access_level": level.value, "updated_at": now}
    if kind == ResourceKind.WORKSPACE:
        update_values["is_scoped"] = False
    stmt = stmt.on_conflict_do_update(
        index_elements=[Share.resource_kind, Share.resource_id, Share.shared_with_email],
        set_=update_values,
    ).returning(Share.id, Share.updated_at)
    row = (await db.execute(stmt)).one()
    await db.commit()

    created = row.updated_at is None
    share = await load_share(db, row.id)
    if created or was_scoped:
        logger.info("User %s shared %s %s with %s as %s", actor.id, kind.value, resource_id, email, level.value)
        await _notify_invitation(share, actor, title)
    else:
        logger.info("Updated %s share %s to %s", kind.value, share.id, level.value)
        await _invalidate(db, share)
    return ShareResult(share=share, created=created)


async def _notify_invitation(share: Share, actor: User, title: str) -> None:
    sender = actor.name or actor.email
    if share.resource_kind == ResourceKind.PAGE.value:
        await notifications.notify(
            share.shared_with_email,
            notifications.SHARE_INVITATION,
            f'{sender} shared the page "{title}" with you.',
            f"/invite/{share.invite_token}",
            {
                "page_id": share.resource_id,
                "workspace_id": share.workspace_id,
                "sender_id": actor.id,
                "sender_name": actor.name,
                "access_level": share.access_level,
            },
        )
    else:
        await notifications.notify(
            share.shared_with_email,
            notifications.WORKSPACE_INVITATION,
            f'{sender} shared the workspace "{title}" with you.',
            "/app",
            {
                "workspace_id": share.workspace_id,
                "sender_id": actor.id,
                "sender_name": actor.name,
                "access_level": share.access_level,
            },
        )


async def _get_share_for_party(db: AsyncSession, share_id, user: User) -> Share:
    """Load a share the user takes part in; anyone else sees it as missing"""
    parsed = parse_id(share_id)
    share = await load_share(db, parsed) if parsed is not None else None
    if share is None:
        raise NotFoundError(SHARE_NOT_FOUND)

    is_party = (
        share.shared_with_email == normalize_email(user.email)
        or share.shared_by_user_id == user.id
        or await _resource_owner_id(db, share) == user.id
    )
    if not is_party:
        raise NotFoundError(SHARE_NOT_FOUND)
    return share


async def _transition(db: AsyncSession, share: Share, new_status: ShareStatus) -> None:
    # Conditional on pending so a concurrent transition cannot be overwritten
    result = await db.execute(
        update(Share)
        .where(Share.id == share.id, Share.status == ShareStatus.PENDING.value)
        .values(status=new_status.value, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise ConflictError("This invitation has already been answered")


async def accept_share(db: AsyncSession, share_id, user: User) -> Share:
    """Accept a pending share addressed to the user"""
    share = await _get_share_for_party(db, share_id, user)
    if share.shared_with_email != normalize_email(user.email):
        raise ForbiddenError("Only the invited user can accept this share")

    await _transition(db, share, ShareStatus.ACCEPTED)

    if share.resource_kind == ResourceKind.PAGE.value:
        page = await db.get(Page, share.resource_id)
        if page is None:
            await db.rollback()
            raise NotFoundError(NOT_FOUND_MESSAGES[ResourceKind.PAGE])
        await ensure_page_in_recipient_workspace(db, page, share.shared_with_email)

    await db.commit()
    logger.info("User %s accepted %s share %s", user.id, share.resource_kind, share.id)

    share = await load_share(db, share.id)
    await _invalidate(db, share)
    sharer = share.shared_by
    if sharer is not None:
        await notifications.notify(
            sharer.email,
            notifications.SHARE_ACCEPTED,
            f"{user.name or user.email} accepted your invitation.",
            None,
            {"share_id": share.id, "resource_kind": share.resource_kind, "resource_id": share.resource_id},
        )
    return share


async def reject_share(db: AsyncSession, share_id, user: User) -> Share:
    """Reject a pending share, as its recipient or its sharer"""
    share = await _get_share_for_party(db, share_id, user)
    is_recipient = share.shared_with_email == normalize_email(user.email)
    if not is_recipient and share.shared_by_user_id != user.id:
        raise ForbiddenError("Only the invited user or the sharer can reject this share")

    await _transition(db, share, ShareStatus.REJECTED)
    await db.commit()
    logger.info("User %s rejected %s share %s", user.id, share.resource_kind, share.id)

    share = await load_share(db, share.id)
    await _invalidate(db, share)
    return share


async def delete_share(db: AsyncSession, share_id, user: User) -> None:
    """Remove a share row entirely (resource owner only)"""
    share = await _get_share_for_party(db, share_id, user)
    owner_id = await _resource_owner_id(db, share)
    if owner_id != user.id:
        raise ForbiddenError("Only the owner can delete this share")

    if share.resource_kind == ResourceKind.PAGE.value:
        await remove_page_from_recipient_workspace(
            db, share.resource_id, share.workspace_id, share.shared_with_email
        )
    await _invalidate(db, share)
    await db.delete(share)
    await db.commit()
    logger.info("User %s deleted %s share %s", user.id, share.resource_kind, share.id)


async def list_page_shares(db: AsyncSession, page_id, user: User) -> List[Share]:
    """All shares of a page, visible to anyone with access to it"""
    access = await resolve_page_access(db, page_id, actor_for(user))
    require_level(access, AccessLevel.VIEW, NOT_FOUND_MESSAGES[ResourceKind.PAGE])

    result = await db.execute(
        select(Share)
        .where(
            Share.resource_kind == ResourceKind.PAGE.value,
            Share.resource_id == parse_id(page_id),
        )
        .order_by(Share.created_at, Share.id)
    )
    return list(result.scalars().all())


async def _get_pending_invite(db: AsyncSession, token: str) -> Share:
    result = await db.execute(
        select(Share).where(
            Share.invite_token == token,
            Share.resource_kind == ResourceKind.PAGE.value,
            Share.status == ShareStatus.PENDING.value,
        )
    )
    share = result.scalar_one_or_none()
    if share is None:
        raise NotFoundError(INVITE_NOT_FOUND)
    return share


async def get_invite_preview(db: AsyncSession, token: str) -> dict:
    """Public preview of a pending page invitation"""
    share = await _get_pending_invite(db, token)
    page = await db.get(Page, share.resource_id)
    if page is None:
        raise NotFoundError(NOT_FOUND_MESSAGES[ResourceKind.PAGE])

    sharer = share.shared_by
    return {
        "page_title": page.title,
        "shared_by_name": (sharer.name or sharer.email) if sharer else "Unknown user",
        "shared_with_email": share.shared_with_email,
        "access_level": share.access_level,
        "created_at": share.created_at,
    }


async def _get_invite_for_recipient(db: AsyncSession, token: str, user: User) -> Share:
    share = await _get_pending_invite(db, token)
    if share.shared_with_email != normalize_email(user.email):
        raise ForbiddenError(
            f"This invitation was sent to {share.shared_with_email}. Please sign in with that account."
        )
    return share


async def accept_invite(db: AsyncSession, token: str, user: User) -> Share:
    share = await _get_invite_for_recipient(db, token, user)
    return await accept_share(db, share.id, user)


async def reject_invite(db: AsyncSession, token: str, user: User) -> Share:
    share = await _get_invite_for_recipient(db, token, user)
    return await reject_share(db, share.id, user)


async def respond_to_workspace_invitation(db: AsyncSession, share_id, user: User, status: str) -> Share:
    share = await _get_share_for_party(db, share_id, user)
    if share.resource_kind != ResourceKind.WORKSPACE.value:
        raise NotFoundError(SHARE_NOT_FOUND)
    if status == ShareStatus.ACCEPTED.value:
        return await accept_share(db, share.id, user)
    return await reject_share(db, share.id, user)
