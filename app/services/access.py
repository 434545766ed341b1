"""Effective access level of an actor on a page or workspace.

Resolution order is fixed: the resource must exist, ownership wins over any
share row, and otherwise only an accepted share addressed to the actor's
email grants access. "No access" is a normal result, never an exception.
"""
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ForbiddenError, NotFoundError
from app.models.page import Page
from app.models.share import AccessLevel, ResourceKind, Share, ShareStatus
from app.models.user import User
from app.models.workspace import Workspace


@dataclass(frozen=True)
class ActorById:
    user_id: int


@dataclass(frozen=True)
class ActorByEmail:
    email: str


Actor = Union[ActorById, ActorByEmail]


@dataclass(frozen=True)
class AccessResult:
    has_access: bool
    level: Optional[AccessLevel] = None


NO_ACCESS = AccessResult(has_access=False)

LEVEL_RANK = {
    AccessLevel.VIEW: 1,
    AccessLevel.EDIT: 2,
    AccessLevel.ADMIN: 3,
    AccessLevel.OWNER: 4,
}

# Largest value an INTEGER primary key column holds
MAX_ID = 2**31 - 1


def normalize_email(email: str) -> str:
    return email.strip().lower()


def parse_id(value) -> Optional[int]:
    """Parse a resource identifier, returning None when it is malformed"""
    if isinstance(value, bool):
        return None
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return parsed if 0 < parsed <= MAX_ID else None


def actor_for(user: User) -> ActorById:
    return ActorById(user_id=user.id)


async def _actor_identity(db: AsyncSession, actor: Actor):
    """Return (user_id, email) for an actor; either may be None"""
    if isinstance(actor, ActorById):
        user = await db.get(User, actor.user_id)
        return actor.user_id, (user.email if user else None)

    email = normalize_email(actor.email)
    result = await db.execute(select(User.id).where(User.email == email))
    return result.scalar_one_or_none(), email


async def _resolve(
    db: AsyncSession,
    kind: ResourceKind,
    resource_id: int,
    owner_id: int,
    actor: Actor
) -> AccessResult:
    if isinstance(actor, ActorById) and actor.user_id == owner_id:
        return AccessResult(True, AccessLevel.OWNER)

    user_id, email = await _actor_identity(db, actor)
    if user_id is not None and user_id == owner_id:
        return AccessResult(True, AccessLevel.OWNER)
    if email is None:
        return NO_ACCESS

    result = await db.execute(
        select(Share.access_level).where(
            Share.resource_kind == kind.value,
            Share.resource_id == resource_id,
            Share.shared_with_email == email,
            Share.status == ShareStatus.ACCEPTED.value,
        )
    )
    level = result.scalar_one_or_none()
    if level is None:
        return NO_ACCESS
    return AccessResult(True, AccessLevel(level))


async def resolve_page_access(db: AsyncSession, page_id, actor: Actor) -> AccessResult:
    """Resolve the access level of ``actor`` on a page"""
    parsed = parse_id(page_id)
    if parsed is None:
        return NO_ACCESS
    page = await db.get(Page, parsed)
    if page is None:
        return NO_ACCESS
    return await _resolve(db, ResourceKind.PAGE, page.id, page.owner_id, actor)


async def resolve_workspace_access(db: AsyncSession, workspace_id, actor: Actor) -> AccessResult:
    """Resolve the access level of ``actor`` on a workspace"""
    parsed = parse_id(workspace_id)
    if parsed is None:
        return NO_ACCESS
    workspace = await db.get(Workspace, parsed)
    if workspace is None:
        return NO_ACCESS
    return await _resolve(db, ResourceKind.WORKSPACE, workspace.id, workspace.owner_id, actor)


def has_level(result: AccessResult, minimum: AccessLevel) -> bool:
    return result.has_access and LEVEL_RANK[result.level] >= LEVEL_RANK[minimum]


def require_level(result: AccessResult, minimum: AccessLevel, not_found_message: str) -> AccessLevel:
    """Enforce a minimum level.

    An actor without any access gets the same not-found error a missing
    resource would produce; an actor with too low a level gets Forbidden.
    """
    if not result.has_access:
        raise NotFoundError(not_found_message)
    if LEVEL_RANK[result.level] < LEVEL_RANK[minimum]:
        raise ForbiddenError()
    return result.level
