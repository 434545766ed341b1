import pytest
from sqlalchemy import select

from app.models.clock import utcnow
from app.models.share import AccessLevel, ResourceKind, Share, ShareStatus
from app.schemas.page import PageCreate
from app.services import pages as page_service
from app.services import shares as share_service
from app.services.access import (
    AccessResult,
    ActorByEmail,
    ActorById,
    NO_ACCESS,
    has_level,
    parse_id,
    require_level,
    resolve_page_access,
    resolve_workspace_access,
)
from app.core.errors import ForbiddenError, NotFoundError


async def _page_share(db, page_id):
    result = await db.execute(
        select(Share)
        .where(Share.resource_kind == ResourceKind.PAGE.value, Share.resource_id == page_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def test_owner_resolves_to_owner_regardless_of_share_rows(db, create_user):
    alice = await create_user("alice@example.com", "Alice")
    page = await page_service.create_page(db, alice, PageCreate(title="Plans"))

    # A stray row addressed to the owner must not downgrade ownership
    db.add(Share(
        resource_kind=ResourceKind.PAGE.value,
        resource_id=page.id,
        workspace_id=page.workspace_id,
        shared_by_user_id=alice.id,
        shared_with_email=alice.email,
        access_level=AccessLevel.VIEW.value,
        status=ShareStatus.ACCEPTED.value,
        created_at=utcnow(),
    ))
    await db.commit()

    assert await resolve_page_access(db, page.id, ActorById(alice.id)) == AccessResult(True, AccessLevel.OWNER)
    assert await resolve_page_access(db, page.id, ActorByEmail("ALICE@example.com")) == AccessResult(True, AccessLevel.OWNER)


async def test_only_accepted_shares_grant_access(db, create_user):
    alice = await create_user("alice@example.com", "Alice")
    bob = await create_user("bob@example.com", "Bob")
    carol = await create_user("carol@example.com", "Carol")
    page = await page_service.create_page(db, alice, PageCreate(title="Plans"))

    await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "edit")
    await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, carol.email, "view")

    # Pending
    assert await resolve_page_access(db, page.id, ActorById(bob.id)) == NO_ACCESS

    bob_share = await db.scalar(select(Share.id).where(Share.shared_with_email == bob.email))
    carol_share = await db.scalar(select(Share.id).where(Share.shared_with_email == carol.email))
    await share_service.accept_share(db, bob_share, bob)
    await share_service.reject_share(db, carol_share, carol)

    assert await resolve_page_access(db, page.id, ActorById(bob.id)) == AccessResult(True, AccessLevel.EDIT)
    assert await resolve_page_access(db, page.id, ActorByEmail(bob.email)) == AccessResult(True, AccessLevel.EDIT)
    assert await resolve_page_access(db, page.id, ActorById(carol.id)) == NO_ACCESS


async def test_unrelated_user_has_no_access(db, create_user):
    alice = await create_user("alice@example.com", "Alice")
    carol = await create_user("carol@example.com", "Carol")
    page = await page_service.create_page(db, alice, PageCreate(title="Plans"))

    assert await resolve_page_access(db, page.id, ActorById(carol.id)) == NO_ACCESS
    assert await resolve_workspace_access(db, page.workspace_id, ActorById(carol.id)) == NO_ACCESS


async def test_email_actor_without_account_can_hold_a_share(db, create_user):
    alice = await create_user("alice@example.com", "Alice")
    page = await page_service.create_page(db, alice, PageCreate(title="Plans"))
    await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, "dave@example.com", "view")

    share = await _page_share(db, page.id)
    share.status = ShareStatus.ACCEPTED.value
    await db.commit()

    result = await resolve_page_access(db, page.id, ActorByEmail("Dave@Example.com"))
    assert result == AccessResult(True, AccessLevel.VIEW)


@pytest.mark.parametrize("value", ["abc", "", "0", "-4", "1.5", "99999999999999999999", None, True])
async def test_malformed_ids_resolve_to_no_access(db, create_user, value):
    alice = await create_user("alice@example.com", "Alice")
    assert parse_id(value) is None
    assert await resolve_page_access(db, value, ActorById(alice.id)) == NO_ACCESS
    assert await resolve_workspace_access(db, value, ActorById(alice.id)) == NO_ACCESS


async def test_missing_resource_resolves_to_no_access(db, create_user):
    alice = await create_user("alice@example.com", "Alice")
    assert await resolve_page_access(db, 9999, ActorById(alice.id)) == NO_ACCESS


def test_level_ordering():
    edit = AccessResult(True, AccessLevel.EDIT)
    assert has_level(edit, AccessLevel.VIEW)
    assert has_level(edit, AccessLevel.EDIT)
    assert not has_level(edit, AccessLevel.ADMIN)
    assert not has_level(NO_ACCESS, AccessLevel.VIEW)
    assert has_level(AccessResult(True, AccessLevel.OWNER), AccessLevel.ADMIN)


def test_require_level_distinguishes_hidden_from_forbidden():
    with pytest.raises(NotFoundError):
        require_level(NO_ACCESS, AccessLevel.VIEW, "Page not found")
    with pytest.raises(ForbiddenError):
        require_level(AccessResult(True, AccessLevel.VIEW), AccessLevel.EDIT, "Page not found")
    assert require_level(AccessResult(True, AccessLevel.ADMIN), AccessLevel.EDIT, "x") == AccessLevel.ADMIN


async def test_access_endpoint_reports_level(async_client, signup):
    alice = await signup("alice@example.com", "Alice")
    carol = await signup("carol@example.com", "Carol")
    response = await async_client.post("/api/v1/pages/", json={"title": "Plans"}, headers=alice["headers"])
    page_id = response.json()["id"]

    response = await async_client.get(f"/api/v1/pages/{page_id}/access", headers=alice["headers"])
    assert response.json() == {"has_access": True, "access_level": "owner"}

    response = await async_client.get(f"/api/v1/pages/{page_id}/access", headers=carol["headers"])
    assert response.json() == {"has_access": False, "access_level": None}
