import json

import pytest
from sqlalchemy import func, select

from app.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from app.models.notification import Notification
from app.models.share import AccessLevel, ResourceKind, Share, ShareStatus
from app.schemas.page import PageCreate
from app.services import pages as page_service
from app.services import shares as share_service
from app.services.access import AccessResult, ActorById, resolve_page_access
from app.services.workspaces import get_user_workspaces, get_workspace_share


@pytest.fixture()
async def people(create_user):
    return {
        "alice": await create_user("alice@example.com", "Alice"),
        "bob": await create_user("bob@example.com", "Bob"),
        "carol": await create_user("carol@example.com", "Carol"),
    }


@pytest.fixture()
async def page(db, people):
    return await page_service.create_page(db, people["alice"], PageCreate(title="Roadmap", tags=["q3"]))


async def _count_shares(db):
    return await db.scalar(select(func.count(Share.id)))


async def test_create_share_starts_pending_with_invite_token(db, people, page):
    result = await share_service.create_share(
        db, ResourceKind.PAGE, page.id, people["alice"], "Bob@Example.com", "view"
    )

    assert result.created is True
    share = result.share
    assert share.status == ShareStatus.PENDING.value
    assert share.shared_with_email == "bob@example.com"
    assert share.access_level == "view"
    assert share.workspace_id == page.workspace_id
    assert len(share.invite_token) == 64
    assert share_service.invite_link(share).endswith(f"/invite/{share.invite_token}")


async def test_reinvite_updates_level_without_touching_status(db, people, page):
    alice, bob = people["alice"], people["bob"]
    first = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "edit")
    await share_service.accept_share(db, first.share.id, bob)
    assert await resolve_page_access(db, page.id, ActorById(bob.id)) == AccessResult(True, AccessLevel.EDIT)

    shares_before = await _count_shares(db)
    second = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")

    assert second.created is False
    assert second.share.id == first.share.id
    assert second.share.status == ShareStatus.ACCEPTED.value
    assert second.share.access_level == "view"
    assert second.share.updated_at is not None
    assert await _count_shares(db) == shares_before
    assert await resolve_page_access(db, page.id, ActorById(bob.id)) == AccessResult(True, AccessLevel.VIEW)


async def test_reinvite_keeps_pending_status(db, people, page):
    alice, bob = people["alice"], people["bob"]
    await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")
    again = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "edit")

    assert again.created is False
    assert again.share.status == ShareStatus.PENDING.value
    assert again.share.access_level == "edit"


async def test_self_share_is_rejected_before_any_write(db, people, page):
    with pytest.raises(InvalidInputError):
        await share_service.create_share(
            db, ResourceKind.PAGE, page.id, people["alice"], "ALICE@example.com", "view"
        )
    assert await _count_shares(db) == 0


@pytest.mark.parametrize("level", ["owner", "admin", "superuser", ""])
async def test_page_share_rejects_unknown_levels(db, people, page, level):
    with pytest.raises(InvalidInputError):
        await share_service.create_share(db, ResourceKind.PAGE, page.id, people["alice"], "bob@example.com", level)


async def test_invalid_email_is_rejected(db, people, page):
    with pytest.raises(InvalidInputError):
        await share_service.create_share(db, ResourceKind.PAGE, page.id, people["alice"], "not-an-email", "view")


async def test_viewer_cannot_reshare_but_editor_can(db, people, page):
    alice, bob, carol = people["alice"], people["bob"], people["carol"]
    result = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")
    await share_service.accept_share(db, result.share.id, bob)

    with pytest.raises(ForbiddenError):
        await share_service.create_share(db, ResourceKind.PAGE, page.id, bob, carol.email, "view")

    await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "edit")
    reshared = await share_service.create_share(db, ResourceKind.PAGE, page.id, bob, carol.email, "view")
    assert reshared.created is True
    assert reshared.share.shared_by_user_id == bob.id


async def test_stranger_sharing_sees_not_found(db, people, page):
    with pytest.raises(NotFoundError):
        await share_service.create_share(
            db, ResourceKind.PAGE, page.id, people["carol"], "bob@example.com", "view"
        )


async def test_accepting_page_share_opens_scoped_workspace(db, people, page):
    alice, bob = people["alice"], people["bob"]
    result = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "edit")
    accepted = await share_service.accept_share(db, result.share.id, bob)
    assert accepted.status == ShareStatus.ACCEPTED.value

    workspace_share = await get_workspace_share(db, page.workspace_id, bob.email)
    assert workspace_share.status == ShareStatus.ACCEPTED.value
    assert workspace_share.access_level == AccessLevel.VIEW.value
    assert workspace_share.is_scoped is True
    assert workspace_share.shared_page_ids == [page.id]

    workspace_ids = [workspace.id for workspace, _ in await get_user_workspaces(db, bob)]
    assert page.workspace_id in workspace_ids


async def test_only_recipient_can_accept(db, people, page):
    alice, bob = people["alice"], people["bob"]
    result = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")

    with pytest.raises(ForbiddenError):
        await share_service.accept_share(db, result.share.id, alice)
    with pytest.raises(NotFoundError):
        await share_service.accept_share(db, result.share.id, people["carol"])


async def test_sharer_can_reject_pending_share(db, people, page):
    alice, bob = people["alice"], people["bob"]
    result = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")

    rejected = await share_service.reject_share(db, result.share.id, alice)
    assert rejected.status == ShareStatus.REJECTED.value
    assert await resolve_page_access(db, page.id, ActorById(bob.id)) == AccessResult(False)


async def test_no_transition_out_of_terminal_states(db, people, page):
    alice, bob = people["alice"], people["bob"]
    result = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")
    await share_service.accept_share(db, result.share.id, bob)

    with pytest.raises(ConflictError):
        await share_service.reject_share(db, result.share.id, bob)
    with pytest.raises(ConflictError):
        await share_service.accept_share(db, result.share.id, bob)

    share = await share_service.load_share(db, result.share.id)
    assert share.status == ShareStatus.ACCEPTED.value


async def test_delete_share_is_owner_only_and_removes_scoped_workspace(db, people, page):
    alice, bob = people["alice"], people["bob"]
    result = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")
    await share_service.accept_share(db, result.share.id, bob)

    with pytest.raises(ForbiddenError):
        await share_service.delete_share(db, result.share.id, bob)

    await share_service.delete_share(db, result.share.id, alice)

    assert await share_service.load_share(db, result.share.id) is None
    assert await get_workspace_share(db, page.workspace_id, bob.email) is None
    assert await resolve_page_access(db, page.id, ActorById(bob.id)) == AccessResult(False)


async def test_deleted_share_can_be_recreated_as_pending(db, people, page):
    alice, bob = people["alice"], people["bob"]
    result = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")
    await share_service.reject_share(db, result.share.id, bob)
    await share_service.delete_share(db, result.share.id, alice)

    again = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")
    assert again.created is True
    assert again.share.status == ShareStatus.PENDING.value


async def test_notification_only_on_first_invite(db, fake_redis, people, page):
    alice, bob = people["alice"], people["bob"]
    await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")
    await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "edit")

    invitations = (await db.execute(
        select(Notification).where(
            Notification.recipient_email == bob.email,
            Notification.type == "share_invitation",
        )
    )).scalars().all()
    assert len(invitations) == 1
    assert invitations[0].payload["page_id"] == page.id
    assert invitations[0].link.startswith("/invite/")

    published = [json.loads(message) for _, message in fake_redis.published]
    assert [message["type"] for message in published].count("share_invitation") == 1


async def test_list_page_shares_visible_to_collaborators(db, people, page):
    alice, bob, carol = people["alice"], people["bob"], people["carol"]
    result = await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, bob.email, "view")
    await share_service.create_share(db, ResourceKind.PAGE, page.id, alice, carol.email, "edit")
    await share_service.accept_share(db, result.share.id, bob)

    shares = await share_service.list_page_shares(db, page.id, bob)
    assert [share.shared_with_email for share in shares] == [bob.email, carol.email]

    await share_service.delete_share(db, result.share.id, alice)
    with pytest.raises(NotFoundError):
        await share_service.list_page_shares(db, page.id, bob)


async def test_share_endpoints(async_client, signup):
    alice = await signup("alice@example.com", "Alice")
    bob = await signup("bob@example.com", "Bob")
    response = await async_client.post("/api/v1/pages/", json={"title": "Roadmap"}, headers=alice["headers"])
    page_id = response.json()["id"]

    response = await async_client.post(
        f"/api/v1/pages/{page_id}/share",
        json={"email": "bob@example.com", "access_level": "edit"},
        headers=alice["headers"],
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["created"] is True
    assert "/invite/" in body["invite_link"]
    assert body["share"]["status"] == "pending"
    share_id = body["share"]["id"]

    response = await async_client.post(
        f"/api/v1/pages/{page_id}/share",
        json={"email": "bob@example.com", "access_level": "view"},
        headers=alice["headers"],
    )
    assert response.status_code == 200
    assert response.json()["created"] is False

    response = await async_client.patch(
        f"/api/v1/shares/{share_id}", json={"status": "accepted"}, headers=bob["headers"]
    )
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"

    response = await async_client.patch(
        f"/api/v1/shares/{share_id}", json={"status": "rejected"}, headers=bob["headers"]
    )
    assert response.status_code == 409
    assert response.json()["reason"] == "conflict"

    response = await async_client.post(
        f"/api/v1/pages/{page_id}/share",
        json={"email": "alice@example.com", "access_level": "view"},
        headers=alice["headers"],
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "invalid_input"

    response = await async_client.delete(f"/api/v1/shares/{share_id}", headers=bob["headers"])
    assert response.status_code == 403

    response = await async_client.delete(f"/api/v1/shares/{share_id}", headers=alice["headers"])
    assert response.status_code == 200

    response = await async_client.get(f"/api/v1/pages/{page_id}", headers=bob["headers"])
    assert response.status_code == 404
