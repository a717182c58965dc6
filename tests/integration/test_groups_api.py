"""
Integration tests for groups and the membership workflow.

Membership transitions are checked end to end: state change, response
body and the notification stored for the right user.
"""
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models import Group, GroupAccess, GroupMember, MemberRole, MemberStatus, Message, User
from tests.factories import add_member, create_group, create_post, create_stored_file, create_user


def inbox(db: Session, user: User) -> list[Message]:
    db.expire_all()
    return (
        db.query(Message)
        .filter(Message.receiver_id == user.id, Message.sender_id.is_(None))
        .order_by(Message.id)
        .all()
    )


# =============================================================================
# Groups
# =============================================================================


class TestCreateAndBrowse:
    """Tests for creating and listing groups."""

    def test_create_group(self, auth_client: TestClient, db: Session, test_user: User):
        response = auth_client.post("/group", json={"title": "Hikers", "description": "Walks"})

        assert response.status_code == 201
        data = response.json()
        assert data["owner_id"] == test_user.id
        assert data["access"] == "restricted"
        assert data["includes_me"] is True

        owner_row = db.query(GroupMember).filter(GroupMember.group_id == data["id"]).one()
        assert owner_row.role == MemberRole.OWNER
        assert owner_row.status == MemberStatus.ACCEPTED

    def test_create_open_group_with_banner(self, auth_client: TestClient, db: Session):
        banner = create_stored_file(db)

        response = auth_client.post("/group", json={
            "title": "Open house", "access": "open", "banner": banner.token,
        })

        assert response.json()["access"] == "open"
        assert response.json()["banner"] == banner.token

    def test_duplicate_title(self, auth_client: TestClient, db: Session):
        create_group(db, create_user(db), title="Hikers")

        response = auth_client.post("/group", json={"title": "Hikers"})

        assert response.status_code == 409
        assert db.query(Group).count() == 1

    def test_list_groups_flags_membership(self, client: TestClient, db: Session, auth_headers):
        me = create_user(db)
        mine = create_group(db, me, title="A")
        other = create_group(db, create_user(db), title="B")

        data = client.get("/groups", headers=auth_headers(me)).json()

        assert [(g["id"], g["includes_me"]) for g in data] == [(mine.id, True), (other.id, False)]

    def test_my_groups(self, client: TestClient, db: Session, auth_headers):
        me = create_user(db)
        joined = create_group(db, create_user(db), members=[me])
        create_group(db, create_user(db))

        data = client.get("/groups/my", headers=auth_headers(me)).json()

        assert [g["id"] for g in data] == [joined.id]

    def test_group_detail_shows_status(self, client: TestClient, db: Session, auth_headers):
        me = create_user(db)
        group = create_group(db, create_user(db))
        add_member(db, group, me, status=MemberStatus.INVITED)

        data = client.get(f"/group/{group.id}", headers=auth_headers(me)).json()

        assert data["includes_me"] is False
        assert data["my_status"] == "invited"

    def test_members_list_marks_owner(self, client: TestClient, db: Session):
        owner = create_user(db)
        member = create_user(db)
        group = create_group(db, owner, members=[member])

        data = client.get(f"/group/{group.id}/members").json()

        assert {(m["id"], m["owner"]) for m in data} == {(owner.id, True), (member.id, False)}

    def test_unknown_group(self, client: TestClient):
        assert client.get("/group/4242").status_code == 404


# =============================================================================
# Joining
# =============================================================================


class TestJoinFlow:
    """Tests for join requests, invitations and their notifications."""

    def test_join_restricted_group_notifies_owner_once(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        user = create_user(db, nickname="newbie")
        group = create_group(db, owner, title="Hikers")
        headers = auth_headers(user)

        first = client.post(f"/group/{group.id}/join", headers=headers)
        second = client.post(f"/group/{group.id}/join", headers=headers)

        assert first.json()["status"] == "requested"
        assert second.json()["status"] == "requested"
        messages = inbox(db, owner)
        assert len(messages) == 1
        assert "newbie has requested to join your group <strong>Hikers</strong>" in messages[0].content
        assert f"/group/{group.id}/requests/{user.id}/accept" in messages[0].content

    def test_join_open_group(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        user = create_user(db)
        group = create_group(db, owner, access=GroupAccess.OPEN)

        response = client.post(f"/group/{group.id}/join", headers=auth_headers(user))

        assert response.json()["status"] == "accepted"
        assert len(inbox(db, owner)) == 1

    def test_owner_accepts_request(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        user = create_user(db)
        group = create_group(db, owner)
        client.post(f"/group/{group.id}/join", headers=auth_headers(user))

        requests = client.get(f"/group/{group.id}/requests", headers=auth_headers(owner)).json()
        response = client.post(
            f"/group/{group.id}/requests/{user.id}/accept", headers=auth_headers(owner)
        )

        assert [u["id"] for u in requests] == [user.id]
        assert response.json()["status"] == "accepted"
        assert len(inbox(db, user)) == 1

    def test_owner_declines_request(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        user = create_user(db)
        group = create_group(db, owner)
        add_member(db, group, user, status=MemberStatus.REQUESTED)

        response = client.post(
            f"/group/{group.id}/requests/{user.id}/decline", headers=auth_headers(owner)
        )

        assert response.json()["status"] == "declined"

    def test_requests_hidden_from_members(self, client: TestClient, db: Session, auth_headers):
        member = create_user(db)
        group = create_group(db, create_user(db), members=[member])

        response = client.get(f"/group/{group.id}/requests", headers=auth_headers(member))

        assert response.status_code == 403

    def test_invite_and_accept(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        invitee = create_user(db)
        group = create_group(db, owner)

        invited = client.post(f"/group/{group.id}/invite/{invitee.id}", headers=auth_headers(owner))
        invites = client.get(f"/group/{group.id}/invites", headers=auth_headers(owner)).json()
        joined = client.post(f"/group/{group.id}/join", headers=auth_headers(invitee))

        assert invited.json()["status"] == "invited"
        assert [u["id"] for u in invites] == [invitee.id]
        assert joined.json()["status"] == "accepted"
        assert len(inbox(db, invitee)) == 1
        assert len(inbox(db, owner)) == 1

    def test_decline_invite(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        invitee = create_user(db)
        group = create_group(db, owner)
        client.post(f"/group/{group.id}/invite/{invitee.id}", headers=auth_headers(owner))

        response = client.post(f"/group/{group.id}/decline", headers=auth_headers(invitee))

        assert response.json()["status"] == "declined"
        assert len(inbox(db, owner)) == 1

    def test_outsider_cannot_invite(self, client: TestClient, db: Session, auth_headers):
        group = create_group(db, create_user(db))

        response = client.post(
            f"/group/{group.id}/invite/{create_user(db).id}", headers=auth_headers(create_user(db))
        )

        assert response.status_code == 403


# =============================================================================
# Leaving and ownership
# =============================================================================


class TestLeaveAndOwnership:
    """Tests for leaving, removal and ownership transfer."""

    def test_member_leaves(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        member = create_user(db)
        group = create_group(db, owner, members=[member])

        response = client.post(f"/group/{group.id}/leave", headers=auth_headers(member))

        assert response.json()["status"] is None
        assert len(inbox(db, owner)) == 1

    def test_owner_cannot_leave(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        group = create_group(db, owner)

        response = client.post(f"/group/{group.id}/leave", headers=auth_headers(owner))

        assert response.status_code == 409
        assert response.json() == {"error": "Transfer ownership before leaving the group"}

    def test_remove_member(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        member = create_user(db)
        group = create_group(db, owner, members=[member])

        response = client.post(
            f"/group/{group.id}/members/{member.id}/remove", headers=auth_headers(owner)
        )

        assert response.json()["status"] is None
        assert len(inbox(db, member)) == 1

    def test_transfer_ownership(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        member = create_user(db)
        group = create_group(db, owner, members=[member])

        response = client.post(f"/group/{group.id}/transfer/{member.id}", headers=auth_headers(owner))

        assert response.status_code == 200
        assert response.json()["owner_id"] == member.id
        assert len(inbox(db, member)) == 1

        # The old owner is now free to leave
        left = client.post(f"/group/{group.id}/leave", headers=auth_headers(owner))
        assert left.status_code == 200

    def test_transfer_to_non_member(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        group = create_group(db, owner)

        response = client.post(
            f"/group/{group.id}/transfer/{create_user(db).id}", headers=auth_headers(owner)
        )

        assert response.status_code == 400

    def test_transfer_by_non_owner(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        member = create_user(db)
        group = create_group(db, owner, members=[member])

        response = client.post(f"/group/{group.id}/transfer/{member.id}", headers=auth_headers(member))

        assert response.status_code == 403


# =============================================================================
# Group content
# =============================================================================


class TestGroupContent:
    def test_group_posts_for_members(self, client: TestClient, db: Session, auth_headers):
        owner = create_user(db)
        group = create_group(db, owner)
        post = create_post(db, owner, group=group)

        response = client.get(f"/group/{group.id}/posts", headers=auth_headers(owner))

        assert [p["id"] for p in response.json()] == [post.id]
