"""
Integration tests for chat messages and the notification inbox.
"""
from unittest.mock import MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.dependencies import get_publisher
from tests.factories import create_group, create_user


class TestDirectMessages:
    """Tests for one-to-one chat."""

    def test_send_and_read_conversation(self, client: TestClient, db: Session, auth_headers):
        alice = create_user(db)
        bob = create_user(db)

        sent = client.post("/message", headers=auth_headers(alice), json={
            "receiver_id": bob.id, "content": "Hi Bob",
        })
        client.post("/message", headers=auth_headers(bob), json={
            "receiver_id": alice.id, "content": "Hi Alice",
        })

        assert sent.status_code == 201
        assert sent.json()["sender_id"] == alice.id

        history = client.get("/messages", params={"receiver_id": bob.id}, headers=auth_headers(alice)).json()
        assert [m["content"] for m in history] == ["Hi Bob", "Hi Alice"]

    def test_conversation_excludes_third_parties(self, client: TestClient, db: Session, auth_headers):
        alice = create_user(db)
        bob = create_user(db)
        carol = create_user(db)
        client.post("/message", headers=auth_headers(carol), json={"receiver_id": bob.id, "content": "psst"})

        history = client.get("/messages", params={"receiver_id": bob.id}, headers=auth_headers(alice)).json()

        assert history == []

    def test_message_to_unknown_user(self, auth_client: TestClient):
        response = auth_client.post("/message", json={"receiver_id": 4242, "content": "hello?"})

        assert response.status_code == 404

    def test_empty_message(self, client: TestClient, db: Session, auth_headers):
        response = client.post("/message", headers=auth_headers(create_user(db)), json={
            "receiver_id": create_user(db).id, "content": "   ",
        })

        assert response.status_code == 400

    def test_push_failure_still_stores(self, app: FastAPI, client: TestClient, db: Session, auth_headers):
        publisher = MagicMock()
        publisher.publish.side_effect = ConnectionError("redis down")
        app.dependency_overrides[get_publisher] = lambda: publisher
        bob = create_user(db)

        response = client.post("/message", headers=auth_headers(create_user(db)), json={
            "receiver_id": bob.id, "content": "still here",
        })

        assert response.status_code == 201
        publisher.publish.assert_called_once()
        payload = publisher.publish.call_args.args[0]
        assert payload["targets"] == [bob.id]


class TestGroupMessages:
    """Tests for group chat."""

    def test_group_chat_targets_other_members(self, app: FastAPI, client: TestClient, db: Session, auth_headers):
        publisher = MagicMock()
        app.dependency_overrides[get_publisher] = lambda: publisher
        owner = create_user(db)
        member = create_user(db)
        group = create_group(db, owner, members=[member])

        response = client.post("/message", headers=auth_headers(owner), json={
            "receiver_id": group.id, "content": "Welcome", "is_group": True,
        })

        assert response.status_code == 201
        assert publisher.publish.call_args.args[0]["targets"] == [member.id]

        history = client.get(
            "/messages", params={"receiver_id": group.id, "is_group": True}, headers=auth_headers(member)
        ).json()
        assert [m["content"] for m in history] == ["Welcome"]

    def test_outsider_cannot_post_or_read(self, client: TestClient, db: Session, auth_headers):
        group = create_group(db, create_user(db))
        headers = auth_headers(create_user(db))

        posted = client.post("/message", headers=headers, json={
            "receiver_id": group.id, "content": "let me in", "is_group": True,
        })
        read = client.get("/messages", params={"receiver_id": group.id, "is_group": True}, headers=headers)

        assert posted.status_code == 403
        assert read.status_code == 403


class TestNotificationInbox:
    def test_notifications_newest_first(self, client: TestClient, db: Session, auth_headers):
        me = create_user(db)
        first = create_user(db, nickname="first")
        second = create_user(db, nickname="second")
        client.post(f"/user/{me.id}/follow", headers=auth_headers(first))
        client.post(f"/user/{me.id}/follow", headers=auth_headers(second))

        inbox = client.get("/notifications", headers=auth_headers(me)).json()

        assert len(inbox) == 2
        assert "second" in inbox[0]["content"]
        assert all(m["sender_id"] is None for m in inbox)

    def test_chat_messages_not_in_inbox(self, client: TestClient, db: Session, auth_headers):
        me = create_user(db)
        client.post("/message", headers=auth_headers(create_user(db)), json={
            "receiver_id": me.id, "content": "chat",
        })

        assert client.get("/notifications", headers=auth_headers(me)).json() == []
