"""
Security tests for session handling.

Tests that:
- Expired, revoked and forged tokens are rejected
- Tokens are not predictable or reused
- Logging out one device leaves others untouched
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models import Session as UserSession, User
from tests.factories import create_session, create_user


@pytest.mark.security
class TestSessionSecurity:
    """Tests for session token validation."""

    def test_expired_session_rejected(self, client: TestClient, db: Session, test_user: User):
        session = create_session(db, test_user, expires_in=timedelta(seconds=-1))

        response = client.get("/user", headers={"Authorization": f"Bearer {session.token}"})

        assert response.status_code == 401

    def test_expired_session_not_extended(self, client: TestClient, db: Session, test_user: User):
        session = create_session(db, test_user, expires_in=timedelta(seconds=-1))
        before = session.expires_at

        client.get("/user", headers={"Authorization": f"Bearer {session.token}"})

        db.refresh(session)
        assert session.expires_at == before

    def test_forged_token_rejected(self, client: TestClient):
        response = client.get("/user", headers={"Authorization": "Bearer forged-token"})

        assert response.status_code == 401

    def test_forged_cookie_rejected(self, client: TestClient):
        client.cookies.set("session", "forged-token")

        assert client.get("/user").status_code == 401

    def test_revoked_session_rejected(self, client: TestClient, db: Session, test_user: User):
        session = create_session(db, test_user)
        headers = {"Authorization": f"Bearer {session.token}"}
        assert client.get("/user", headers=headers).status_code == 200

        client.get("/logout", headers=headers)

        assert client.get("/user", headers=headers).status_code == 401

    def test_logout_keeps_other_devices(self, client: TestClient, db: Session, test_user: User):
        phone = create_session(db, test_user)
        laptop = create_session(db, test_user)

        client.get("/logout", headers={"Authorization": f"Bearer {phone.token}"})

        assert client.get("/user", headers={"Authorization": f"Bearer {laptop.token}"}).status_code == 200

    def test_login_issues_fresh_token(self, client: TestClient, db: Session):
        user = create_user(db, email="ada@example.com", password="correct horse")
        old = create_session(db, user)

        token = client.post(
            "/login", json={"email": "ada@example.com", "password": "correct horse"}
        ).json()["token"]

        assert token != old.token
        assert len(token) >= 32

    def test_password_hash_never_returned(self, auth_client: TestClient, db: Session):
        response = auth_client.get("/user")

        assert "password" not in response.text

    def test_session_row_removed_on_logout_all(self, client: TestClient, db: Session, test_user: User):
        session = create_session(db, test_user)

        client.get("/logout/all", headers={"Authorization": f"Bearer {session.token}"})

        db.expire_all()
        assert db.query(UserSession).filter(UserSession.user_id == test_user.id).count() == 0

    def test_session_deleted_elsewhere_rejected(self, client: TestClient, db: Session):
        create_user(db, email="ada@example.com", password="correct horse")
        token = client.post(
            "/login", json={"email": "ada@example.com", "password": "correct horse"}
        ).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}
        assert client.get("/user", headers=headers).status_code == 200

        db.query(UserSession).filter(UserSession.token == token).delete()
        db.commit()

        assert client.get("/user", headers=headers).status_code == 401

    def test_session_deleted_elsewhere_is_anonymous(self, client: TestClient, db: Session):
        user = create_user(db, email="ada@example.com", password="correct horse", private=True)
        token = client.post(
            "/login", json={"email": "ada@example.com", "password": "correct horse"}
        ).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}
        assert client.get(f"/user/{user.id}", headers=headers).json()["access"] is True

        db.query(UserSession).filter(UserSession.token == token).delete()
        db.commit()

        assert client.get(f"/user/{user.id}", headers=headers).json()["access"] is False
