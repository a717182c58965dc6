"""
Security tests for CSRF origin validation.

State-changing requests authenticated by cookie must carry a same-origin
Origin or Referer header. Bearer requests and safe methods are exempt.
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.config import settings
from app.models import Post, Session as UserSession


@pytest.fixture
def bare_client(app: FastAPI, test_session: UserSession):
    """Cookie-authenticated client without a default Referer."""
    with TestClient(app) as test_client:
        test_client.cookies.set(settings.session_cookie_name, test_session.token)
        yield test_client


@pytest.mark.security
class TestCSRFOrigin:
    """Tests for the Origin/Referer check."""

    def test_post_without_origin_rejected(self, bare_client: TestClient, db: Session):
        response = bare_client.post("/post", json={"title": "t", "content": "c"})

        assert response.status_code == 403
        assert response.json() == {"error": "Origin validation failed"}
        assert db.query(Post).count() == 0

    def test_foreign_origin_rejected(self, bare_client: TestClient):
        response = bare_client.post(
            "/post", json={"title": "t", "content": "c"}, headers={"origin": "http://evil.example"}
        )

        assert response.status_code == 403

    def test_foreign_referer_rejected(self, bare_client: TestClient):
        response = bare_client.post(
            "/post", json={"title": "t", "content": "c"},
            headers={"referer": "http://evil.example/testserver"},
        )

        assert response.status_code == 403

    def test_same_origin_allowed(self, bare_client: TestClient):
        response = bare_client.post(
            "/post", json={"title": "t", "content": "c"}, headers={"origin": "http://testserver"}
        )

        assert response.status_code == 201

    def test_get_needs_no_origin(self, bare_client: TestClient):
        assert bare_client.get("/user").status_code == 200

    def test_bearer_requests_exempt(self, app: FastAPI, test_session: UserSession):
        with TestClient(app) as client:
            response = client.post(
                "/post",
                json={"title": "t", "content": "c"},
                headers={"Authorization": f"Bearer {test_session.token}"},
            )

        assert response.status_code == 201

    def test_login_checked_too(self, app: FastAPI):
        with TestClient(app) as client:
            response = client.post("/login", json={"email": "a@example.com", "password": "x"})

        assert response.status_code == 403
