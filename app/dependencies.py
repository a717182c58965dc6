"""
FastAPI dependency providers.

Every shared component is built once per application in ``create_app`` and
kept on ``app.state``; handlers receive them through these providers.
"""
from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from app.services.auth.base import AuthProvider
from app.services.event_service import EventService
from app.services.file_service import FileService
from app.services.membership_service import MembershipService
from app.services.message_service import MessageService
from app.services.follow_service import FollowService
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.post_service import PostService
from app.services.realtime import ConnectionRegistry, Publisher
from app.services.session_store import SessionStore
from app.services.user_service import UserService
from app.services.visibility import VisibilityResolver


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a database session for one request."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_auth_provider(request: Request) -> AuthProvider:
    return request.app.state.auth_provider


def get_visibility(request: Request) -> VisibilityResolver:
    return request.app.state.visibility


def get_membership_service(request: Request) -> MembershipService:
    return request.app.state.membership


def get_follow_service(request: Request) -> FollowService:
    return request.app.state.follows


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_publisher(request: Request) -> Publisher:
    return request.app.state.publisher


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


def get_post_service(request: Request) -> PostService:
    return request.app.state.posts


def get_event_service(request: Request) -> EventService:
    return request.app.state.events


def get_message_service(request: Request) -> MessageService:
    return request.app.state.messages


def get_user_service(request: Request) -> UserService:
    return request.app.state.users
