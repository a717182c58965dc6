"""User profiles and follow relationships."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.dependencies import (
    get_db,
    get_dispatcher,
    get_follow_service,
    get_post_service,
    get_user_service,
    get_visibility,
)
from app.models.user import User
from app.services.auth.dependencies import get_current_user, viewer_id
from app.services.follow_service import FollowService
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.post_service import PostService
from app.services.user_service import UserService
from app.services.visibility import VisibilityResolver, deny


router = APIRouter(prefix="/user", tags=["users"])


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    nickname: Optional[str] = Field(default=None, max_length=100)
    about_me: Optional[str] = None
    avatar: Optional[str] = None
    private: Optional[bool] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(default=None, min_length=8, max_length=128)


# =============================================================================
# Profiles
# =============================================================================


@router.get("")
def me(user: User = Depends(get_current_user)):
    return user.to_dict()


@router.post("")
def update_me(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    changes = body.model_dump(exclude_unset=True, exclude={"current_password", "new_password"})
    # Required columns cannot be cleared
    for field in ("first_name", "last_name", "date_of_birth", "private"):
        if changes.get(field) is None:
            changes.pop(field, None)
    updated = users.update_profile(
        db, user, changes,
        current_password=body.current_password,
        new_password=body.new_password,
    )
    return updated.to_dict()


@router.get("/contacts")
def contacts(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    follows: FollowService = Depends(get_follow_service),
):
    """People the current user can chat with: accepted followers and followees."""
    return [u.limited() for u in follows.contacts(db, user.id)]


@router.get("/email/{email}")
def user_by_email(
    email: str,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
    visibility: VisibilityResolver = Depends(get_visibility),
):
    user = users.get_by_email(db, email)
    return visibility.profile_for(db, viewer, user)


@router.get("/{user_id}")
def user_profile(
    user_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
    visibility: VisibilityResolver = Depends(get_visibility),
    follows: FollowService = Depends(get_follow_service),
):
    """Full profile, or the limited projection with ``access: false``."""
    user = users.get(db, user_id)
    profile = visibility.profile_for(db, viewer, user)
    status = follows.status(db, viewer, user.id)
    profile["follow_status"] = status.value if status else None
    return profile


@router.get("/{user_id}/posts")
def user_posts(
    user_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    posts: PostService = Depends(get_post_service),
):
    return [post.to_dict() for post in posts.user_posts(db, viewer, user_id)]


# =============================================================================
# Followers
# =============================================================================


def _require_profile_access(db: Session, viewer: int, user: User, visibility: VisibilityResolver):
    if not visibility.can_view_profile(db, viewer, user):
        raise deny(viewer, "This profile is private")


@router.get("/{user_id}/followers")
def followers(
    user_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
    visibility: VisibilityResolver = Depends(get_visibility),
    follows: FollowService = Depends(get_follow_service),
):
    user = users.get(db, user_id)
    _require_profile_access(db, viewer, user, visibility)
    return [u.limited() for u in follows.followers(db, user.id)]


@router.get("/{user_id}/following")
def following(
    user_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
    visibility: VisibilityResolver = Depends(get_visibility),
    follows: FollowService = Depends(get_follow_service),
):
    user = users.get(db, user_id)
    _require_profile_access(db, viewer, user, visibility)
    return [u.limited() for u in follows.following(db, user.id)]


@router.post("/{user_id}/follow")
def follow(
    user_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    follows: FollowService = Depends(get_follow_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = follows.follow(db, user, user_id)
    if notification:
        dispatcher.schedule(background_tasks, notification)
    status = follows.status(db, user.id, user_id)
    return {"status": status.value if status else None}


@router.post("/{user_id}/unfollow")
def unfollow(
    user_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    follows: FollowService = Depends(get_follow_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = follows.unfollow(db, user, user_id)
    if notification:
        dispatcher.schedule(background_tasks, notification)
    return {"status": None}


@router.post("/{user_id}/accept")
def accept_follower(
    user_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    follows: FollowService = Depends(get_follow_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Accept a pending follow request from ``user_id``."""
    notification = follows.accept(db, user, user_id)
    if notification:
        dispatcher.schedule(background_tasks, notification)
    return {"status": "accepted"}
