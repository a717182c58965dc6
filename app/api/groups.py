"""Groups and the membership workflow."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.dependencies import (
    get_db,
    get_dispatcher,
    get_event_service,
    get_file_service,
    get_membership_service,
    get_visibility,
)
from app.models import Group, GroupAccess, MemberStatus, User
from app.services.auth.dependencies import get_current_user, viewer_id
from app.services.event_service import EventService
from app.services.file_service import FileService
from app.services.membership_service import MembershipService
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.notifications import Notification
from app.services.visibility import VisibilityResolver, deny


router = APIRouter(tags=["groups"])


class GroupCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    access: GroupAccess = GroupAccess.RESTRICTED
    banner: Optional[str] = None


def _membership_response(
    db: Session,
    membership: MembershipService,
    group_id: int,
    user_id: int,
    notification: Optional[Notification],
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher,
) -> dict:
    """Hand off the notification (if the state changed) and report the new state."""
    if notification is not None:
        dispatcher.schedule(background_tasks, notification)
    status = membership.status_of(db, group_id, user_id)
    return {"group_id": group_id, "user_id": user_id, "status": status.value if status else None}


# =============================================================================
# Groups
# =============================================================================


@router.post("/group", status_code=201)
def create_group(
    body: GroupCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    files: FileService = Depends(get_file_service),
):
    if body.banner:
        files.require_tokens(db, [body.banner])
    group = membership.create_group(
        db, user, body.title, body.description, access=body.access, banner=body.banner
    )
    return group.to_dict(includes_me=True)


@router.get("/groups")
def list_groups(
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    visibility: VisibilityResolver = Depends(get_visibility),
):
    """Every group, annotated with whether the viewer is a member."""
    groups = db.query(Group).order_by(Group.title).all()
    return visibility.annotate_groups(db, viewer, groups)


@router.get("/groups/my")
def my_groups(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
):
    return [group.to_dict(includes_me=True) for group in membership.groups_of(db, user.id)]


@router.get("/group/{group_id}")
def get_group(
    group_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
):
    group = membership.get_group(db, group_id)
    status = membership.status_of(db, group_id, viewer)
    data = group.to_dict(includes_me=status == MemberStatus.ACCEPTED)
    data["my_status"] = status.value if status else None
    return data


@router.get("/group/{group_id}/members")
def group_members(
    group_id: int,
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
):
    group = membership.get_group(db, group_id)
    return [
        {**user.limited(), "owner": user.id == group.owner_id}
        for user in membership.members(db, group_id)
    ]


@router.get("/group/{group_id}/posts")
def group_posts(
    group_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    visibility: VisibilityResolver = Depends(get_visibility),
):
    """Posts of a group. Members only."""
    membership.get_group(db, group_id)
    if not visibility.is_member(db, group_id, viewer):
        raise deny(viewer, "Only group members can see group posts")
    return [post.to_dict() for post in visibility.group_posts(db, viewer, group_id)]


@router.get("/group/{group_id}/events")
def group_events(
    group_id: int,
    viewer: int = Depends(viewer_id),
    db: Session = Depends(get_db),
    events: EventService = Depends(get_event_service),
):
    return [event.to_dict() for event in events.group_events(db, viewer, group_id)]


@router.get("/group/{group_id}/invites")
def group_invites(
    group_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    visibility: VisibilityResolver = Depends(get_visibility),
):
    """Outstanding invitations. Visible to members."""
    membership.get_group(db, group_id)
    if not visibility.is_member(db, group_id, user.id):
        raise deny(user.id, "Only group members can see invitations")
    return [u.limited() for u in membership.members(db, group_id, MemberStatus.INVITED)]


@router.get("/group/{group_id}/requests")
def group_requests(
    group_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
):
    """Pending join requests. Owner only."""
    group = membership.get_group(db, group_id)
    if group.owner_id != user.id:
        raise deny(user.id, "Only the group owner can see join requests")
    return [u.limited() for u in membership.members(db, group_id, MemberStatus.REQUESTED)]


# =============================================================================
# Membership transitions
# =============================================================================


@router.post("/group/{group_id}/join")
def join_group(
    group_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Join an open group, accept an invitation, or request to join."""
    notification = membership.join(db, group_id, user)
    return _membership_response(db, membership, group_id, user.id, notification, background_tasks, dispatcher)


@router.post("/group/{group_id}/leave")
def leave_group(
    group_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = membership.leave(db, group_id, user)
    return _membership_response(db, membership, group_id, user.id, notification, background_tasks, dispatcher)


@router.post("/group/{group_id}/invite/{user_id}")
def invite_user(
    group_id: int,
    user_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = membership.invite(db, group_id, user, user_id)
    return _membership_response(db, membership, group_id, user_id, notification, background_tasks, dispatcher)


@router.post("/group/{group_id}/decline")
def decline_invite(
    group_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = membership.decline_invite(db, group_id, user)
    return _membership_response(db, membership, group_id, user.id, notification, background_tasks, dispatcher)


@router.post("/group/{group_id}/requests/{user_id}/accept")
def accept_request(
    group_id: int,
    user_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = membership.accept_request(db, group_id, user, user_id)
    return _membership_response(db, membership, group_id, user_id, notification, background_tasks, dispatcher)


@router.post("/group/{group_id}/requests/{user_id}/decline")
def decline_request(
    group_id: int,
    user_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = membership.decline_request(db, group_id, user, user_id)
    return _membership_response(db, membership, group_id, user_id, notification, background_tasks, dispatcher)


@router.post("/group/{group_id}/members/{user_id}/remove")
def remove_member(
    group_id: int,
    user_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = membership.remove_member(db, group_id, user, user_id)
    return _membership_response(db, membership, group_id, user_id, notification, background_tasks, dispatcher)


@router.post("/group/{group_id}/transfer/{user_id}")
def transfer_ownership(
    group_id: int,
    user_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    membership: MembershipService = Depends(get_membership_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Make another accepted member the owner."""
    notification = membership.transfer_ownership(db, group_id, user, user_id)
    if notification is not None:
        dispatcher.schedule(background_tasks, notification)
    group = membership.get_group(db, group_id)
    return group.to_dict(includes_me=True)
