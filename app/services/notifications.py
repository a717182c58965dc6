"""
Notification variants and their rendering.

Each domain event is a frozen dataclass carrying plain values (ids, names,
titles) so it can cross into a background task without holding ORM objects.
``render`` is the single place that knows, per variant, who is notified,
what the message says and which actions it offers.
"""
from dataclasses import dataclass, field
from html import escape
from typing import Union


@dataclass(frozen=True)
class Link:
    """Actionable button rendered under a notification."""
    name: str
    url: str
    method: str = "GET"

    def to_html(self) -> str:
        return '\n<button type="submit" formmethod="{}" formaction="{}">{}</button>'.format(
            escape(self.method), escape(self.url), escape(self.name)
        )


@dataclass(frozen=True)
class Rendered:
    targets: list[int]
    message: str  # already escaped rich text
    links: list[Link] = field(default_factory=list)

    @property
    def content(self) -> str:
        """Stored message body: the text plus a form holding the action buttons."""
        body = f"<span>{self.message}</span>"
        body += "\n<form style='display: flex; flex-direction: column; gap: 2px; margin-top: 3px'>"
        body += "".join(link.to_html() for link in self.links)
        body += "\n</form>"
        return body


# =============================================================================
# Follow notifications
# =============================================================================


@dataclass(frozen=True)
class Follow:
    follower_id: int
    follower_name: str
    target_id: int


@dataclass(frozen=True)
class FollowRequest:
    requester_id: int
    requester_name: str
    target_id: int


@dataclass(frozen=True)
class FollowAccepted:
    accepter_id: int
    accepter_name: str
    target_id: int


@dataclass(frozen=True)
class Unfollowed:
    follower_id: int
    follower_name: str
    target_id: int


# =============================================================================
# Group notifications
# =============================================================================


@dataclass(frozen=True)
class GroupInvite:
    group_id: int
    group_title: str
    inviter_name: str
    target_id: int


@dataclass(frozen=True)
class GroupJoinRequest:
    group_id: int
    group_title: str
    requester_id: int
    requester_name: str
    owner_id: int


@dataclass(frozen=True)
class GroupJoined:
    group_id: int
    group_title: str
    user_id: int
    user_name: str
    owner_id: int


@dataclass(frozen=True)
class GroupRequestAccepted:
    group_id: int
    group_title: str
    target_id: int


@dataclass(frozen=True)
class GroupRequestDeclined:
    group_id: int
    group_title: str
    target_id: int


@dataclass(frozen=True)
class GroupInviteDeclined:
    group_id: int
    group_title: str
    user_name: str
    inviter_id: int


@dataclass(frozen=True)
class GroupLeft:
    group_id: int
    group_title: str
    user_name: str
    owner_id: int


@dataclass(frozen=True)
class GroupMemberRemoved:
    group_id: int
    group_title: str
    target_id: int


@dataclass(frozen=True)
class OwnershipTransferred:
    group_id: int
    group_title: str
    previous_owner_name: str
    new_owner_id: int


@dataclass(frozen=True)
class EventCreated:
    event_id: int
    event_title: str
    group_title: str
    author_name: str
    member_ids: tuple[int, ...]


Notification = Union[
    Follow,
    FollowRequest,
    FollowAccepted,
    Unfollowed,
    GroupInvite,
    GroupJoinRequest,
    GroupJoined,
    GroupRequestAccepted,
    GroupRequestDeclined,
    GroupInviteDeclined,
    GroupLeft,
    GroupMemberRemoved,
    OwnershipTransferred,
    EventCreated,
]


def _profile_link(user_id: int) -> Link:
    return Link("See their profile", f"/user/{user_id}")


def _group_link(group_id: int) -> Link:
    return Link("Open group", f"/group/{group_id}")


def render(n: Notification) -> Rendered:
    """Compute targets, message and links for a notification.

    Raises TypeError for anything that is not a known variant.
    """
    if isinstance(n, Follow):
        return Rendered(
            [n.target_id],
            f"<strong>{escape(n.follower_name)}</strong> is now your follower!",
            [_profile_link(n.follower_id)],
        )
    if isinstance(n, FollowRequest):
        return Rendered(
            [n.target_id],
            f"<strong>{escape(n.requester_name)}</strong> has sent you a follow request",
            [
                Link("Accept", f"/user/{n.requester_id}/accept", "POST"),
                _profile_link(n.requester_id),
            ],
        )
    if isinstance(n, FollowAccepted):
        return Rendered(
            [n.target_id],
            f"You are now following <strong>{escape(n.accepter_name)}</strong>!",
            [_profile_link(n.accepter_id)],
        )
    if isinstance(n, Unfollowed):
        return Rendered(
            [n.target_id],
            f"<strong>{escape(n.follower_name)}</strong> no longer follows you",
            [_profile_link(n.follower_id)],
        )
    if isinstance(n, GroupInvite):
        return Rendered(
            [n.target_id],
            f"{escape(n.inviter_name)} invited you to the group "
            f"<strong>{escape(n.group_title)}</strong>.",
            [
                Link("Join group", f"/group/{n.group_id}/join", "POST"),
                Link("Decline", f"/group/{n.group_id}/decline", "POST"),
            ],
        )
    if isinstance(n, GroupJoinRequest):
        return Rendered(
            [n.owner_id],
            f"{escape(n.requester_name)} has requested to join your group "
            f"<strong>{escape(n.group_title)}</strong>",
            [
                Link("Accept", f"/group/{n.group_id}/requests/{n.requester_id}/accept", "POST"),
                Link("Decline", f"/group/{n.group_id}/requests/{n.requester_id}/decline", "POST"),
            ],
        )
    if isinstance(n, GroupJoined):
        return Rendered(
            [n.owner_id],
            f"<strong>{escape(n.user_name)}</strong> has joined your group "
            f"<strong>{escape(n.group_title)}</strong>",
            [_profile_link(n.user_id)],
        )
    if isinstance(n, GroupRequestAccepted):
        return Rendered(
            [n.target_id],
            f"You are now a member of <strong>{escape(n.group_title)}</strong>!",
            [_group_link(n.group_id)],
        )
    if isinstance(n, GroupRequestDeclined):
        return Rendered(
            [n.target_id],
            f"Your request to join <strong>{escape(n.group_title)}</strong> was declined",
        )
    if isinstance(n, GroupInviteDeclined):
        return Rendered(
            [n.inviter_id],
            f"{escape(n.user_name)} declined the invitation to "
            f"<strong>{escape(n.group_title)}</strong>",
        )
    if isinstance(n, GroupLeft):
        return Rendered(
            [n.owner_id],
            f"{escape(n.user_name)} has left <strong>{escape(n.group_title)}</strong>",
        )
    if isinstance(n, GroupMemberRemoved):
        return Rendered(
            [n.target_id],
            f"You were removed from <strong>{escape(n.group_title)}</strong>",
        )
    if isinstance(n, OwnershipTransferred):
        return Rendered(
            [n.new_owner_id],
            f"{escape(n.previous_owner_name)} made you the owner of "
            f"<strong>{escape(n.group_title)}</strong>",
            [_group_link(n.group_id)],
        )
    if isinstance(n, EventCreated):
        return Rendered(
            list(n.member_ids),
            f"Event <strong>{escape(n.event_title)}</strong> has been created in "
            f"{escape(n.group_title)} by {escape(n.author_name)}",
            [Link("See event", f"/event/{n.event_id}")],
        )
    raise TypeError(f"Unknown notification type: {type(n).__name__}")
