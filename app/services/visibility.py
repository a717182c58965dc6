"""
Visibility resolver: who may see which posts, profiles, groups and events.

All methods are reads. Anonymous viewers are represented by ``ANONYMOUS``
(-1) so the same queries serve both cases without branching; the sentinel
never matches a real author, follower or member row.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Query, Session

from app.errors import ForbiddenError, NotFoundError, UnauthorizedError
from app.models import (
    Event,
    Follower,
    FollowStatus,
    Group,
    GroupMember,
    MemberStatus,
    Post,
    PostPrivacy,
    SelectedUser,
    User,
)
from app.models.types import utcnow

logger = logging.getLogger(__name__)

ANONYMOUS = -1


def deny(viewer_id: int, message: Optional[str] = None):
    """Error for a failed access check: 401 for anonymous, 403 otherwise."""
    if viewer_id == ANONYMOUS:
        return UnauthorizedError()
    return ForbiddenError(message)


class VisibilityResolver:
    """Access decisions for a viewer. Holds no state of its own."""

    # =========================================================================
    # Relationship lookups
    # =========================================================================

    def is_member(self, db: Session, group_id: int, user_id: int) -> bool:
        """True when the user holds an accepted membership in the group."""
        return db.query(GroupMember.id).filter(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
            GroupMember.status == MemberStatus.ACCEPTED,
        ).first() is not None

    def follows(self, db: Session, follower_id: int, followee_id: int) -> bool:
        """True when the follow relationship exists and is accepted."""
        return db.query(Follower.id).filter(
            Follower.follower_id == follower_id,
            Follower.followee_id == followee_id,
            Follower.status == FollowStatus.ACCEPTED,
        ).first() is not None

    def member_group_ids(self, db: Session, viewer_id: int) -> set[int]:
        rows = db.query(GroupMember.group_id).filter(
            GroupMember.user_id == viewer_id,
            GroupMember.status == MemberStatus.ACCEPTED,
        )
        return {group_id for (group_id,) in rows}

    # =========================================================================
    # Posts
    # =========================================================================

    def can_view_post(self, db: Session, viewer_id: int, post: Post) -> bool:
        """Direct-access rule for one post. First matching rule wins."""
        if post.deleted_at is not None:
            return False
        if post.group_id is not None:
            return self.is_member(db, post.group_id, viewer_id)
        if post.privacy in (PostPrivacy.PUBLIC, PostPrivacy.UNLISTED):
            return True
        if post.author_id == viewer_id:
            return True
        if post.privacy == PostPrivacy.PRIVATE:
            return self.follows(db, viewer_id, post.author_id)
        if post.privacy == PostPrivacy.ALMOST_PRIVATE:
            return db.query(SelectedUser.id).filter(
                SelectedUser.post_id == post.id,
                SelectedUser.user_id == viewer_id,
            ).first() is not None
        # A group-privacy post without a group has no audience besides its author
        return False

    def get_post(self, db: Session, viewer_id: int, post_id: int) -> Post:
        """Load a post the viewer may see, raising 404/401/403 otherwise."""
        post = db.get(Post, post_id)
        if post is None or post.deleted_at is not None:
            raise NotFoundError("Post not found")
        if not self.can_view_post(db, viewer_id, post):
            logger.info("Viewer %s denied post %s", viewer_id, post_id)
            raise deny(viewer_id, "You cannot view this post")
        return post

    def listing_filter(self, viewer_id: int):
        """
        Clause selecting the non-group posts that belong in a viewer's feed.

        Public posts, the viewer's own posts of any privacy, private posts of
        accepted followees and almost-private posts listing the viewer.
        Unlisted posts only show up for their author.
        """
        followees = select(Follower.followee_id).where(
            Follower.follower_id == viewer_id,
            Follower.status == FollowStatus.ACCEPTED,
        )
        selected = select(SelectedUser.post_id).where(SelectedUser.user_id == viewer_id)
        return and_(
            Post.group_id.is_(None),
            Post.deleted_at.is_(None),
            or_(
                Post.privacy == PostPrivacy.PUBLIC,
                Post.author_id == viewer_id,
                and_(Post.privacy == PostPrivacy.PRIVATE, Post.author_id.in_(followees)),
                and_(Post.privacy == PostPrivacy.ALMOST_PRIVATE, Post.id.in_(selected)),
            ),
        )

    def visible_posts(self, db: Session, viewer_id: int) -> Query:
        return (
            db.query(Post)
            .filter(self.listing_filter(viewer_id))
            .order_by(Post.created_at.desc(), Post.id.desc())
        )

    def following_posts(self, db: Session, viewer_id: int) -> Query:
        """Feed restricted to authors the viewer follows."""
        followees = select(Follower.followee_id).where(
            Follower.follower_id == viewer_id,
            Follower.status == FollowStatus.ACCEPTED,
        )
        return self.visible_posts(db, viewer_id).filter(Post.author_id.in_(followees))

    def group_posts(self, db: Session, viewer_id: int, group_id: Optional[int] = None) -> Query:
        """Posts of the groups the viewer is an accepted member of."""
        groups = select(GroupMember.group_id).where(
            GroupMember.user_id == viewer_id,
            GroupMember.status == MemberStatus.ACCEPTED,
        )
        query = db.query(Post).filter(Post.group_id.in_(groups), Post.deleted_at.is_(None))
        if group_id is not None:
            query = query.filter(Post.group_id == group_id)
        return query.order_by(Post.created_at.desc(), Post.id.desc())

    # =========================================================================
    # Users
    # =========================================================================

    def can_view_profile(self, db: Session, viewer_id: int, user: User) -> bool:
        if user.id == viewer_id or not user.private:
            return True
        return self.follows(db, viewer_id, user.id)

    def profile_for(self, db: Session, viewer_id: int, user: User) -> dict:
        """Full record with ``access=True``, or the limited projection with ``access=False``."""
        if self.can_view_profile(db, viewer_id, user):
            data = user.to_dict()
            if user.id != viewer_id:
                data.pop("email", None)
            data["access"] = True
        else:
            data = user.limited()
            data["access"] = False
        return data

    # =========================================================================
    # Groups and events
    # =========================================================================

    def annotate_groups(self, db: Session, viewer_id: int, groups: Iterable[Group]) -> list[dict]:
        """Group listing entries with an ``includes_me`` flag."""
        mine = self.member_group_ids(db, viewer_id)
        return [group.to_dict(includes_me=group.id in mine) for group in groups]

    def can_view_event(self, db: Session, viewer_id: int, event: Event) -> bool:
        return self.is_member(db, event.group_id, viewer_id)

    def get_event(self, db: Session, viewer_id: int, event_id: int) -> Event:
        event = db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if not self.can_view_event(db, viewer_id, event):
            raise deny(viewer_id, "Only group members can see this event")
        return event

    def can_attend(self, event: Event, now: Optional[datetime] = None) -> bool:
        """Attendance can only change before the event starts."""
        return event.date_time > (now or utcnow())
