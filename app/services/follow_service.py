"""Follow relationships between users."""
import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.errors import BadRequestError, NotFoundError
from app.models import Follower, FollowStatus, User
from app.services import notifications as n

logger = logging.getLogger(__name__)


class FollowService:
    """
    Follow state machine.

    Following a public user is accepted at once; following a private user
    files a request the target has to accept. Unfollowing deletes the row
    whatever its state.
    """

    def get(self, db: Session, follower_id: int, followee_id: int) -> Optional[Follower]:
        return db.query(Follower).filter(
            Follower.follower_id == follower_id,
            Follower.followee_id == followee_id,
        ).first()

    def follow(self, db: Session, follower: User, target_id: int) -> Optional[n.Notification]:
        if follower.id == target_id:
            raise BadRequestError("You cannot follow yourself")
        target = db.get(User, target_id)
        if target is None:
            raise NotFoundError("User not found")
        if self.get(db, follower.id, target.id) is not None:
            return None

        status = FollowStatus.REQUESTED if target.private else FollowStatus.ACCEPTED
        db.add(Follower(follower_id=follower.id, followee_id=target.id, status=status))
        db.commit()

        if status == FollowStatus.REQUESTED:
            return n.FollowRequest(follower.id, follower.display_name, target.id)
        return n.Follow(follower.id, follower.display_name, target.id)

    def accept(self, db: Session, me: User, follower_id: int) -> Optional[n.Notification]:
        row = self.get(db, follower_id, me.id)
        if row is None:
            raise NotFoundError("No follow request from this user")
        if row.status == FollowStatus.ACCEPTED:
            return None
        row.status = FollowStatus.ACCEPTED
        db.commit()
        return n.FollowAccepted(me.id, me.display_name, follower_id)

    def unfollow(self, db: Session, follower: User, target_id: int) -> Optional[n.Notification]:
        row = self.get(db, follower.id, target_id)
        if row is None:
            return None
        db.delete(row)
        db.commit()
        return n.Unfollowed(follower.id, follower.display_name, target_id)

    def status(self, db: Session, follower_id: int, followee_id: int) -> Optional[FollowStatus]:
        row = self.get(db, follower_id, followee_id)
        return row.status if row else None

    def followers(self, db: Session, user_id: int) -> list[User]:
        return (
            db.query(User)
            .join(Follower, Follower.follower_id == User.id)
            .filter(Follower.followee_id == user_id, Follower.status == FollowStatus.ACCEPTED)
            .order_by(User.id)
            .all()
        )

    def following(self, db: Session, user_id: int) -> list[User]:
        return (
            db.query(User)
            .join(Follower, Follower.followee_id == User.id)
            .filter(Follower.follower_id == user_id, Follower.status == FollowStatus.ACCEPTED)
            .order_by(User.id)
            .all()
        )

    def contacts(self, db: Session, user_id: int) -> list[User]:
        """Users connected to ``user_id`` by an accepted follow in either direction."""
        followers = select(Follower.follower_id).where(
            Follower.followee_id == user_id, Follower.status == FollowStatus.ACCEPTED
        )
        following = select(Follower.followee_id).where(
            Follower.follower_id == user_id, Follower.status == FollowStatus.ACCEPTED
        )
        return (
            db.query(User)
            .filter(or_(User.id.in_(followers), User.id.in_(following)))
            .order_by(User.id)
            .all()
        )
