"""
Group membership state machine.

One ``group_members`` row per (group, user) carries the state:

    none -> requested   user asks to join a restricted group
    none -> invited     accepted member invites an outsider
    requested/invited -> accepted | declined
    accepted -> none    leave or removal by the owner

``Group.owner_id`` names the owner; the owner's row has ``role=owner`` and
both are swapped together on transfer. Every transition is a single commit
and returns the notification to send, or None when nothing changed.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTargetError,
    NotFoundError,
)
from app.models import (
    Group,
    GroupAccess,
    GroupMember,
    MemberRole,
    MemberStatus,
    User,
)
from app.services import notifications as n

logger = logging.getLogger(__name__)


class MembershipService:
    """Group membership transitions."""

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_group(self, db: Session, group_id: int, for_update: bool = False) -> Group:
        query = db.query(Group).filter(Group.id == group_id)
        if for_update:
            query = query.with_for_update()
        group = query.first()
        if group is None:
            raise NotFoundError("Group not found")
        return group

    def get_membership(self, db: Session, group_id: int, user_id: int) -> Optional[GroupMember]:
        return db.query(GroupMember).filter(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        ).first()

    def status_of(self, db: Session, group_id: int, user_id: int) -> Optional[MemberStatus]:
        membership = self.get_membership(db, group_id, user_id)
        return membership.status if membership else None

    def _get_user(self, db: Session, user_id: int) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _require_owner(self, group: Group, user_id: int) -> None:
        if group.owner_id != user_id:
            raise ForbiddenError("Only the group owner can do this")

    # =========================================================================
    # Creation
    # =========================================================================

    def create_group(
        self,
        db: Session,
        owner: User,
        title: str,
        description: str = "",
        access: GroupAccess = GroupAccess.RESTRICTED,
        banner: Optional[str] = None,
    ) -> Group:
        """Create a group whose creator is its accepted owner, in one commit."""
        title = title.strip()
        if db.query(Group.id).filter(Group.title == title).first():
            raise ConflictError("Group title already taken")

        group = Group(
            owner_id=owner.id,
            title=title,
            description=description,
            access=access,
            banner=banner,
        )
        db.add(group)
        db.flush()
        db.add(GroupMember(
            group_id=group.id,
            user_id=owner.id,
            status=MemberStatus.ACCEPTED,
            role=MemberRole.OWNER,
        ))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Group title already taken")
        db.refresh(group)
        logger.info("User %s created group %s", owner.id, group.id)
        return group

    # =========================================================================
    # Transitions
    # =========================================================================

    def join(self, db: Session, group_id: int, user: User) -> Optional[n.Notification]:
        """
        Join a group, or ask to.

        Open groups accept immediately. Restricted groups accept a pending
        invitation; otherwise a request is filed for the owner.
        """
        group = self.get_group(db, group_id)
        membership = self.get_membership(db, group_id, user.id)
        if membership and membership.status in (MemberStatus.ACCEPTED, MemberStatus.REQUESTED):
            return None

        if group.access == GroupAccess.OPEN or (
            membership and membership.status == MemberStatus.INVITED
        ):
            self._set_status(db, membership, group_id, user.id, MemberStatus.ACCEPTED)
            db.commit()
            return n.GroupJoined(group.id, group.title, user.id, user.display_name, group.owner_id)

        self._set_status(db, membership, group_id, user.id, MemberStatus.REQUESTED)
        db.commit()
        return n.GroupJoinRequest(group.id, group.title, user.id, user.display_name, group.owner_id)

    def invite(
        self, db: Session, group_id: int, inviter: User, invitee_id: int
    ) -> Optional[n.Notification]:
        """Invite a user. An outstanding join request is accepted instead."""
        group = self.get_group(db, group_id)
        if self.status_of(db, group_id, inviter.id) != MemberStatus.ACCEPTED:
            raise ForbiddenError("Only group members can invite")
        invitee = self._get_user(db, invitee_id)

        membership = self.get_membership(db, group_id, invitee.id)
        if membership and membership.status in (MemberStatus.ACCEPTED, MemberStatus.INVITED):
            return None

        if membership and membership.status == MemberStatus.REQUESTED:
            membership.status = MemberStatus.ACCEPTED
            db.commit()
            return n.GroupRequestAccepted(group.id, group.title, invitee.id)

        membership = self._set_status(db, membership, group_id, invitee.id, MemberStatus.INVITED)
        membership.inviter_id = inviter.id
        db.commit()
        return n.GroupInvite(group.id, group.title, inviter.display_name, invitee.id)

    def accept_request(
        self, db: Session, group_id: int, owner: User, user_id: int
    ) -> Optional[n.Notification]:
        group = self.get_group(db, group_id)
        self._require_owner(group, owner.id)
        membership = self.get_membership(db, group_id, user_id)
        if membership is None or membership.status != MemberStatus.REQUESTED:
            raise NotFoundError("No pending request from this user")
        membership.status = MemberStatus.ACCEPTED
        db.commit()
        return n.GroupRequestAccepted(group.id, group.title, user_id)

    def decline_request(
        self, db: Session, group_id: int, owner: User, user_id: int
    ) -> Optional[n.Notification]:
        group = self.get_group(db, group_id)
        self._require_owner(group, owner.id)
        membership = self.get_membership(db, group_id, user_id)
        if membership is None or membership.status != MemberStatus.REQUESTED:
            raise NotFoundError("No pending request from this user")
        membership.status = MemberStatus.DECLINED
        db.commit()
        return n.GroupRequestDeclined(group.id, group.title, user_id)

    def decline_invite(self, db: Session, group_id: int, user: User) -> Optional[n.Notification]:
        group = self.get_group(db, group_id)
        membership = self.get_membership(db, group_id, user.id)
        if membership is None or membership.status != MemberStatus.INVITED:
            raise NotFoundError("No pending invitation")
        membership.status = MemberStatus.DECLINED
        inviter_id = membership.inviter_id or group.owner_id
        db.commit()
        return n.GroupInviteDeclined(group.id, group.title, user.display_name, inviter_id)

    def leave(self, db: Session, group_id: int, user: User) -> Optional[n.Notification]:
        """Leave a group. The owner must hand over ownership first."""
        group = self.get_group(db, group_id)
        if group.owner_id == user.id:
            raise ConflictError("Transfer ownership before leaving the group")
        membership = self.get_membership(db, group_id, user.id)
        if membership is None or membership.status != MemberStatus.ACCEPTED:
            return None
        db.delete(membership)
        db.commit()
        return n.GroupLeft(group.id, group.title, user.display_name, group.owner_id)

    def remove_member(
        self, db: Session, group_id: int, owner: User, user_id: int
    ) -> Optional[n.Notification]:
        group = self.get_group(db, group_id)
        self._require_owner(group, owner.id)
        if user_id == owner.id:
            raise ConflictError("The owner cannot remove themselves")
        membership = self.get_membership(db, group_id, user_id)
        if membership is None or membership.status != MemberStatus.ACCEPTED:
            raise NotFoundError("User is not a member of this group")
        db.delete(membership)
        db.commit()
        return n.GroupMemberRemoved(group.id, group.title, user_id)

    def transfer_ownership(
        self, db: Session, group_id: int, requester: User, new_owner_id: int
    ) -> Optional[n.Notification]:
        """
        Hand the group to another accepted member.

        The group row is locked and owner_id plus both role columns change in
        one commit, so readers see exactly one owner before and after.
        """
        group = self.get_group(db, group_id, for_update=True)
        if group.owner_id != requester.id:
            db.rollback()
            raise ForbiddenError("Only the group owner can transfer ownership")
        if new_owner_id == requester.id:
            db.rollback()
            return None

        new_owner = self.get_membership(db, group_id, new_owner_id)
        if new_owner is None or new_owner.status != MemberStatus.ACCEPTED:
            db.rollback()
            raise InvalidTargetError("New owner must be an accepted member")

        old_owner = self.get_membership(db, group_id, requester.id)
        group.owner_id = new_owner_id
        new_owner.role = MemberRole.OWNER
        if old_owner is not None:
            old_owner.role = MemberRole.MEMBER
        db.commit()
        logger.info("Group %s ownership moved from %s to %s", group.id, requester.id, new_owner_id)
        return n.OwnershipTransferred(group.id, group.title, requester.display_name, new_owner_id)

    def _set_status(
        self,
        db: Session,
        membership: Optional[GroupMember],
        group_id: int,
        user_id: int,
        status: MemberStatus,
    ) -> GroupMember:
        if membership is None:
            membership = GroupMember(group_id=group_id, user_id=user_id, status=status)
            db.add(membership)
        else:
            membership.status = status
        return membership

    # =========================================================================
    # Listings
    # =========================================================================

    def members(self, db: Session, group_id: int, status: MemberStatus = MemberStatus.ACCEPTED) -> list[User]:
        self.get_group(db, group_id)
        return (
            db.query(User)
            .join(GroupMember, GroupMember.user_id == User.id)
            .filter(GroupMember.group_id == group_id, GroupMember.status == status)
            .order_by(GroupMember.created_at, User.id)
            .all()
        )

    def member_ids(self, db: Session, group_id: int) -> list[int]:
        rows = db.query(GroupMember.user_id).filter(
            GroupMember.group_id == group_id,
            GroupMember.status == MemberStatus.ACCEPTED,
        )
        return [user_id for (user_id,) in rows]

    def groups_of(self, db: Session, user_id: int) -> list[Group]:
        return (
            db.query(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .filter(GroupMember.user_id == user_id, GroupMember.status == MemberStatus.ACCEPTED)
            .order_by(Group.title)
            .all()
        )
