"""Direct and group chat messages."""
import logging
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.errors import BadRequestError, NotFoundError
from app.models import Message, User
from app.services.membership_service import MembershipService
from app.services.visibility import VisibilityResolver, deny

logger = logging.getLogger(__name__)


class MessageService:
    def __init__(self, visibility: VisibilityResolver, membership: MembershipService):
        self.visibility = visibility
        self.membership = membership

    def send(
        self, db: Session, sender: User, receiver_id: int, content: str, is_group: bool = False
    ) -> tuple[Message, list[int]]:
        """Store a message and return it with the user ids to push it to."""
        if not content.strip():
            raise BadRequestError("Message cannot be empty")

        if is_group:
            self.membership.get_group(db, receiver_id)
            if not self.visibility.is_member(db, receiver_id, sender.id):
                raise deny(sender.id, "Only group members can post messages here")
            targets = [uid for uid in self.membership.member_ids(db, receiver_id) if uid != sender.id]
        else:
            if receiver_id == sender.id:
                raise BadRequestError("Cannot message yourself")
            if db.get(User, receiver_id) is None:
                raise NotFoundError("User not found")
            targets = [receiver_id]

        message = Message(
            sender_id=sender.id,
            receiver_id=receiver_id,
            is_group=is_group,
            content=content,
        )
        db.add(message)
        db.commit()
        return message, targets

    def conversation(
        self, db: Session, user: User, other_id: int, is_group: bool = False, limit: int = 100
    ) -> list[Message]:
        """Chat history with a user or in a group, oldest first."""
        query = db.query(Message)
        if is_group:
            self.membership.get_group(db, other_id)
            if not self.visibility.is_member(db, other_id, user.id):
                raise deny(user.id, "Only group members can read this chat")
            query = query.filter(Message.is_group.is_(True), Message.receiver_id == other_id)
        else:
            query = query.filter(
                Message.is_group.is_(False),
                or_(
                    and_(Message.sender_id == user.id, Message.receiver_id == other_id),
                    and_(Message.sender_id == other_id, Message.receiver_id == user.id),
                ),
            )
        rows = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
        return list(reversed(rows))

    def notifications(self, db: Session, user: User, limit: Optional[int] = 50) -> list[Message]:
        """System messages addressed to the user, newest first."""
        query = (
            db.query(Message)
            .filter(
                Message.sender_id.is_(None),
                Message.is_group.is_(False),
                Message.receiver_id == user.id,
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()
