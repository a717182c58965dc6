from sqlalchemy import Column, Integer, Text, Boolean, ForeignKey, Index

from app.database import Base
from app.models.types import UTCDateTime, utcnow


class Message(Base):
    """Direct, group or system message.

    Notifications are messages without a sender addressed to a single user.
    For group messages ``receiver_id`` holds the group id.
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    sender_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=True)
    receiver_id = Column(Integer, nullable=False)
    is_group = Column(Boolean, nullable=False, default=False)
    content = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)

    __table_args__ = (
        Index('idx_messages_receiver', 'receiver_id', 'is_group'),
        Index('idx_messages_sender', 'sender_id'),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "is_group": self.is_group,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
