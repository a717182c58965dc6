from sqlalchemy import Column, Integer, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.database import Base
from app.models.types import UTCDateTime, utcnow, value_enum


class MemberStatus(str, enum.Enum):
    """Membership state of a user in a group."""
    REQUESTED = "requested"
    INVITED = "invited"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class MemberRole(str, enum.Enum):
    MEMBER = "member"
    OWNER = "owner"


class GroupMember(Base):
    """Relationship between a user and a group, one row per (group, user)."""
    __tablename__ = "group_members"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey('groups.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    status = Column(value_enum(MemberStatus), nullable=False)
    role = Column(value_enum(MemberRole), nullable=False, default=MemberRole.MEMBER)
    inviter_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, onupdate=utcnow)

    # Relationships
    group = relationship("Group", back_populates="members")
    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint('group_id', 'user_id', name='uq_group_members_pair'),
        Index('idx_group_members_user_status', 'user_id', 'status'),
        Index('idx_group_members_group_status', 'group_id', 'status'),
    )
