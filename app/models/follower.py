from sqlalchemy import Column, Integer, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.database import Base
from app.models.types import UTCDateTime, utcnow, value_enum


class FollowStatus(str, enum.Enum):
    """Status of a follow relationship."""
    REQUESTED = "requested"
    ACCEPTED = "accepted"


class Follower(Base):
    """Follow relationship from ``follower_id`` towards ``followee_id``."""
    __tablename__ = "followers"

    id = Column(Integer, primary_key=True)
    follower_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    followee_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    status = Column(value_enum(FollowStatus), nullable=False, default=FollowStatus.REQUESTED)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, onupdate=utcnow)

    # Relationships
    follower = relationship("User", foreign_keys=[follower_id])
    followee = relationship("User", foreign_keys=[followee_id])

    __table_args__ = (
        UniqueConstraint('follower_id', 'followee_id', name='uq_followers_pair'),
        Index('idx_followers_followee_status', 'followee_id', 'status'),
    )
