from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.database import Base
from app.models.types import UTCDateTime, utcnow, value_enum


class AttendanceStatus(str, enum.Enum):
    """RSVP state. A missing row means unset."""
    GOING = "going"
    NOT_GOING = "not_going"


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey('groups.id', ondelete='CASCADE'), nullable=False)
    author_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    date_time = Column(UTCDateTime, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)

    # Relationships
    group = relationship("Group", back_populates="events")
    participants = relationship("EventParticipant", back_populates="event", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_events_group_id', 'group_id'),
        Index('idx_events_date_time', 'date_time'),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "group_id": self.group_id,
            "author_id": self.author_id,
            "title": self.title,
            "description": self.description,
            "date_time": self.date_time.isoformat() if self.date_time else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class EventParticipant(Base):
    __tablename__ = "event_participants"

    id = Column(Integer, primary_key=True)
    event_id = Column(Integer, ForeignKey('events.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    status = Column(value_enum(AttendanceStatus), nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="participants")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint('event_id', 'user_id', name='uq_event_participants_pair'),
    )
