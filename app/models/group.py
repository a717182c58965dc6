from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
import enum

from app.database import Base
from app.models.types import UTCDateTime, utcnow, value_enum


class GroupAccess(str, enum.Enum):
    """Whether joining needs the owner's approval."""
    OPEN = "open"
    RESTRICTED = "restricted"


class Group(Base):
    """A group. ``owner_id`` is the single source of truth for ownership."""
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    banner = Column(String(64))  # StoredFile token
    access = Column(value_enum(GroupAccess), nullable=False, default=GroupAccess.RESTRICTED)
    created_at = Column(UTCDateTime, default=utcnow)

    # Relationships
    owner = relationship("User", foreign_keys=[owner_id])
    members = relationship("GroupMember", back_populates="group", cascade="all, delete-orphan")
    events = relationship("Event", back_populates="group", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_groups_owner_id', 'owner_id'),
    )

    def to_dict(self, includes_me: bool | None = None) -> dict:
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "banner": self.banner,
            "access": self.access.value if self.access else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if includes_me is not None:
            data["includes_me"] = includes_me
        return data
