from sqlalchemy import Column, Integer, String, Text, Date, Boolean
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.types import UTCDateTime, utcnow


class User(Base):
    """User account with profile fields and a privacy flag."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    nickname = Column(String(100), unique=True, nullable=True)
    about_me = Column(Text)
    avatar = Column(String(64))  # StoredFile token
    private = Column(Boolean, default=False, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, onupdate=utcnow)

    # Relationships
    sessions = relationship(
        "Session", back_populates="user", cascade="all, delete-orphan"
    )
    posts = relationship("Post", back_populates="author", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        """Nickname when set, otherwise the full name."""
        if self.nickname:
            return self.nickname
        return f"{self.first_name} {self.last_name}"

    def limited(self) -> dict:
        """Projection shown to viewers without profile access."""
        return {
            "id": self.id,
            "nickname": self.nickname,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "avatar": self.avatar,
        }

    def to_dict(self) -> dict:
        return {
            **self.limited(),
            "email": self.email,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "about_me": self.about_me,
            "private": self.private,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
