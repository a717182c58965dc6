from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.database import Base
from app.models.types import UTCDateTime, utcnow, value_enum


class PostPrivacy(str, enum.Enum):
    """Who may see a post."""
    PUBLIC = "public"
    PRIVATE = "private"  # author and accepted followers
    ALMOST_PRIVATE = "almost_private"  # author and the selected users
    GROUP = "group"  # accepted members of the post's group
    UNLISTED = "unlisted"  # public by id, hidden from listings

    @classmethod
    def parse(cls, value: str) -> "PostPrivacy":
        """Parse client input, accepting the legacy spellings of almost-private."""
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        if normalized == "manual":
            return cls.ALMOST_PRIVATE
        return cls(normalized)


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True)
    author_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    group_id = Column(Integer, ForeignKey('groups.id', ondelete='CASCADE'), nullable=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    images = Column(Text, nullable=False, default="")  # Comma-separated StoredFile tokens
    privacy = Column(value_enum(PostPrivacy), nullable=False, default=PostPrivacy.PUBLIC)
    created_at = Column(UTCDateTime, default=utcnow)
    deleted_at = Column(UTCDateTime, nullable=True)

    # Relationships
    author = relationship("User", back_populates="posts")
    selected_users = relationship("SelectedUser", back_populates="post", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="post", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_posts_author_id', 'author_id'),
        Index('idx_posts_group_id', 'group_id'),
        Index('idx_posts_created_at', 'created_at'),
    )

    @property
    def image_tokens(self) -> list[str]:
        return [token for token in (self.images or "").split(",") if token]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "author_id": self.author_id,
            "group_id": self.group_id,
            "title": self.title,
            "content": self.content,
            "images": self.image_tokens,
            "privacy": self.privacy.value if self.privacy else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class SelectedUser(Base):
    """Allow-list entry for an almost-private post."""
    __tablename__ = "selected_users"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey('posts.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    post = relationship("Post", back_populates="selected_users")

    __table_args__ = (
        UniqueConstraint('post_id', 'user_id', name='uq_selected_users_pair'),
        Index('idx_selected_users_user_id', 'user_id'),
    )
