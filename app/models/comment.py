from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.types import UTCDateTime, utcnow


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey('posts.id', ondelete='CASCADE'), nullable=False)
    author_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    content = Column(Text, nullable=False)
    image = Column(String(64))  # StoredFile token
    created_at = Column(UTCDateTime, default=utcnow)

    # Relationships
    post = relationship("Post", back_populates="comments")
    author = relationship("User")

    __table_args__ = (
        Index('idx_comments_post_id', 'post_id'),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "author_id": self.author_id,
            "content": self.content,
            "image": self.image,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
