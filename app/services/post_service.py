"""Post and comment creation."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.errors import BadRequestError, NotFoundError
from app.models import Comment, Group, Post, PostPrivacy, SelectedUser, User
from app.services.file_service import FileService
from app.services.visibility import VisibilityResolver, deny

logger = logging.getLogger(__name__)


class PostService:
    """Service for creating posts and comments."""

    def __init__(self, visibility: VisibilityResolver, files: FileService):
        self.visibility = visibility
        self.files = files

    def create_post(
        self,
        db: Session,
        author: User,
        title: str,
        content: str,
        privacy: str = "public",
        group_id: Optional[int] = None,
        allowed_users: Optional[list[int]] = None,
        images: Optional[list[str]] = None,
    ) -> Post:
        """
        Create a post with its allow-list in a single commit.

        Group posts require an accepted membership and always get ``group``
        privacy. Almost-private posts need a non-empty allow-list of existing
        users. Every image token must reference a stored file.
        """
        if not title.strip() or not content.strip():
            raise BadRequestError("Title and content are required")

        if group_id is not None:
            if db.get(Group, group_id) is None:
                raise NotFoundError("Group not found")
            if not self.visibility.is_member(db, group_id, author.id):
                raise deny(author.id, "Only group members can post in this group")
            resolved = PostPrivacy.GROUP
        else:
            try:
                resolved = PostPrivacy.parse(privacy or "public")
            except ValueError:
                raise BadRequestError(f"Unknown privacy: {privacy}")
            if resolved == PostPrivacy.GROUP:
                raise BadRequestError("Group privacy requires a group")

        allowed = sorted(set(allowed_users or []))
        if resolved == PostPrivacy.ALMOST_PRIVATE:
            if not allowed:
                raise BadRequestError("Almost-private posts need at least one allowed user")
            found = {uid for (uid,) in db.query(User.id).filter(User.id.in_(allowed))}
            missing = [uid for uid in allowed if uid not in found]
            if missing:
                raise BadRequestError(f"Unknown user: {missing[0]}")

        tokens = [token for token in (images or []) if token]
        self.files.require_tokens(db, tokens)

        post = Post(
            author_id=author.id,
            group_id=group_id,
            title=title.strip(),
            content=content,
            images=",".join(tokens),
            privacy=resolved,
        )
        db.add(post)
        db.flush()
        if resolved == PostPrivacy.ALMOST_PRIVATE:
            db.add_all(SelectedUser(post_id=post.id, user_id=uid) for uid in allowed)
        db.commit()
        logger.info("User %s created %s post %s", author.id, resolved.value, post.id)
        return post

    def add_comment(
        self,
        db: Session,
        author: User,
        post_id: int,
        content: str,
        image: Optional[str] = None,
    ) -> Comment:
        post = self.visibility.get_post(db, author.id, post_id)
        if not content.strip() and not image:
            raise BadRequestError("Comment cannot be empty")
        if image:
            self.files.require_tokens(db, [image])
        comment = Comment(post_id=post.id, author_id=author.id, content=content, image=image)
        db.add(comment)
        db.commit()
        return comment

    def comments(self, db: Session, viewer_id: int, post_id: int) -> list[Comment]:
        post = self.visibility.get_post(db, viewer_id, post_id)
        return (
            db.query(Comment)
            .filter(Comment.post_id == post.id)
            .order_by(Comment.created_at, Comment.id)
            .all()
        )

    def user_posts(self, db: Session, viewer_id: int, user_id: int) -> list[Post]:
        if db.get(User, user_id) is None:
            raise NotFoundError("User not found")
        return (
            self.visibility.visible_posts(db, viewer_id)
            .filter(Post.author_id == user_id)
            .all()
        )
