"""User profile updates and lookups."""
import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import BadRequestError, ConflictError, NotFoundError
from app.models import User
from app.services.auth.base import AuthProvider
from app.services.file_service import FileService

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "date_of_birth", "nickname", "about_me", "avatar", "private")


class UserService:
    def __init__(self, auth_provider: AuthProvider, files: FileService):
        self.auth_provider = auth_provider
        self.files = files

    def get(self, db: Session, user_id: int) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def get_by_email(self, db: Session, email: str) -> User:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update_profile(
        self,
        db: Session,
        user: User,
        changes: dict[str, Any],
        current_password: Optional[str] = None,
        new_password: Optional[str] = None,
    ) -> User:
        """
        Apply profile changes.

        A password change needs the current password. Nickname clashes are
        reported as conflicts. Everything is checked before anything is
        written, and password and profile fields land in one commit.
        """
        if changes.get("avatar"):
            self.files.require_tokens(db, [changes["avatar"]])

        nickname = changes.get("nickname")
        if "nickname" in changes:
            nickname = (nickname or "").strip() or None
            changes["nickname"] = nickname
        if nickname and nickname != user.nickname:
            clash = db.query(User.id).filter(User.nickname == nickname, User.id != user.id).first()
            if clash:
                raise ConflictError("Nickname already taken")

        if new_password:
            if not current_password or not self.auth_provider.change_password(
                db, user, current_password, new_password, commit=False
            ):
                raise BadRequestError("Current password is incorrect")

        for field in PROFILE_FIELDS:
            if field in changes:
                setattr(user, field, changes[field])
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Nickname already taken")
        return user
