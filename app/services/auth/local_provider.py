"""Local password-based authentication provider."""
import logging
from typing import Optional

import bcrypt
from fastapi import Request, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from app.config import settings
from app.errors import ConflictError
from app.models.user import User
from app.services.auth.base import AuthProvider
from app.services.session_store import SessionStore

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


class LocalAuthProvider(AuthProvider):
    """
    Local authentication provider using password hashing and database sessions.

    Passwords are hashed with bcrypt. Session bookkeeping is delegated to the
    SessionStore; the token travels in an HttpOnly cookie, or in an
    ``Authorization: Bearer`` header for non-browser clients.
    """

    def __init__(self, session_store: SessionStore, cookie_name: Optional[str] = None):
        self.session_store = session_store
        self.cookie_name = cookie_name or settings.session_cookie_name

    def authenticate(self, db: DBSession, email: str, password: str) -> Optional[User]:
        """Authenticate user with email and password."""
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not user.password_hash:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    def create_user(self, db: DBSession, email: str, password: str, **profile) -> User:
        """Create a new user with hashed password."""
        email = email.strip().lower()
        nickname = profile.get("nickname") or None
        if db.query(User.id).filter(User.email == email).first():
            raise ConflictError("Email already registered")
        if nickname and db.query(User.id).filter(User.nickname == nickname).first():
            raise ConflictError("Nickname already taken")

        profile["nickname"] = nickname
        user = User(email=email, password_hash=hash_password(password), **profile)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            db.rollback()
            raise ConflictError("Email or nickname already taken")
        db.refresh(user)
        logger.info("Registered user %s", user.id)
        return user

    def token_from_request(self, request: Request) -> Optional[str]:
        token = request.cookies.get(self.cookie_name)
        if token:
            return token
        authorization = request.headers.get("authorization", "")
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        return None

    def get_user_from_request(self, db: DBSession, request: Request) -> Optional[User]:
        """Resolve the request's token to a user."""
        user_id = self.session_store.resolve(db, self.token_from_request(request))
        if user_id is None:
            return None
        return db.get(User, user_id)

    def create_session(self, db: DBSession, user: User, request: Request) -> str:
        """Create a new session for the user."""
        user_agent = request.headers.get("user-agent", "")
        client_ip = request.client.host if request.client else None
        return self.session_store.create(
            db, user.id, user_agent=user_agent, ip_address=client_ip
        )

    def extend_session(self, db: DBSession, token: str) -> bool:
        return self.session_store.extend(db, token)

    def revoke_session(self, db: DBSession, token: str) -> bool:
        """Revoke a session by its token."""
        return self.session_store.delete(db, token)

    def revoke_all_sessions(
        self, db: DBSession, user_id: int, except_token: Optional[str] = None
    ) -> int:
        """Revoke all sessions for a user."""
        return self.session_store.delete_all_for_user(db, user_id, except_token=except_token)

    def change_password(
        self,
        db: DBSession,
        user: User,
        current_password: str,
        new_password: str,
        commit: bool = True,
    ) -> bool:
        """Change user's password after verifying current password."""
        if not user.password_hash:
            return False
        if not verify_password(current_password, user.password_hash):
            return False
        user.password_hash = hash_password(new_password)
        if commit:
            db.commit()
        return True

    def set_session_cookie(self, response: Response, token: str) -> None:
        ttl = int(self.session_store.ttl.total_seconds())
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            max_age=ttl,
            expires=ttl,
            path="/",
            httponly=True,
            secure=settings.session_cookie_secure,
            samesite="lax",
        )

    def clear_session_cookie(self, response: Response) -> None:
        response.delete_cookie(key=self.cookie_name, path="/", httponly=True)
