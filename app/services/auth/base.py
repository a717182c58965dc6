"""Interface every authentication backend implements."""
from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Request, Response
from sqlalchemy.orm import Session as DBSession

from app.models.user import User


class AuthProvider(ABC):
    """
    Credentials, sessions and the session cookie behind one interface.

    Handlers and dependencies only talk to this class; ``LocalAuthProvider``
    is the password-and-database implementation.
    """

    cookie_name: str

    @abstractmethod
    def authenticate(self, db: DBSession, email: str, password: str) -> Optional[User]:
        """The matching user, or None for an unknown email or a wrong password."""

    @abstractmethod
    def create_user(self, db: DBSession, email: str, password: str, **profile) -> User:
        """Register an account. Taken emails or nicknames raise ConflictError."""

    @abstractmethod
    def token_from_request(self, request: Request) -> Optional[str]:
        """Session token carried by the request, if any."""

    @abstractmethod
    def get_user_from_request(self, db: DBSession, request: Request) -> Optional[User]:
        """Owner of the request's live session, or None."""

    @abstractmethod
    def create_session(self, db: DBSession, user: User, request: Request) -> str:
        """Open a session for ``user`` and return its token."""

    @abstractmethod
    def extend_session(self, db: DBSession, token: str) -> bool:
        """Push the session expiry forward. False if the token is not live."""

    @abstractmethod
    def revoke_session(self, db: DBSession, token: str) -> bool:
        """Delete one session. False when there was nothing to delete."""

    @abstractmethod
    def revoke_all_sessions(
        self, db: DBSession, user_id: int, except_token: Optional[str] = None
    ) -> int:
        """Delete every session of a user except ``except_token``; returns the count."""

    @abstractmethod
    def change_password(
        self,
        db: DBSession,
        user: User,
        current_password: str,
        new_password: str,
        commit: bool = True,
    ) -> bool:
        """
        Replace the password. False, and no change, if ``current_password`` is wrong.

        With ``commit=False`` the new hash is left for the caller to commit.
        """

    @abstractmethod
    def set_session_cookie(self, response: Response, token: str) -> None:
        """Attach the session cookie to a response."""

    @abstractmethod
    def clear_session_cookie(self, response: Response) -> None:
        """Expire the session cookie on the client."""
