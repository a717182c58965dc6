"""FastAPI dependencies for authentication."""
from typing import Optional

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from app.dependencies import get_auth_provider, get_db
from app.errors import UnauthorizedError
from app.models.user import User
from app.services.auth.base import AuthProvider
from app.services.visibility import ANONYMOUS


def _slide_session(
    request: Request, response: Response, db: Session, auth_provider: AuthProvider
) -> bool:
    """
    Extend the live session; re-issue the cookie when the token came from one.

    Returns False when the session row is gone, e.g. revoked by another
    process while this one still had it cached.
    """
    token = auth_provider.token_from_request(request)
    if not auth_provider.extend_session(db, token):
        return False
    if request.cookies.get(auth_provider.cookie_name) == token:
        auth_provider.set_session_cookie(response, token)
    return True


def get_current_user(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth_provider: AuthProvider = Depends(get_auth_provider),
) -> User:
    """
    Get the currently authenticated user.

    Every authenticated request slides the session window forward.
    Raises 401 if not authenticated.
    """
    user = auth_provider.get_user_from_request(db, request)
    if not user or not _slide_session(request, response, db, auth_provider):
        raise UnauthorizedError()
    return user


def get_optional_user(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth_provider: AuthProvider = Depends(get_auth_provider),
) -> Optional[User]:
    """
    Get the current user if authenticated, None otherwise.

    Use for endpoints that answer anonymous viewers too.
    """
    user = auth_provider.get_user_from_request(db, request)
    if user and _slide_session(request, response, db, auth_provider):
        return user
    return None


def viewer_id(user: Optional[User] = Depends(get_optional_user)) -> int:
    """Id of the viewer, or ANONYMOUS."""
    return user.id if user else ANONYMOUS
