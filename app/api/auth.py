"""Authentication routes for registration, login and logout."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from app.dependencies import get_auth_provider, get_db, get_file_service
from app.errors import UnauthorizedError
from app.models.user import User
from app.services.auth.base import AuthProvider
from app.services.auth.dependencies import get_current_user
from app.services.file_service import FileService


router = APIRouter(tags=["auth"])


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    date_of_birth: date
    nickname: Optional[str] = Field(default=None, max_length=100)
    about_me: Optional[str] = None
    avatar: Optional[str] = None
    private: bool = False


class LoginRequest(BaseModel):
    email: str
    password: str


# =============================================================================
# Registration / Login
# =============================================================================


@router.post("/register", status_code=201)
def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth_provider: AuthProvider = Depends(get_auth_provider),
    files: FileService = Depends(get_file_service),
):
    """Create an account and log it in."""
    if body.avatar:
        files.require_tokens(db, [body.avatar])
    user = auth_provider.create_user(
        db,
        email=body.email,
        password=body.password,
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        date_of_birth=body.date_of_birth,
        nickname=body.nickname,
        about_me=body.about_me,
        avatar=body.avatar,
        private=body.private,
    )
    token = auth_provider.create_session(db, user, request)
    auth_provider.set_session_cookie(response, token)
    return {**user.to_dict(), "token": token}


@router.post("/login")
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth_provider: AuthProvider = Depends(get_auth_provider),
):
    user = auth_provider.authenticate(db, body.email, body.password)
    if not user:
        raise UnauthorizedError("Invalid email or password")

    token = auth_provider.create_session(db, user, request)
    auth_provider.set_session_cookie(response, token)
    return {**user.to_dict(), "token": token}


# =============================================================================
# Logout
# =============================================================================


@router.get("/logout")
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    auth_provider: AuthProvider = Depends(get_auth_provider),
):
    """Revoke the current session and clear the cookie."""
    token = auth_provider.token_from_request(request)
    if token:
        auth_provider.revoke_session(db, token)
    auth_provider.clear_session_cookie(response)
    return {"status": "logged out"}


@router.get("/logout/all")
def logout_all(
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    auth_provider: AuthProvider = Depends(get_auth_provider),
):
    """Revoke every session of the current user, this one included."""
    count = auth_provider.revoke_all_sessions(db, user.id)
    auth_provider.clear_session_cookie(response)
    return {"status": "logged out", "sessions_revoked": count}
