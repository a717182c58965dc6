"""
Authentication service package.

Provides pluggable authentication with:
- Local password-based auth backed by the SessionStore

Usage:
    from app.services.auth.dependencies import get_current_user, get_optional_user

    # In routes:
    @router.get("/protected")
    def protected_route(user: User = Depends(get_current_user)):
        ...
"""
from app.services.auth.base import AuthProvider
from app.services.auth.local_provider import (
    LocalAuthProvider,
    hash_password,
    verify_password,
)

__all__ = [
    "AuthProvider",
    "LocalAuthProvider",
    "hash_password",
    "verify_password",
]
