"""
Session store: opaque token to user identity with expiry.

Sessions are persisted in the ``sessions`` table. An optional in-process
``SessionCache`` keeps recently resolved tokens so authenticated requests do
not hit the database for every lookup.

Absent and expired tokens are ordinary results (``None``/``False``); database
errors propagate to the caller.
"""
import logging
import secrets
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session as DBSession

from app.models.session import Session
from app.models.types import utcnow

logger = logging.getLogger(__name__)


class SessionCache:
    """In-memory token index. One lock covers every read, write and sweep."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[int, datetime]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, token: str) -> Optional[int]:
        """Return the cached user id, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(token)
            if entry is None:
                return None
            user_id, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[token]
                return None
            return user_id

    def put(self, token: str, user_id: int, expires_at: datetime) -> None:
        with self._lock:
            self._entries[token] = (user_id, expires_at)

    def discard(self, token: str) -> None:
        with self._lock:
            self._entries.pop(token, None)

    def discard_user(self, user_id: int, except_token: Optional[str] = None) -> int:
        with self._lock:
            tokens = [
                token
                for token, (owner, _) in self._entries.items()
                if owner == user_id and token != except_token
            ]
            for token in tokens:
                del self._entries[token]
            return len(tokens)

    def sweep(self) -> int:
        """Drop expired entries. Safe to call repeatedly."""
        with self._lock:
            now = self._clock()
            expired = [
                token
                for token, (_, expires_at) in self._entries.items()
                if expires_at <= now
            ]
            for token in expired:
                del self._entries[token]
            return len(expired)


class SessionStore:
    """
    Creates, resolves, extends and revokes login sessions.

    Multi-device by default: each login gets an independent session. With
    ``single_device=True`` a new login deletes the user's earlier sessions.
    """

    def __init__(
        self,
        ttl: int,
        single_device: bool = False,
        cache: Optional[SessionCache] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = timedelta(seconds=ttl)
        self.single_device = single_device
        self.cache = cache
        self._clock = clock

    def _generate_token(self) -> str:
        """Generate a cryptographically secure session token."""
        return secrets.token_urlsafe(32)

    def _active(self, db: DBSession, token: str) -> Optional[Session]:
        return (
            db.query(Session)
            .filter(Session.token == token, Session.expires_at > self._clock())
            .first()
        )

    def create(
        self,
        db: DBSession,
        user_id: int,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> str:
        """Persist a new session for ``user_id`` and return its token."""
        if self.single_device:
            self.delete_all_for_user(db, user_id, commit=False)

        token = self._generate_token()
        expires_at = self._clock() + self.ttl
        db.add(
            Session(
                user_id=user_id,
                token=token,
                expires_at=expires_at,
                user_agent=(user_agent or "")[:512] or None,
                ip_address=ip_address,
            )
        )
        db.commit()

        if self.cache is not None:
            self.cache.put(token, user_id, expires_at)
        return token

    def resolve(self, db: DBSession, token: Optional[str]) -> Optional[int]:
        """Return the user id for a live token. Does not extend expiry."""
        if not token:
            return None
        if self.cache is not None:
            user_id = self.cache.get(token)
            if user_id is not None:
                return user_id

        session = self._active(db, token)
        if session is None:
            return None
        if self.cache is not None:
            self.cache.put(token, session.user_id, session.expires_at)
        return session.user_id

    def extend(
        self, db: DBSession, token: Optional[str], duration: Optional[timedelta] = None
    ) -> bool:
        """Reset expiry to now + duration if the token is live. Never creates."""
        if not token:
            return False
        session = self._active(db, token)
        if session is None:
            if self.cache is not None:
                self.cache.discard(token)
            return False

        session.expires_at = self._clock() + (duration or self.ttl)
        db.commit()
        if self.cache is not None:
            self.cache.put(token, session.user_id, session.expires_at)
        return True

    def expires_at(self, db: DBSession, token: str) -> Optional[datetime]:
        session = self._active(db, token)
        return session.expires_at if session else None

    def delete(self, db: DBSession, token: Optional[str]) -> bool:
        """Remove a single session. Returns False if it did not exist."""
        if not token:
            return False
        if self.cache is not None:
            self.cache.discard(token)
        count = db.query(Session).filter(Session.token == token).delete()
        db.commit()
        return count > 0

    def delete_all_for_user(
        self,
        db: DBSession,
        user_id: int,
        except_token: Optional[str] = None,
        commit: bool = True,
    ) -> int:
        """Remove every session of a user, optionally keeping one token."""
        query = db.query(Session).filter(Session.user_id == user_id)
        if except_token:
            query = query.filter(Session.token != except_token)
        count = query.delete(synchronize_session=False)
        if commit:
            db.commit()
        if self.cache is not None:
            self.cache.discard_user(user_id, except_token=except_token)
        return count

    def purge_expired(self, db: DBSession) -> int:
        """Physically delete expired rows. Idempotent."""
        count = (
            db.query(Session)
            .filter(Session.expires_at <= self._clock())
            .delete(synchronize_session=False)
        )
        db.commit()
        if self.cache is not None:
            self.cache.sweep()
        if count:
            logger.info("Purged %d expired sessions", count)
        return count
