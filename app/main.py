import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from app.api import auth, events, files, groups, messages, posts, realtime, users
from app.config import settings
from app.database import SessionLocal
from app.errors import DomainError
from app.services.auth import LocalAuthProvider
from app.services.event_service import EventService
from app.services.file_service import FileService
from app.services.follow_service import FollowService
from app.services.membership_service import MembershipService
from app.services.message_service import MessageService
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.post_service import PostService
from app.services.realtime import (
    ConnectionRegistry,
    LocalPublisher,
    RedisBridge,
    RedisPublisher,
)
from app.services.session_store import SessionCache, SessionStore
from app.services.user_service import UserService
from app.services.visibility import VisibilityResolver

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# CSRF Origin Validation Middleware
# =============================================================================


class CSRFOriginMiddleware(BaseHTTPMiddleware):
    """
    Validate Origin/Referer headers on state-changing requests to prevent CSRF.

    - POST, PUT, PATCH, DELETE must include a matching Origin or Referer header
    - GET, HEAD, OPTIONS are always allowed (safe methods)
    - Health checks and the websocket endpoint are exempt
    - Bearer-authenticated requests are exempt; browsers never send them on their own
    """

    SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
    EXEMPT_PATHS = {"/health", "/ws"}

    async def dispatch(self, request: Request, call_next):
        if request.method in self.SAFE_METHODS:
            return await call_next(request)

        if request.url.path in self.EXEMPT_PATHS:
            return await call_next(request)

        if request.headers.get("authorization", "").lower().startswith("bearer "):
            return await call_next(request)

        expected_host = request.headers.get("host", "")
        source = request.headers.get("origin") or request.headers.get("referer")
        if not source:
            logger.warning(
                "CSRF missing origin/referer: method=%s, path=%s",
                request.method,
                request.url.path,
            )
            return _origin_failed()

        if urlparse(source).netloc != expected_host:
            logger.warning(
                "CSRF origin mismatch: source=%s, expected=%s, path=%s",
                source,
                expected_host,
                request.url.path,
            )
            return _origin_failed()

        return await call_next(request)


def _origin_failed() -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": "Origin validation failed"})


# =============================================================================
# Error handlers
# =============================================================================


async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Bad Request"
    return JSONResponse(status_code=400, content={"error": message})


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


# =============================================================================
# Lifespan
# =============================================================================


async def sweep_session_cache(cache: SessionCache, interval: float) -> None:
    """Drop expired cache entries every ``interval`` seconds."""
    while True:
        await asyncio.sleep(interval)
        removed = cache.sweep()
        if removed:
            logger.debug("Swept %d expired cached sessions", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    tasks = []
    bridge: Optional[RedisBridge] = None

    if isinstance(app.state.publisher, LocalPublisher):
        app.state.publisher.loop = asyncio.get_running_loop()
    else:
        bridge = RedisBridge(app.state.registry)
        bridge.start()

    cache = app.state.session_store.cache
    if cache is not None:
        tasks.append(asyncio.create_task(
            sweep_session_cache(cache, settings.session_cache_sweep_interval)
        ))

    yield

    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    if bridge is not None:
        await bridge.stop()
    if isinstance(app.state.publisher, LocalPublisher):
        app.state.publisher.loop = None


# =============================================================================
# Application factory
# =============================================================================


def create_app(session_factory: Optional[sessionmaker] = None) -> FastAPI:
    """Build the application and its components."""
    app = FastAPI(title="Social Network", version="0.1.0", lifespan=lifespan)

    session_factory = session_factory or SessionLocal
    registry = ConnectionRegistry()
    if settings.realtime_backend == "local":
        publisher = LocalPublisher(registry)
    else:
        publisher = RedisPublisher()

    session_store = SessionStore(
        ttl=settings.session_ttl,
        single_device=settings.session_single_device,
        cache=SessionCache() if settings.session_cache_enabled else None,
    )
    auth_provider = LocalAuthProvider(session_store)
    visibility = VisibilityResolver()
    membership = MembershipService()
    file_service = FileService()

    app.state.session_factory = session_factory
    app.state.registry = registry
    app.state.publisher = publisher
    app.state.session_store = session_store
    app.state.auth_provider = auth_provider
    app.state.visibility = visibility
    app.state.membership = membership
    app.state.follows = FollowService()
    app.state.file_service = file_service
    app.state.dispatcher = NotificationDispatcher(session_factory, publisher)
    app.state.posts = PostService(visibility, file_service)
    app.state.events = EventService(visibility, membership)
    app.state.messages = MessageService(visibility, membership)
    app.state.users = UserService(auth_provider, file_service)

    app.add_middleware(CSRFOriginMiddleware)

    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # Include routers
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(posts.router)
    app.include_router(groups.router)
    app.include_router(events.router)
    app.include_router(messages.router)
    app.include_router(files.router)
    app.include_router(realtime.router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


configure_logging()
app = create_app()
