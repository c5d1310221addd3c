"""
Client Files Portal - FastAPI Application Entrypoint

This module initializes the FastAPI application with:
- CORS and security middleware
- Authentication, session, login-history and user-administration routes
- Database lifecycle management
- Per-process collaborators on app.state (database sessions, rate
  limiter, lockout engine, notification ports)

Run with:
    uvicorn portal.app:app
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal.admin.routes import router as users_router
from portal.api.error_handling import register_exception_handlers
from portal.auth.database import get_engine, get_session_factory, init_db
from portal.auth.history_routes import router as login_history_router
from portal.auth.lockout import LockoutEngine
from portal.auth.routes import router as auth_router
from portal.auth.session_routes import router as sessions_router
from portal.config import settings
from portal.gateway.middleware import SecurityMiddleware
from portal.gateway.ratelimit import InMemoryRateLimiter, RateLimiter
from portal.logging import get_logger
from portal.notifications import (
    BestEffortNotifier,
    EmailSender,
    RequiredNotifier,
    SmtpEmailSender,
)


logger = get_logger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Refuse to start in production without SECRET_KEY
        - Create tables (idempotent)

    Shutdown:
        - Wait for best-effort emails still in flight
        - Dispose the engine if this app created it
    """
    if not settings.SECRET_KEY:
        if settings.is_production:
            raise RuntimeError("SECRET_KEY must be set in production")
        logger.warning("secret_key_not_set")

    init_db(app.state.db_engine)
    logger.info("portal_started", environment=settings.ENVIRONMENT)

    yield

    await app.state.best_effort_notifier.drain()
    if app.state.owns_engine:
        app.state.db_engine.dispose()
    logger.info("portal_stopped")


def create_app(
    engine=None,
    email_sender: Optional[EmailSender] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        engine: SQLAlchemy engine (default: from DATABASE_URL)
        email_sender: Outbound email sender (default: SMTP from settings)
        rate_limiter: Rate limiter (default: in-process fixed window)
    """
    app = FastAPI(
        title="Client Files Portal",
        description="Role-based access to client documents",
        version=VERSION,
        lifespan=lifespan,
    )

    app.state.owns_engine = engine is None
    app.state.db_engine = engine if engine is not None else get_engine(settings.DATABASE_URL)
    app.state.db_session_factory = get_session_factory(app.state.db_engine)

    sender = email_sender if email_sender is not None else SmtpEmailSender.from_settings()
    app.state.email_sender = sender
    app.state.best_effort_notifier = BestEffortNotifier(sender)
    app.state.required_notifier = RequiredNotifier(sender)
    app.state.lockout_engine = LockoutEngine(notifier=app.state.best_effort_notifier)
    app.state.rate_limiter = rate_limiter if rate_limiter is not None else InMemoryRateLimiter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "PUT", "PATCH"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
        ],
    )
    app.add_middleware(SecurityMiddleware)

    register_exception_handlers(app)

    app.include_router(auth_router, prefix="/api")
    app.include_router(users_router, prefix="/api")
    app.include_router(sessions_router, prefix="/api")
    app.include_router(login_history_router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint for deployment tooling."""
        return {
            "status": "healthy",
            "version": VERSION,
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()
