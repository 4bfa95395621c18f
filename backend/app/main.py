"""
FastAPI application assembly for the authentication backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.db.connection import get_session_factory
from app.errors import AuthError, KeyDerivationError
from app.mailer import build_mailer
from app.resolver import CredentialResolver
from app.strategies import build_authenticator
from app.tasks import TaskQueue

# Import routers
from app.routers import auth, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    settings = get_settings()

    # ---- Singleton services ----
    task_queue = TaskQueue(max_workers=settings.TASK_QUEUE_WORKERS)
    mailer = build_mailer(settings)
    resolver = CredentialResolver(
        task_queue=task_queue,
        session_factory=get_session_factory(),
        mailer=mailer,
        code_ttl_minutes=settings.VERIFICATION_CODE_TTL_MINUTES,
        log_codes=settings.is_development,
    )

    # Attach to app.state so routers can access them
    app.state.settings = settings
    app.state.task_queue = task_queue
    app.state.resolver = resolver
    app.state.authenticator = build_authenticator(settings, resolver)

    if not settings.JWT_SECRET_KEY:
        logger.warning("JWT_SECRET_KEY is empty; issued tokens are not secure")

    logger.info("Auth backend starting up")
    logger.info("  APP_ENV          = %s", settings.APP_ENV)
    logger.info("  MAILER           = %s", type(mailer).__name__)
    logger.info("  GOOGLE_OAUTH     = %s", "enabled" if settings.google_configured else "disabled")
    logger.info("  CODE_TTL         = %d min", settings.VERIFICATION_CODE_TTL_MINUTES)
    logger.info("  ALLOWED_ORIGINS  = %s", settings.ALLOWED_ORIGINS)

    yield  # Application is running

    logger.info("Auth backend shutting down")
    task_queue.shutdown(wait=True)
    app.state.authenticator.close()


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Shape every ``AuthError`` into a JSON body with its status code."""
    if isinstance(exc, KeyDerivationError):
        logger.error("Key derivation failed on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="RemixKits Auth Backend",
        description="Email/password and Google sign-in with email verification",
        version="0.1.0",
        lifespan=lifespan,
    )

    # ---- CORS ----
    explicit_origins = [o for o in settings.ALLOWED_ORIGINS if "*" not in o]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=explicit_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthError, auth_error_handler)

    # ---- Routers ----
    app.include_router(health.router)
    app.include_router(auth.router)

    return app


# Module-level app instance for uvicorn
app = create_app()
