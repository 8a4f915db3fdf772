"""FastAPI application factory for the Botsy admin backend."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .ai_providers import AIClient
from .auth import FirebaseTokenVerifier, TokenVerifier
from .database import BotsyDatabase, init_engine
from .errors import ApiError, RateLimitedError
from .knowledge_sync import WebsiteScraper
from .oauth import FacebookOAuthClient, GoogleOAuthClient
from .rate_limit import RateLimiter
from .routes import ROUTERS
from .settings import BotsySettings

__all__ = ["create_app"]

logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


def create_app(
    settings: BotsySettings | None = None,
    *,
    token_verifier: TokenVerifier | None = None,
    ai_generator=None,
    scraper: WebsiteScraper | None = None,
    facebook_client: FacebookOAuthClient | None = None,
    google_client: GoogleOAuthClient | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Create and configure the Botsy API.

    Collaborators default to the real HTTP-backed clients built from
    ``settings``; tests pass fakes instead.
    """

    settings = settings or BotsySettings.from_env()
    engine = init_engine(settings)
    database = BotsyDatabase(engine=engine)
    database.create_all()

    timeout = settings.http_timeout_seconds
    app = FastAPI(title="Botsy Admin API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.database = database
    app.state.token_verifier = token_verifier or FirebaseTokenVerifier(
        settings.firebase_api_key, timeout=timeout
    )
    app.state.ai_generator = ai_generator or AIClient.from_settings(settings)
    app.state.scraper = scraper or WebsiteScraper(timeout=timeout)
    app.state.facebook_client = facebook_client or FacebookOAuthClient(
        settings.facebook_app_id, settings.facebook_app_secret, timeout=timeout
    )
    app.state.google_client = google_client or GoogleOAuthClient(
        settings.google_client_id, settings.google_client_secret, timeout=timeout
    )
    app.state.rate_limiter = rate_limiter or RateLimiter(
        settings.rate_limit_max_requests, settings.rate_limit_window_seconds
    )

    # ========================================================================
    # Error bodies
    # ========================================================================

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _handle_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return _error(400, message)

    @app.exception_handler(ApiError)
    async def _handle_api_error(request: Request, exc: ApiError):
        headers = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)

    @app.exception_handler(Exception)
    async def _handle_errors(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return _error(500, "Internal server error")

    for router in ROUTERS:
        app.include_router(router)
    return app
