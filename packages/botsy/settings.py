"""Runtime configuration for the Botsy API."""

from __future__ import annotations

import os
from dataclasses import dataclass

__all__ = ["BotsySettings"]


def _split_csv(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(slots=True)
class BotsySettings:
    """Botsy service settings.

    Every credential is optional so the app can boot for local development;
    routes that need a missing credential fail with a configuration error.
    """

    database_url: str = "sqlite+pysqlite:///./botsy.db"
    app_url: str | None = None
    firebase_api_key: str | None = None
    facebook_app_id: str | None = None
    facebook_app_secret: str | None = None
    google_client_id: str | None = None
    google_client_secret: str | None = None
    gemini_api_key: str | None = None
    groq_api_key: str | None = None
    webhook_verify_token: str | None = None
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)
    enable_audit: bool = True
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: int = 60
    http_timeout_seconds: float = 15.0

    @classmethod
    def from_env(cls) -> BotsySettings:
        database_url = (
            os.getenv("BOTSY_DATABASE_URL")
            or os.getenv("DATABASE_URL")
            or "sqlite+pysqlite:///./botsy.db"
        )
        app_url = os.getenv("BOTSY_APP_URL") or os.getenv("NEXT_PUBLIC_APP_URL") or ""
        app_url = app_url.rstrip("/") or None
        origins = _split_csv(os.getenv("BOTSY_ALLOWED_ORIGINS"))
        if not origins:
            origins = (app_url,) if app_url else ("http://localhost:3000",)
        return cls(
            database_url=database_url,
            app_url=app_url,
            firebase_api_key=os.getenv("FIREBASE_API_KEY")
            or os.getenv("NEXT_PUBLIC_FIREBASE_API_KEY"),
            facebook_app_id=os.getenv("FACEBOOK_APP_ID"),
            facebook_app_secret=os.getenv("FACEBOOK_APP_SECRET"),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            groq_api_key=os.getenv("GROQ_API_KEY"),
            webhook_verify_token=os.getenv("BOTSY_WEBHOOK_VERIFY_TOKEN")
            or os.getenv("WEBHOOK_VERIFY_TOKEN"),
            allowed_origins=origins,
            enable_audit=_env_flag("BOTSY_ENABLE_AUDIT", "true"),
            rate_limit_max_requests=int(os.getenv("BOTSY_RATE_LIMIT_MAX_REQUESTS", "10")),
            rate_limit_window_seconds=int(os.getenv("BOTSY_RATE_LIMIT_WINDOW_SECONDS", "60")),
            http_timeout_seconds=float(os.getenv("BOTSY_HTTP_TIMEOUT_SECONDS", "15")),
        )
