"""FastAPI dependencies shared by the Botsy routers.

Everything is looked up on ``request.app.state`` which ``create_app``
populates, so routers stay free of module level state.
"""

from __future__ import annotations

from typing import Iterator, Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .ai_providers import AIClient
from .audit import AuditLogger
from .auth import AuthResult, CompanyAccess, require_company_access, verify_auth
from .channels import ChannelService
from .errors import RateLimitedError
from .instructions import InstructionService
from .knowledge_sync import KnowledgeSyncService
from .leaderboard import LeaderboardService
from .oauth import FacebookOAuthClient, GoogleOAuthClient
from .rate_limit import rate_limit_identifier
from .settings import BotsySettings
from .team import TeamService

UNAUTHORIZED = "Unauthorized"
FORBIDDEN = "Forbidden"


def get_settings(request: Request) -> BotsySettings:
    return request.app.state.settings


def get_session(request: Request) -> Iterator[Session]:
    session = request.app.state.database.session()
    try:
        yield session
    finally:
        session.close()


def get_audit(request: Request, session: Session = Depends(get_session)) -> AuditLogger:
    return AuditLogger(
        session,
        enabled=request.app.state.settings.enable_audit,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


def get_current_user(request: Request) -> AuthResult:
    auth = verify_auth(request.headers, request.app.state.token_verifier)
    if auth is None:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED)
    return auth


def require_access(session: Session, auth: AuthResult, company_id: Optional[str]) -> CompanyAccess:
    """Check ``companyId`` is present (400) and the caller belongs to it (403)."""

    if not company_id:
        raise HTTPException(status_code=400, detail="companyId is required")
    access = require_company_access(session, auth.uid, company_id)
    if access is None:
        raise HTTPException(status_code=403, detail=FORBIDDEN)
    return access


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def enforce_rate_limit(request: Request) -> None:
    result = request.app.state.rate_limiter.check(rate_limit_identifier(ip=client_ip(request)))
    if not result.allowed:
        raise RateLimitedError(result.retry_after or 1)


def get_ai(request: Request) -> AIClient:
    return request.app.state.ai_generator


def get_facebook_client(request: Request) -> FacebookOAuthClient:
    return request.app.state.facebook_client


def get_google_client(request: Request) -> GoogleOAuthClient:
    return request.app.state.google_client


def get_channel_service(
    session: Session = Depends(get_session), audit: AuditLogger = Depends(get_audit)
) -> ChannelService:
    return ChannelService(session, audit=audit)


def get_leaderboard_service(session: Session = Depends(get_session)) -> LeaderboardService:
    return LeaderboardService(session)


def get_team_service(
    request: Request,
    session: Session = Depends(get_session),
    audit: AuditLogger = Depends(get_audit),
) -> TeamService:
    app_url = request.app.state.settings.app_url or "https://botsy.no"
    return TeamService(session, audit=audit, app_url=app_url)


def get_instruction_service(
    session: Session = Depends(get_session), audit: AuditLogger = Depends(get_audit)
) -> InstructionService:
    return InstructionService(session, audit=audit)


def get_sync_service(
    request: Request,
    session: Session = Depends(get_session),
    audit: AuditLogger = Depends(get_audit),
) -> KnowledgeSyncService:
    return KnowledgeSyncService(
        session,
        ai=request.app.state.ai_generator,
        scraper=request.app.state.scraper,
        audit=audit,
    )


__all__ = [
    "FORBIDDEN",
    "UNAUTHORIZED",
    "client_ip",
    "enforce_rate_limit",
    "get_ai",
    "get_audit",
    "get_channel_service",
    "get_current_user",
    "get_facebook_client",
    "get_google_client",
    "get_instruction_service",
    "get_leaderboard_service",
    "get_session",
    "get_settings",
    "get_sync_service",
    "get_team_service",
    "require_access",
]
