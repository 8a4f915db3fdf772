"""OAuth start and callback routes for Meta (Instagram/Messenger) and Gmail."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse

from ..channels import ChannelService
from ..dependencies import (
    get_channel_service,
    get_facebook_client,
    get_google_client,
    get_settings,
)
from ..errors import ApiError
from ..models import ChannelType
from ..oauth import FacebookOAuthClient, GoogleOAuthClient
from ..oauth.facebook import MESSAGING_CHANNELS
from ..settings import BotsySettings

router = APIRouter(prefix="/api/auth", tags=["oauth"])

logger = structlog.get_logger(__name__)


def _base_url(settings: BotsySettings, request: Request) -> str:
    return settings.app_url or str(request.base_url).rstrip("/")


def _admin_redirect(base_url: str, **params: str) -> RedirectResponse:
    return RedirectResponse(f"{base_url}/admin?{urlencode(params)}", status_code=302)


@router.get("/facebook")
def facebook_start(
    request: Request,
    channel: Optional[str] = Query(None),
    company_id: Optional[str] = Query(None, alias="companyId"),
    settings: BotsySettings = Depends(get_settings),
    client: FacebookOAuthClient = Depends(get_facebook_client),
) -> RedirectResponse:
    if channel not in MESSAGING_CHANNELS:
        raise HTTPException(
            status_code=400, detail='Invalid channel. Must be "instagram" or "messenger"'
        )
    if not company_id:
        raise HTTPException(status_code=400, detail="companyId is required")

    redirect_uri = f"{_base_url(settings, request)}/api/auth/facebook/callback"
    url = client.build_auth_url(channel=channel, company_id=company_id, redirect_uri=redirect_uri)
    return RedirectResponse(url, status_code=302)


@router.get("/facebook/callback")
def facebook_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
    settings: BotsySettings = Depends(get_settings),
    client: FacebookOAuthClient = Depends(get_facebook_client),
    service: ChannelService = Depends(get_channel_service),
) -> RedirectResponse:
    base_url = _base_url(settings, request)
    if error:
        logger.warning("facebook_oauth_denied", error=error, description=error_description)
        return _admin_redirect(base_url, fb_error=error_description or "User denied access")
    if not code or not state:
        return _admin_redirect(base_url, fb_error="Invalid callback parameters")

    company_id, _, channel = state.partition(":")
    if not company_id or channel not in MESSAGING_CHANNELS:
        return _admin_redirect(base_url, fb_error="Invalid state parameter")

    try:
        connection = service.connect_facebook(
            client,
            company_id=company_id,
            channel=ChannelType(channel),
            code=code,
            redirect_uri=f"{base_url}/api/auth/facebook/callback",
        )
    except (ApiError, LookupError) as exc:
        logger.warning("facebook_oauth_failed", company_id=company_id, error=str(exc))
        return _admin_redirect(base_url, fb_error=str(exc))

    logger.info("facebook_channel_connected", company_id=company_id, channel=channel)
    return _admin_redirect(base_url, fb_success=channel, fb_page=connection.page_name or "")


@router.get("/google")
def google_start(
    request: Request,
    company_id: Optional[str] = Query(None, alias="companyId"),
    settings: BotsySettings = Depends(get_settings),
    client: GoogleOAuthClient = Depends(get_google_client),
) -> RedirectResponse:
    if not company_id:
        raise HTTPException(status_code=400, detail="companyId is required")
    redirect_uri = f"{_base_url(settings, request)}/api/auth/google/callback"
    return RedirectResponse(
        client.build_auth_url(company_id=company_id, redirect_uri=redirect_uri),
        status_code=302,
    )


@router.get("/google/callback")
def google_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    settings: BotsySettings = Depends(get_settings),
    client: GoogleOAuthClient = Depends(get_google_client),
    service: ChannelService = Depends(get_channel_service),
) -> RedirectResponse:
    base_url = _base_url(settings, request)
    if error:
        message = "Du avbrøt tilkoblingen" if error == "access_denied" else error
        return _admin_redirect(base_url, google_error=message)
    if not code or not state:
        return _admin_redirect(base_url, google_error="Ugyldige callback-parametere")

    try:
        _, profile = service.connect_gmail(
            client,
            company_id=state,
            code=code,
            redirect_uri=f"{base_url}/api/auth/google/callback",
        )
    except (ApiError, LookupError) as exc:
        logger.warning("google_oauth_failed", company_id=state, error=str(exc))
        return _admin_redirect(base_url, google_error=str(exc))

    logger.info("gmail_channel_connected", company_id=state)
    return _admin_redirect(base_url, google_success="email", google_email=profile.email_address)
