"""Google OAuth flow for the Gmail channel."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests
import structlog

from ..errors import ConfigurationError, OAuthError
from .transport import json_body

__all__ = [
    "GMAIL_API_URL",
    "GOOGLE_OAUTH_URL",
    "GOOGLE_SCOPES",
    "GOOGLE_TOKEN_URL",
    "GmailProfile",
    "GoogleOAuthClient",
    "GoogleTokens",
]

GOOGLE_OAUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GMAIL_API_URL = "https://gmail.googleapis.com/gmail/v1"
GOOGLE_SCOPES: tuple[str, ...] = (
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
)

logger = structlog.get_logger(__name__)


@dataclass
class GoogleTokens:
    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GoogleTokens":
        if not payload.get("access_token"):
            raise OAuthError("Token response did not include an access token")
        return cls(
            access_token=payload["access_token"],
            expires_in=int(payload.get("expires_in") or 0),
            refresh_token=payload.get("refresh_token"),
            token_type=payload.get("token_type") or "Bearer",
            scope=payload.get("scope") or "",
        )

    def expires_at_ms(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        return int((now + self.expires_in) * 1000)


@dataclass
class GmailProfile:
    email_address: str
    messages_total: int = 0
    threads_total: int = 0


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        *,
        timeout: float = 15.0,
        http: requests.Session | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.http = http or requests.Session()

    def _send(self, method: str, url: str, error: str, **kwargs: Any) -> requests.Response:
        try:
            return getattr(self.http, method)(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("google_request_error", url=url, error=str(exc))
            raise OAuthError(error) from exc

    def build_auth_url(self, *, company_id: str, redirect_uri: str) -> str:
        if not self.client_id:
            raise ConfigurationError("GOOGLE_CLIENT_ID is not configured")
        query = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(GOOGLE_SCOPES),
            "state": company_id,
            "response_type": "code",
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_OAUTH_URL}?{urlencode(query)}"

    def _token_request(self, form: Dict[str, str], default_error: str) -> GoogleTokens:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("Google OAuth credentials not configured")
        response = self._send(
            "post",
            GOOGLE_TOKEN_URL,
            default_error,
            data={"client_id": self.client_id, "client_secret": self.client_secret, **form},
        )
        if not response.ok:
            try:
                message = response.json().get("error_description") or default_error
            except (ValueError, AttributeError):
                message = default_error
            logger.warning("google_token_request_failed", status=response.status_code, error=message)
            raise OAuthError(message)
        return GoogleTokens.from_payload(json_body(response, default_error))

    def exchange_code_for_tokens(self, *, code: str, redirect_uri: str) -> GoogleTokens:
        return self._token_request(
            {"code": code, "redirect_uri": redirect_uri, "grant_type": "authorization_code"},
            "Failed to exchange code for tokens",
        )

    def get_gmail_profile(self, access_token: str) -> GmailProfile:
        error = "Failed to get Gmail profile"
        response = self._send(
            "get",
            f"{GMAIL_API_URL}/users/me/profile",
            error,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not response.ok:
            try:
                message = (response.json().get("error") or {}).get("message")
            except (ValueError, AttributeError):
                message = None
            raise OAuthError(message or error)
        payload = json_body(response, error)
        return GmailProfile(
            email_address=payload.get("emailAddress") or "",
            messages_total=int(payload.get("messagesTotal") or 0),
            threads_total=int(payload.get("threadsTotal") or 0),
        )
