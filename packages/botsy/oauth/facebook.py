"""Meta Graph API OAuth flow for Instagram and Messenger channels."""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests
import structlog

from ..errors import ConfigurationError, OAuthError
from .transport import json_body

__all__ = [
    "FACEBOOK_DIALOG_URL",
    "FACEBOOK_GRAPH_URL",
    "FacebookOAuthClient",
    "FacebookPage",
    "MESSAGING_CHANNELS",
    "verify_webhook_signature",
]

FACEBOOK_GRAPH_VERSION = "v21.0"
FACEBOOK_GRAPH_URL = f"https://graph.facebook.com/{FACEBOOK_GRAPH_VERSION}"
FACEBOOK_DIALOG_URL = f"https://www.facebook.com/{FACEBOOK_GRAPH_VERSION}/dialog/oauth"

MESSAGING_CHANNELS: frozenset[str] = frozenset({"instagram", "messenger"})
PAGE_SCOPES: tuple[str, ...] = (
    "pages_show_list",
    "pages_messaging",
    "pages_manage_metadata",
    "pages_read_engagement",
    "business_management",
)
INSTAGRAM_SCOPES: tuple[str, ...] = ("instagram_basic", "instagram_manage_messages")
PAGE_FIELDS = "id,name,access_token,picture{url},instagram_business_account{id,username,profile_picture_url}"
WEBHOOK_FIELDS = "messages,messaging_postbacks"

logger = structlog.get_logger(__name__)


@dataclass
class FacebookPage:
    id: str
    name: str
    access_token: str
    instagram_business_account: Optional[Dict[str, Any]] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "FacebookPage":
        return cls(
            id=str(payload.get("id", "")),
            name=payload.get("name") or "",
            access_token=payload.get("access_token") or "",
            instagram_business_account=payload.get("instagram_business_account"),
            raw=payload,
        )


def _error_message(response: requests.Response, default: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return default
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return default


class FacebookOAuthClient:
    def __init__(
        self,
        app_id: str | None,
        app_secret: str | None,
        *,
        timeout: float = 15.0,
        http: requests.Session | None = None,
    ) -> None:
        self.app_id = app_id
        self.app_secret = app_secret
        self.timeout = timeout
        self.http = http or requests.Session()

    def _credentials(self) -> tuple[str, str]:
        if not self.app_id or not self.app_secret:
            raise ConfigurationError("Facebook app credentials not configured")
        return self.app_id, self.app_secret

    def _send(self, method: str, url: str, error: str, **kwargs: Any) -> requests.Response:
        try:
            return getattr(self.http, method)(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("facebook_request_error", url=url, error=str(exc))
            raise OAuthError(error) from exc

    def _get(self, path: str, params: Dict[str, str], error: str) -> Dict[str, Any]:
        response = self._send("get", f"{FACEBOOK_GRAPH_URL}/{path}", error, params=params)
        if not response.ok:
            message = _error_message(response, error)
            logger.warning("facebook_request_failed", path=path, status=response.status_code, error=message)
            raise OAuthError(message)
        return json_body(response, error)

    def build_auth_url(self, *, channel: str, company_id: str, redirect_uri: str) -> str:
        """Return the consent dialog URL; ``state`` carries ``companyId:channel``."""

        if not self.app_id:
            raise ConfigurationError("FACEBOOK_APP_ID is not configured")
        if channel not in MESSAGING_CHANNELS:
            raise ValueError('Invalid channel. Must be "instagram" or "messenger"')
        scopes = list(PAGE_SCOPES)
        if channel == "instagram":
            scopes.extend(INSTAGRAM_SCOPES)
        query = {
            "client_id": self.app_id,
            "redirect_uri": redirect_uri,
            "scope": ",".join(scopes),
            "state": f"{company_id}:{channel}",
            "response_type": "code",
            "auth_type": "rerequest",
        }
        return f"{FACEBOOK_DIALOG_URL}?{urlencode(query)}"

    def _token(self, params: Dict[str, str], error: str) -> Dict[str, Any]:
        payload = self._get("oauth/access_token", params, error)
        if not payload.get("access_token"):
            raise OAuthError(error)
        return payload

    def exchange_code_for_token(self, *, code: str, redirect_uri: str) -> Dict[str, Any]:
        app_id, app_secret = self._credentials()
        return self._token(
            {
                "client_id": app_id,
                "client_secret": app_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
            "Failed to exchange code for token",
        )

    def get_long_lived_token(self, short_lived_token: str) -> Dict[str, Any]:
        app_id, app_secret = self._credentials()
        return self._token(
            {
                "grant_type": "fb_exchange_token",
                "client_id": app_id,
                "client_secret": app_secret,
                "fb_exchange_token": short_lived_token,
            },
            "Failed to get long-lived token",
        )

    def get_user_pages(self, user_access_token: str) -> List[FacebookPage]:
        payload = self._get(
            "me/accounts",
            {"access_token": user_access_token, "fields": PAGE_FIELDS},
            "Failed to get user pages",
        )
        pages = [FacebookPage.from_payload(item) for item in payload.get("data") or []]
        logger.info("facebook_pages_found", count=len(pages))
        return pages

    def get_page_access_token(self, *, page_id: str, user_access_token: str) -> str:
        # Page tokens fetched with a long-lived user token are long-lived too.
        long_lived = self.get_long_lived_token(user_access_token)
        for page in self.get_user_pages(long_lived["access_token"]):
            if page.id == page_id:
                return page.access_token
        raise OAuthError("Page not found or you do not have access to it")

    def subscribe_webhook(self, *, page_id: str, page_access_token: str) -> bool:
        error = "Failed to subscribe to webhooks"
        response = self._send(
            "post",
            f"{FACEBOOK_GRAPH_URL}/{page_id}/subscribed_apps",
            error,
            params={"subscribed_fields": WEBHOOK_FIELDS, "access_token": page_access_token},
        )
        if not response.ok:
            raise OAuthError(_error_message(response, error))
        return json_body(response, error).get("success") is True

    def get_instagram_business_account(
        self, *, page_id: str, page_access_token: str
    ) -> Optional[Dict[str, Any]]:
        error = "Failed to look up the Instagram business account"
        response = self._send(
            "get",
            f"{FACEBOOK_GRAPH_URL}/{page_id}",
            error,
            params={
                "fields": "instagram_business_account{id,username,profile_picture_url}",
                "access_token": page_access_token,
            },
        )
        if not response.ok:
            logger.warning("instagram_account_lookup_failed", page_id=page_id, status=response.status_code)
            return None
        return json_body(response, error).get("instagram_business_account") or None


def verify_webhook_signature(app_secret: str, signature: str, raw_body: bytes) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the request body."""

    if not signature.startswith("sha256="):
        return False
    expected = signature[len("sha256=") :]
    calculated = hmac.new(app_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, calculated)
