"""Fakes and builders shared by the Botsy tests."""

from __future__ import annotations

from packages.botsy.ai_providers import AIResponse
from packages.botsy.api import create_app
from packages.botsy.auth import VerifiedUser
from packages.botsy.knowledge_sync import ScrapedContent, ScrapedSite
from packages.botsy.models import Company, Membership, MembershipRole, MembershipStatus, User
from packages.botsy.rate_limit import RateLimiter
from packages.botsy.settings import BotsySettings


class FakeVerifier:
    """Accepts tokens of the form ``token-<uid>``."""

    def __init__(self, emails=None):
        self.emails = emails or {}
        self.calls = []

    def __call__(self, token):
        self.calls.append(token)
        if not token.startswith("token-"):
            return None
        uid = token[len("token-"):]
        return VerifiedUser(uid=uid, email=self.emails.get(uid, f"{uid}@example.com"))


class FakeAI:
    """Callable stand-in for ``AIClient`` that replays canned replies.

    ``replies`` maps a marker found in the system prompt to the reply text.
    """

    def __init__(self, reply="OK", *, success=True, provider="gemini", replies=None):
        self.reply = reply
        self.success = success
        self.provider = provider
        self.replies = replies or {}
        self.calls = []

    def __call__(self, system_prompt, messages, *, max_tokens=300, temperature=0.7):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": list(messages),
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if not self.success:
            return AIResponse(success=False, response="", provider=None)
        for marker, reply in self.replies.items():
            if marker in system_prompt:
                return AIResponse(success=True, response=reply, provider=self.provider)
        return AIResponse(success=True, response=self.reply, provider=self.provider)


class FakeScraper:
    def __init__(self, site=None, error=None):
        self.site = site or ScrapedSite(main=ScrapedContent(url="https://acme.no"))
        self.error = error
        self.calls = []

    def scrape_with_faq_page(self, base_url):
        self.calls.append(base_url)
        if self.error is not None:
            raise self.error
        return self.site


def auth_headers(uid):
    return {"Authorization": f"Bearer token-{uid}"}


def build_settings(**overrides) -> BotsySettings:
    values = {
        "database_url": "sqlite+pysqlite:///:memory:",
        "app_url": "https://botsy.test",
        "facebook_app_id": "fb-app",
        "facebook_app_secret": "fb-secret",
        "google_client_id": "google-client",
        "google_client_secret": "google-secret",
        "allowed_origins": ("https://botsy.test",),
    }
    values.update(overrides)
    return BotsySettings(**values)


def create_test_app(**kwargs):
    kwargs.setdefault("token_verifier", FakeVerifier())
    kwargs.setdefault("ai_generator", FakeAI())
    kwargs.setdefault("scraper", FakeScraper())
    kwargs.setdefault("rate_limiter", RateLimiter(100, 60))
    settings = kwargs.pop("settings", None) or build_settings()
    return create_app(settings, **kwargs)


def seed_company(session, company_id="c1", *, owner="owner-1", members=(), **fields):
    """Create a company with an owner membership plus ``(uid, role)`` members."""

    session.add(
        Company(id=company_id, name=fields.pop("name", "Acme AS"), owner_id=owner, **fields)
    )
    for uid, role in ((owner, MembershipRole.OWNER), *members):
        if session.get(User, uid) is None:
            session.add(User(id=uid, email=f"{uid}@example.com", display_name=uid.title()))
        session.add(
            Membership(
                user_id=uid,
                company_id=company_id,
                role=role,
                status=MembershipStatus.ACTIVE,
            )
        )
    session.commit()


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None, reason=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ""
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeHTTP:
    """Minimal ``requests.Session`` replacement routing on URL substrings."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []

    def _respond(self, method, url, kwargs):
        self.requests.append((method, url, kwargs))
        for marker, response in self.routes.items():
            if marker in url:
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResponse(404, text="not found", reason="Not Found")

    def get(self, url, **kwargs):
        return self._respond("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._respond("POST", url, kwargs)
