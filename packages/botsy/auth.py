"""Bearer-token verification and company access checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

import requests
import structlog
from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from .models import Membership, MembershipRole, MembershipStatus, User

__all__ = [
    "AuthResult",
    "CompanyAccess",
    "FirebaseTokenVerifier",
    "IDENTITY_TOOLKIT_URL",
    "LEGACY_MEMBERSHIP_ID",
    "TokenVerifier",
    "VerifiedUser",
    "extract_bearer_token",
    "require_company_access",
    "verify_auth",
]

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
LEGACY_MEMBERSHIP_ID = "legacy"

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class VerifiedUser:
    uid: str
    email: Optional[str]


@dataclass(frozen=True)
class AuthResult:
    uid: str
    email: Optional[str]
    token: str


@dataclass(frozen=True)
class CompanyAccess:
    role: MembershipRole
    membership_id: str
    status: str = MembershipStatus.ACTIVE.value


class TokenVerifier(Protocol):
    def __call__(self, token: str) -> Optional[VerifiedUser]: ...


class FirebaseTokenVerifier:
    """Verifies ID tokens through the Identity Toolkit ``accounts:lookup`` call."""

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = IDENTITY_TOOLKIT_URL,
        timeout: float = 10.0,
        http: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def __call__(self, token: str) -> Optional[VerifiedUser]:
        if not self.api_key:
            logger.error("firebase_api_key_missing")
            return None
        try:
            response = self.http.post(
                f"{self.base_url}/accounts:lookup",
                params={"key": self.api_key},
                json={"idToken": token},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("token_verification_error", error=str(exc))
            return None

        if not response.ok:
            logger.info("token_verification_failed", status=response.status_code)
            return None
        try:
            payload = response.json()
        except ValueError:
            return None

        users = payload.get("users") or []
        if not users or not users[0].get("localId"):
            return None
        user = users[0]
        return VerifiedUser(uid=user["localId"], email=user.get("email") or None)


def extract_bearer_token(headers: Mapping[str, str]) -> Optional[str]:
    authorization = headers.get("authorization") or ""
    if not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer ") :].strip()
    return token or None


def verify_auth(headers: Mapping[str, str], verifier: TokenVerifier) -> Optional[AuthResult]:
    """Return the authenticated caller, or ``None`` when the request is anonymous.

    Verifier failures are treated the same as a missing token.
    """

    token = extract_bearer_token(headers)
    if token is None:
        return None
    try:
        user = verifier(token)
    except Exception:  # noqa: BLE001 - any verifier failure means unauthenticated
        logger.exception("token_verifier_crashed")
        return None
    if user is None:
        return None
    return AuthResult(uid=user.uid, email=user.email, token=token)


def require_company_access(
    session: Session, user_id: str, company_id: str
) -> Optional[CompanyAccess]:
    """Resolve the caller's role in ``company_id``.

    Memberships are checked first. Owners created at signup may have no
    membership row, so the user record's ``company_id``/``role`` is used as a
    fallback.
    """

    membership = (
        session.execute(
            select(Membership).where(
                and_(
                    Membership.user_id == user_id,
                    Membership.company_id == company_id,
                )
            )
        )
        .scalars()
        .first()
    )
    if membership is not None:
        if membership.status == MembershipStatus.SUSPENDED:
            return None
        return CompanyAccess(
            role=membership.role,
            membership_id=membership.id,
            status=membership.status.value,
        )

    user = session.get(User, user_id)
    if user is None or user.company_id != company_id or not user.role:
        return None
    role = "employee" if user.role == "pending" else user.role
    try:
        resolved = MembershipRole(role)
    except ValueError:
        logger.warning("unknown_legacy_role", user_id=user_id, role=user.role)
        return None
    return CompanyAccess(role=resolved, membership_id=LEGACY_MEMBERSHIP_ID)
