import requests

from packages.botsy.auth import (
    LEGACY_MEMBERSHIP_ID,
    FirebaseTokenVerifier,
    VerifiedUser,
    extract_bearer_token,
    require_company_access,
    verify_auth,
)
from packages.botsy.models import Company, Membership, MembershipRole, MembershipStatus, User

from .helpers import FakeHTTP, FakeResponse, FakeVerifier


def test_extract_bearer_token():
    assert extract_bearer_token({"authorization": "Bearer abc"}) == "abc"
    assert extract_bearer_token({"authorization": "Basic abc"}) is None
    assert extract_bearer_token({"authorization": "Bearer   "}) is None
    assert extract_bearer_token({}) is None


def test_verify_auth_returns_caller():
    result = verify_auth({"authorization": "Bearer token-u1"}, FakeVerifier())

    assert result.uid == "u1"
    assert result.email == "u1@example.com"
    assert result.token == "token-u1"


def test_verify_auth_rejects_unknown_token_and_crashing_verifier():
    assert verify_auth({"authorization": "Bearer nope"}, FakeVerifier()) is None

    def crash(token):
        raise RuntimeError("boom")

    assert verify_auth({"authorization": "Bearer token-u1"}, crash) is None


def test_firebase_verifier_looks_up_account():
    http = FakeHTTP(
        {"accounts:lookup": FakeResponse(200, {"users": [{"localId": "u1", "email": "a@b.no"}]})}
    )
    verifier = FirebaseTokenVerifier("key", http=http)

    assert verifier("id-token") == VerifiedUser(uid="u1", email="a@b.no")
    method, url, kwargs = http.requests[0]
    assert method == "POST"
    assert kwargs["params"] == {"key": "key"}
    assert kwargs["json"] == {"idToken": "id-token"}


def test_firebase_verifier_failures_are_anonymous():
    assert FirebaseTokenVerifier(None, http=FakeHTTP())("t") is None
    assert FirebaseTokenVerifier("key", http=FakeHTTP({"lookup": FakeResponse(400)}))("t") is None
    assert (
        FirebaseTokenVerifier("key", http=FakeHTTP({"lookup": FakeResponse(200, {"users": []})}))("t")
        is None
    )
    offline = FakeHTTP({"lookup": requests.ConnectionError("offline")})
    assert FirebaseTokenVerifier("key", http=offline)("t") is None


def test_company_access_from_membership(session):
    session.add(Company(id="c1", name="Acme"))
    session.add(Membership(user_id="u1", company_id="c1", role=MembershipRole.ADMIN))
    session.commit()

    access = require_company_access(session, "u1", "c1")

    assert access.role == MembershipRole.ADMIN
    assert access.status == "active"
    assert require_company_access(session, "u1", "other") is None


def test_suspended_membership_has_no_access(session):
    session.add(Company(id="c1", name="Acme"))
    session.add(
        Membership(
            user_id="u1",
            company_id="c1",
            role=MembershipRole.OWNER,
            status=MembershipStatus.SUSPENDED,
        )
    )
    session.commit()

    assert require_company_access(session, "u1", "c1") is None


def test_legacy_user_record_grants_access(session):
    session.add(Company(id="c1", name="Acme"))
    session.add(User(id="owner", email="o@acme.no", company_id="c1", role="owner"))
    session.add(User(id="new", email="n@acme.no", company_id="c1", role="pending"))
    session.add(User(id="odd", email="x@acme.no", company_id="c1", role="superuser"))
    session.commit()

    owner = require_company_access(session, "owner", "c1")
    assert owner.role == MembershipRole.OWNER
    assert owner.membership_id == LEGACY_MEMBERSHIP_ID
    assert require_company_access(session, "new", "c1").role == MembershipRole.EMPLOYEE
    assert require_company_access(session, "odd", "c1") is None
