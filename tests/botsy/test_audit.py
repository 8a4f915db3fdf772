from __future__ import annotations

from packages.botsy.audit import REDACTED, AuditEvent, AuditLogger
from packages.botsy.models import AuditLog

from .helpers import auth_headers


def test_log_redacts_secrets(session):
    audit = AuditLogger(session)

    row = audit.log(
        AuditEvent(
            action="channel.connected",
            actor="owner-1",
            company_id="c1",
            resource_type="channel",
            resource_id="messenger",
            metadata={"token": "abc", "page": {"access_token": "xyz", "id": "p1"}},
            ip="10.0.0.1",
        )
    )
    session.commit()

    stored = session.query(AuditLog).one()
    assert stored is row
    assert stored.meta == {"token": REDACTED, "page": {"access_token": REDACTED, "id": "p1"}}
    assert stored.ip == "10.0.0.1"
    assert stored.actor_user_id == "owner-1"


def test_disabled_logger_writes_nothing(session):
    audit = AuditLogger(session, enabled=False)

    assert audit.log(AuditEvent(action="settings.updated", actor="u", company_id=None)) is None
    session.commit()
    assert session.query(AuditLog).count() == 0


def test_custom_redact_fields(session):
    audit = AuditLogger(session, redact_fields=frozenset({"password"}))

    row = audit.log(
        AuditEvent(action="x", actor="u", company_id=None, metadata={"password": "p", "token": "t"})
    )

    assert row.meta == {"password": REDACTED, "token": "t"}


def test_request_context_fills_events_without_one(session):
    audit = AuditLogger(session, ip="203.0.113.7", user_agent="pytest-agent")

    implicit = audit.log(AuditEvent(action="settings.updated", actor="u", company_id=None))
    explicit = audit.log(
        AuditEvent(action="settings.updated", actor="u", company_id=None, ip="10.0.0.2")
    )

    assert (implicit.ip, implicit.user_agent) == ("203.0.113.7", "pytest-agent")
    assert (explicit.ip, explicit.user_agent) == ("10.0.0.2", "pytest-agent")


def test_routes_record_caller_ip_and_user_agent(client, session, company):
    response = client.post(
        "/api/instructions",
        json={"companyId": company, "instruction": {"content": "Svar kort"}},
        headers={
            **auth_headers("owner-1"),
            "X-Forwarded-For": "198.51.100.4, 10.0.0.1",
            "User-Agent": "BotsyAdmin/1.0",
        },
    )

    assert response.status_code == 201
    row = session.query(AuditLog).filter_by(action="instruction.created").one()
    assert row.ip == "198.51.100.4"
    assert row.user_agent == "BotsyAdmin/1.0"
