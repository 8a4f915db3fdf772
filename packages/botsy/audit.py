from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

import structlog
from sqlalchemy.orm import Session

from .models import AuditLog, utcnow

REDACTED = "***"
DEFAULT_REDACT_FIELDS: frozenset[str] = frozenset(
    {"token", "secret", "access_token", "refresh_token"}
)


@dataclass(frozen=True)
class AuditEvent:
    action: str
    actor: str
    company_id: str | None
    resource_type: str | None = None
    resource_id: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    ip: str | None = None
    user_agent: str | None = None


class AuditLogger:
    """Writes audit rows into the caller's session and mirrors them to structlog.

    The row is only added to the session; it is committed together with the
    change it describes. ``ip`` and ``user_agent`` describe the request the
    logger was built for and fill events that carry none.
    """

    def __init__(
        self,
        session: Session,
        *,
        enabled: bool = True,
        redact_fields: frozenset[str] = DEFAULT_REDACT_FIELDS,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        self._session = session
        self._ip = ip
        self._user_agent = user_agent
        self._enabled = enabled
        self._logger = structlog.get_logger("botsy.audit")
        self._redact_fields = set(redact_fields)

    def log(self, event: AuditEvent) -> AuditLog | None:
        metadata = self._sanitize(event.metadata)
        ip = event.ip or self._ip
        self._logger.info(
            "audit_event",
            timestamp=utcnow().isoformat(),
            action=event.action,
            actor=event.actor,
            company_id=event.company_id,
            resource_type=event.resource_type,
            resource_id=event.resource_id,
            metadata=metadata,
            ip=ip,
        )
        if not self._enabled:
            return None
        row = AuditLog(
            actor_user_id=event.actor,
            company_id=event.company_id,
            action=event.action,
            resource_type=event.resource_type,
            resource_id=event.resource_id,
            ip=ip,
            user_agent=event.user_agent or self._user_agent,
            meta=metadata or None,
        )
        self._session.add(row)
        return row

    def _sanitize(self, metadata: Mapping[str, Any]) -> Dict[str, Any]:
        sanitized: Dict[str, Any] = {}
        for key, value in metadata.items():
            if key in self._redact_fields:
                sanitized[key] = REDACTED
            elif isinstance(value, Mapping):
                sanitized[key] = self._sanitize(value)
            else:
                sanitized[key] = value
        return sanitized


__all__ = ["AuditEvent", "AuditLogger", "DEFAULT_REDACT_FIELDS", "REDACTED"]
