"""Owner instructions the bot follows, optionally limited to a time window."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import and_, desc, or_, select
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from ..audit import AuditEvent, AuditLogger
from ..models import (
    Company,
    Instruction,
    InstructionCategory,
    InstructionPriority,
    utcnow,
)

__all__ = ["InstructionService", "UPDATABLE_FIELDS"]

UPDATABLE_FIELDS = frozenset(
    {"content", "category", "priority", "is_active", "starts_at", "expires_at"}
)
NULLABLE_FIELDS = frozenset({"starts_at", "expires_at"})

logger = structlog.get_logger(__name__)


def _check_window(starts_at: Optional[dt.datetime], expires_at: Optional[dt.datetime]) -> None:
    if starts_at and expires_at and expires_at <= starts_at:
        raise ValueError("expiresAt must be after startsAt")


class InstructionService:
    def __init__(self, session: Session, audit: AuditLogger | None = None):
        self.session = session
        self.audit = audit

    def list_instructions(
        self,
        company_id: str,
        *,
        active_only: bool = False,
        now: dt.datetime | None = None,
    ) -> List[Instruction]:
        """Return the company's instructions, newest first.

        With ``active_only`` only enabled instructions whose window contains
        ``now`` are returned.
        """

        stmt = select(Instruction).where(Instruction.company_id == company_id)
        if active_only:
            now = now or utcnow()
            stmt = stmt.where(
                and_(
                    Instruction.is_active.is_(True),
                    or_(Instruction.starts_at.is_(None), Instruction.starts_at <= now),
                    or_(Instruction.expires_at.is_(None), Instruction.expires_at >= now),
                )
            )
        stmt = stmt.order_by(desc(Instruction.created_at))
        return list(self.session.execute(stmt).scalars())

    def get_instruction(self, company_id: str, instruction_id: str) -> Instruction:
        instruction = self.session.get(Instruction, instruction_id)
        if instruction is None or instruction.company_id != company_id:
            raise NoResultFound("Instruction not found")
        return instruction

    def create_instruction(
        self,
        company_id: str,
        *,
        content: str,
        created_by: str,
        category: InstructionCategory = InstructionCategory.GENERAL,
        priority: InstructionPriority = InstructionPriority.MEDIUM,
        is_active: bool = True,
        starts_at: dt.datetime | None = None,
        expires_at: dt.datetime | None = None,
    ) -> Instruction:
        content = (content or "").strip()
        if not content:
            raise ValueError("Instruction content is required")
        _check_window(starts_at, expires_at)
        if self.session.get(Company, company_id) is None:
            raise LookupError("Company not found")

        instruction = Instruction(
            company_id=company_id,
            content=content,
            category=category,
            priority=priority,
            is_active=is_active,
            starts_at=starts_at,
            expires_at=expires_at,
            created_by=created_by,
        )
        self.session.add(instruction)
        self.session.flush()
        if self.audit is not None:
            self.audit.log(
                AuditEvent(
                    action="instruction.created",
                    actor=created_by,
                    company_id=company_id,
                    resource_type="instruction",
                    resource_id=instruction.id,
                    metadata={"category": category.value, "priority": priority.value},
                )
            )
        self.session.commit()
        logger.info("instruction_created", company_id=company_id, instruction_id=instruction.id)
        return instruction

    def update_instruction(
        self,
        company_id: str,
        instruction_id: str,
        updates: Dict[str, Any],
        *,
        actor_id: str,
    ) -> Instruction:
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown instruction fields: {', '.join(sorted(unknown))}")
        for key, value in updates.items():
            if value is None and key not in NULLABLE_FIELDS:
                raise ValueError(f"{key} cannot be null")
            if key == "content" and not value.strip():
                raise ValueError("Instruction content is required")
        instruction = self.get_instruction(company_id, instruction_id)
        for key, value in updates.items():
            setattr(instruction, key, value)
        _check_window(instruction.starts_at, instruction.expires_at)
        if self.audit is not None:
            self.audit.log(
                AuditEvent(
                    action="instruction.updated",
                    actor=actor_id,
                    company_id=company_id,
                    resource_type="instruction",
                    resource_id=instruction_id,
                    metadata={"fields": sorted(updates)},
                )
            )
        self.session.commit()
        return instruction

    def deactivate_instruction(
        self, company_id: str, instruction_id: str, *, actor_id: str
    ) -> Instruction:
        """Soft delete: the row stays but is no longer active."""

        return self.update_instruction(
            company_id, instruction_id, {"is_active": False}, actor_id=actor_id
        )
