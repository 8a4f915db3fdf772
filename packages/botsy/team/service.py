"""Team management: memberships, invitations and ownership transfers.

Business rules:
- Only owners and admins may invite.
- Owners cannot leave a company; they must transfer ownership first.
- A transfer completes once both parties confirm with their own token.
"""

from __future__ import annotations

import datetime as dt
import secrets
from dataclasses import dataclass
from typing import List, Optional

import structlog
from sqlalchemy import and_, desc, select
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from ..audit import AuditEvent, AuditLogger
from ..auth import CompanyAccess
from ..errors import GoneError
from ..models import (
    Company,
    Invitation,
    InvitationStatus,
    Membership,
    MembershipRole,
    MembershipStatus,
    OwnershipTransfer,
    TransferStatus,
    User,
    utcnow,
)

__all__ = ["INVITATION_TTL", "TRANSFER_TTL", "TeamService", "TransferLinks", "generate_token"]

INVITATION_TTL = dt.timedelta(days=7)
TRANSFER_TTL = dt.timedelta(hours=24)
TOKEN_BYTES = 32

ROLE_ORDER = {
    MembershipRole.OWNER: 3,
    MembershipRole.ADMIN: 2,
    MembershipRole.EMPLOYEE: 1,
}

logger = structlog.get_logger(__name__)


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


@dataclass
class TransferLinks:
    transfer: OwnershipTransfer
    from_user_url: str
    to_user_url: str


class TeamService:
    def __init__(
        self,
        session: Session,
        *,
        audit: AuditLogger | None = None,
        app_url: str = "https://botsy.no",
    ):
        self.session = session
        self.audit = audit
        self.app_url = app_url.rstrip("/")

    # ========================================================================
    # Permission checks
    # ========================================================================

    @staticmethod
    def _check_role(access: CompanyAccess, required: MembershipRole) -> None:
        if ROLE_ORDER.get(access.role, 0) < ROLE_ORDER[required]:
            raise PermissionError(f"Requires {required.value} role or higher")

    def _log(self, action: str, actor: str, company_id: str, **kwargs) -> None:
        if self.audit is not None:
            self.audit.log(AuditEvent(action=action, actor=actor, company_id=company_id, **kwargs))

    def _membership(self, user_id: str, company_id: str) -> Optional[Membership]:
        return (
            self.session.execute(
                select(Membership).where(
                    and_(Membership.user_id == user_id, Membership.company_id == company_id)
                )
            )
            .scalars()
            .first()
        )

    # ========================================================================
    # Memberships
    # ========================================================================

    def list_members(self, company_id: str) -> List[tuple[Membership, Optional[User]]]:
        rows = self.session.execute(
            select(Membership, User)
            .outerjoin(User, User.id == Membership.user_id)
            .where(Membership.company_id == company_id)
            .order_by(Membership.joined_at)
        ).all()
        return [(membership, user) for membership, user in rows]

    def get_membership(self, user_id: str, company_id: str) -> Optional[Membership]:
        return self._membership(user_id, company_id)

    def leave_company(self, user_id: str, membership_id: str) -> None:
        membership = self.session.get(Membership, membership_id)
        if membership is None:
            raise NoResultFound("Membership not found")
        if membership.user_id != user_id:
            raise PermissionError("You can only leave your own membership")
        if membership.role == MembershipRole.OWNER:
            raise PermissionError(
                "Owners cannot leave the company. Transfer ownership first."
            )

        company_id = membership.company_id
        self.session.delete(membership)
        user = self.session.get(User, user_id)
        if user is not None and user.company_id == company_id:
            user.company_id = None
        self._log(
            "member.left",
            user_id,
            company_id,
            resource_type="membership",
            resource_id=membership_id,
        )
        self.session.commit()
        logger.info("member_left", user_id=user_id, company_id=company_id)

    # ========================================================================
    # Invitations
    # ========================================================================

    def list_pending_invitations(self, company_id: str) -> List[Invitation]:
        return list(
            self.session.execute(
                select(Invitation)
                .where(
                    and_(
                        Invitation.company_id == company_id,
                        Invitation.status == InvitationStatus.PENDING,
                    )
                )
                .order_by(desc(Invitation.created_at))
            ).scalars()
        )

    def create_invitation(
        self,
        access: CompanyAccess,
        *,
        company_id: str,
        email: str,
        role: MembershipRole,
        invited_by: str,
        permissions: dict | None = None,
        inviter_name: str | None = None,
    ) -> Invitation:
        self._check_role(access, MembershipRole.ADMIN)
        if role == MembershipRole.OWNER:
            raise ValueError("Use an ownership transfer to add an owner")
        company = self.session.get(Company, company_id)
        if company is None:
            raise NoResultFound("Company not found")

        email = email.strip().lower()
        existing = (
            self.session.execute(
                select(Invitation.id).where(
                    and_(
                        Invitation.company_id == company_id,
                        Invitation.email == email,
                        Invitation.status == InvitationStatus.PENDING,
                    )
                )
            )
            .scalars()
            .first()
        )
        if existing is not None:
            raise ValueError("An active invitation already exists for this email address")

        now = utcnow()
        invitation = Invitation(
            company_id=company_id,
            email=email,
            role=role,
            permissions=permissions or {},
            invited_by=invited_by,
            inviter_name=inviter_name or "",
            company_name=company.name,
            token=generate_token(),
            status=InvitationStatus.PENDING,
            created_at=now,
            expires_at=now + INVITATION_TTL,
        )
        self.session.add(invitation)
        self.session.flush()
        self._log(
            "member.invited",
            invited_by,
            company_id,
            resource_type="invitation",
            resource_id=invitation.id,
            metadata={"email": email, "role": role.value},
        )
        self.session.commit()
        return invitation

    def invite_url(self, invitation: Invitation) -> str:
        return f"{self.app_url}/invite/{invitation.token}"

    def _invitation_by_token(self, token: str) -> Invitation:
        invitation = (
            self.session.execute(select(Invitation).where(Invitation.token == token))
            .scalars()
            .first()
        )
        if invitation is None:
            raise NoResultFound("Invitation not found")
        return invitation

    def get_invitation(self, token: str) -> Invitation:
        """Return a still-valid invitation.

        Raises ``GoneError`` when the invitation has expired (the status
        is updated) or is no longer pending.
        """

        invitation = self._invitation_by_token(token)
        if utcnow() > invitation.expires_at:
            if invitation.status == InvitationStatus.PENDING:
                invitation.status = InvitationStatus.EXPIRED
                self.session.commit()
            raise GoneError("Invitation has expired")
        if invitation.status != InvitationStatus.PENDING:
            raise GoneError("Invitation is no longer valid")
        return invitation

    def accept_invitation(self, token: str, user_id: str, email: str | None = None) -> Membership:
        invitation = self._invitation_by_token(token)
        if invitation.status != InvitationStatus.PENDING:
            raise GoneError("Invitation is no longer valid")
        if utcnow() > invitation.expires_at:
            raise GoneError("Invitation has expired")
        if self._membership(user_id, invitation.company_id) is not None:
            raise ValueError("You are already a member of this company")

        membership = Membership(
            user_id=user_id,
            company_id=invitation.company_id,
            role=invitation.role,
            permissions=invitation.permissions or {},
            invited_by=invitation.invited_by,
            status=MembershipStatus.ACTIVE,
        )
        self.session.add(membership)

        user = self.session.get(User, user_id)
        if user is None:
            user = User(id=user_id, email=email or invitation.email)
            self.session.add(user)
        user.company_id = invitation.company_id
        user.role = invitation.role.value

        invitation.status = InvitationStatus.ACCEPTED
        self.session.flush()
        self._log(
            "member.joined",
            user_id,
            invitation.company_id,
            resource_type="membership",
            resource_id=membership.id,
            metadata={"role": invitation.role.value},
        )
        self.session.commit()
        return membership

    def cancel_invitation(
        self, access: CompanyAccess, company_id: str, invitation_id: str, *, actor_id: str
    ) -> Invitation:
        self._check_role(access, MembershipRole.ADMIN)
        invitation = self.session.get(Invitation, invitation_id)
        if invitation is None or invitation.company_id != company_id:
            raise NoResultFound("Invitation not found")
        if invitation.status != InvitationStatus.PENDING:
            raise ValueError("Only pending invitations can be cancelled")
        invitation.status = InvitationStatus.CANCELLED
        self._log(
            "invitation.cancelled",
            actor_id,
            company_id,
            resource_type="invitation",
            resource_id=invitation.id,
        )
        self.session.commit()
        return invitation

    # ========================================================================
    # Ownership transfer
    # ========================================================================

    def get_pending_transfer(self, company_id: str) -> Optional[OwnershipTransfer]:
        return (
            self.session.execute(
                select(OwnershipTransfer)
                .where(
                    and_(
                        OwnershipTransfer.company_id == company_id,
                        OwnershipTransfer.status == TransferStatus.PENDING,
                    )
                )
                .order_by(desc(OwnershipTransfer.created_at))
            )
            .scalars()
            .first()
        )

    def create_transfer(
        self, *, company_id: str, from_user_id: str, to_user_id: str, actor_id: str
    ) -> TransferLinks:
        company = self.session.get(Company, company_id)
        if company is None:
            raise NoResultFound("Company not found")
        if company.owner_id != from_user_id or actor_id != from_user_id:
            raise PermissionError("Only the current owner can transfer ownership")
        if from_user_id == to_user_id:
            raise ValueError("Cannot transfer ownership to yourself")
        if self._membership(to_user_id, company_id) is None:
            raise ValueError("The recipient must be a member of the company")

        pending = self.session.execute(
            select(OwnershipTransfer).where(
                and_(
                    OwnershipTransfer.company_id == company_id,
                    OwnershipTransfer.status == TransferStatus.PENDING,
                )
            )
        ).scalars()
        for existing in pending:
            existing.status = TransferStatus.CANCELLED

        now = utcnow()
        transfer = OwnershipTransfer(
            company_id=company_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            from_user_token=generate_token(),
            to_user_token=generate_token(),
            status=TransferStatus.PENDING,
            created_at=now,
            expires_at=now + TRANSFER_TTL,
        )
        self.session.add(transfer)
        self.session.flush()
        self._log(
            "ownership.transfer_initiated",
            actor_id,
            company_id,
            resource_type="ownership_transfer",
            resource_id=transfer.id,
            metadata={"from_user_id": from_user_id, "to_user_id": to_user_id},
        )
        self.session.commit()
        return TransferLinks(
            transfer=transfer,
            from_user_url=f"{self.app_url}/transfer/{transfer.from_user_token}?type=from",
            to_user_url=f"{self.app_url}/transfer/{transfer.to_user_token}?type=to",
        )

    def cancel_transfer(self, transfer_id: str, actor_id: str) -> OwnershipTransfer:
        transfer = self.session.get(OwnershipTransfer, transfer_id)
        if transfer is None:
            raise NoResultFound("Transfer not found")
        if actor_id not in (transfer.from_user_id, transfer.to_user_id):
            raise PermissionError("Not a party to this transfer")
        if transfer.status != TransferStatus.PENDING:
            raise ValueError("Only pending transfers can be cancelled")
        transfer.status = TransferStatus.CANCELLED
        self._log(
            "ownership.transfer_cancelled",
            actor_id,
            transfer.company_id,
            resource_type="ownership_transfer",
            resource_id=transfer.id,
        )
        self.session.commit()
        return transfer

    def confirm_transfer(
        self,
        *,
        token: str,
        user_type: str,
        user_id: str,
        transfer_id: str | None = None,
    ) -> OwnershipTransfer:
        """Record one party's confirmation; completes the transfer on the second."""

        if user_type not in ("from", "to"):
            raise ValueError('type must be "from" or "to"')
        token_column = (
            OwnershipTransfer.from_user_token if user_type == "from" else OwnershipTransfer.to_user_token
        )
        stmt = select(OwnershipTransfer).where(
            and_(token_column == token, OwnershipTransfer.status == TransferStatus.PENDING)
        )
        if transfer_id:
            stmt = stmt.where(OwnershipTransfer.id == transfer_id)
        transfer = self.session.execute(stmt).scalars().first()
        if transfer is None:
            raise NoResultFound("Transfer not found")

        expected = transfer.from_user_id if user_type == "from" else transfer.to_user_id
        if user_id != expected:
            raise PermissionError("You are not allowed to confirm this transfer")
        if utcnow() > transfer.expires_at:
            transfer.status = TransferStatus.EXPIRED
            self.session.commit()
            raise GoneError("Transfer has expired")

        if user_type == "from":
            transfer.from_user_confirmed = True
        else:
            transfer.to_user_confirmed = True
        self._log(
            "ownership.transfer_confirmed",
            user_id,
            transfer.company_id,
            resource_type="ownership_transfer",
            resource_id=transfer.id,
            metadata={"type": user_type},
        )
        if transfer.from_user_confirmed and transfer.to_user_confirmed:
            self._complete_transfer(transfer)
        self.session.commit()
        return transfer

    def _complete_transfer(self, transfer: OwnershipTransfer) -> None:
        transfer.status = TransferStatus.COMPLETED

        old_owner = self._membership(transfer.from_user_id, transfer.company_id)
        if old_owner is not None:
            old_owner.role = MembershipRole.ADMIN
            old_owner.permissions = {"channels": True}
        new_owner = self._membership(transfer.to_user_id, transfer.company_id)
        if new_owner is not None:
            new_owner.role = MembershipRole.OWNER
            new_owner.permissions = {}

        company = self.session.get(Company, transfer.company_id)
        if company is not None:
            company.owner_id = transfer.to_user_id
        for user_id, role in (
            (transfer.from_user_id, MembershipRole.ADMIN),
            (transfer.to_user_id, MembershipRole.OWNER),
        ):
            user = self.session.get(User, user_id)
            if user is not None:
                user.role = role.value

        self._log(
            "ownership.transfer_completed",
            transfer.to_user_id,
            transfer.company_id,
            resource_type="ownership_transfer",
            resource_id=transfer.id,
            metadata={"from_user_id": transfer.from_user_id, "to_user_id": transfer.to_user_id},
        )
