"""Two-party ownership transfer."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import AuthResult
from ..dependencies import get_current_user, get_session, get_team_service, require_access
from ..models import TransferStatus
from ..team import TeamService

router = APIRouter(prefix="/api/ownership-transfer", tags=["team"])


@router.post("", response_model=schemas.TransferCreateResponse, status_code=201)
def create_transfer(
    request: schemas.TransferCreateRequest,
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: TeamService = Depends(get_team_service),
) -> schemas.TransferCreateResponse:
    require_access(session, auth, request.company_id)
    if not request.to_user_id:
        raise HTTPException(status_code=400, detail="toUserId is required")
    try:
        links = service.create_transfer(
            company_id=request.company_id,
            from_user_id=auth.uid,
            to_user_id=request.to_user_id,
            actor_id=auth.uid,
        )
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Company not found") from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return schemas.TransferCreateResponse(
        transfer_id=links.transfer.id,
        from_user_url=links.from_user_url,
        to_user_url=links.to_user_url,
        expires_at=links.transfer.expires_at,
    )


@router.get("", response_model=schemas.TransferEnvelope)
def pending_transfer(
    company_id: Optional[str] = Query(None, alias="companyId"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: TeamService = Depends(get_team_service),
) -> schemas.TransferEnvelope:
    require_access(session, auth, company_id)
    transfer = service.get_pending_transfer(company_id)
    if transfer is None:
        return schemas.TransferEnvelope(transfer=None)
    return schemas.TransferEnvelope(transfer=schemas.TransferResponse.model_validate(transfer))


@router.delete("", response_model=schemas.SuccessResponse)
def cancel_transfer(
    transfer_id: Optional[str] = Query(None, alias="transferId"),
    auth: AuthResult = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
) -> schemas.SuccessResponse:
    if not transfer_id:
        raise HTTPException(status_code=400, detail="transferId is required")
    try:
        service.cancel_transfer(transfer_id, auth.uid)
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Transfer not found") from None
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return schemas.SuccessResponse()


@router.post("/confirm", response_model=schemas.TransferConfirmResponse)
def confirm_transfer(
    request: schemas.TransferConfirmRequest,
    auth: AuthResult = Depends(get_current_user),
    service: TeamService = Depends(get_team_service),
) -> schemas.TransferConfirmResponse:
    if not request.token or not request.user_type:
        raise HTTPException(status_code=400, detail="token and type are required")
    try:
        transfer = service.confirm_transfer(
            token=request.token,
            user_type=request.user_type,
            user_id=auth.uid,
            transfer_id=request.transfer_id,
        )
    except NoResultFound:
        raise HTTPException(status_code=404, detail="Transfer not found") from None
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return schemas.TransferConfirmResponse(
        completed=transfer.status == TransferStatus.COMPLETED, status=transfer.status
    )
