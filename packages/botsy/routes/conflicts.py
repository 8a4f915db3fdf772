"""Knowledge conflicts between manual FAQs and the company website."""

from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import AuthResult
from ..dependencies import get_current_user, get_session, get_sync_service, require_access
from ..knowledge_sync import KnowledgeSyncService
from ..models import ConflictStatus

router = APIRouter(prefix="/api/conflicts", tags=["conflicts"])


@router.get("", response_model=Union[schemas.ConflictResponse, schemas.ConflictsResponse])
def get_conflicts(
    company_id: Optional[str] = Query(None, alias="companyId"),
    conflict_id: Optional[str] = Query(None, alias="conflictId"),
    status: Optional[ConflictStatus] = Query(None),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: KnowledgeSyncService = Depends(get_sync_service),
):
    require_access(session, auth, company_id)
    if conflict_id:
        try:
            conflict = service.get_conflict(company_id, conflict_id)
        except NoResultFound:
            raise HTTPException(status_code=404, detail="Conflict not found") from None
        return schemas.ConflictResponse(
            conflict=schemas.KnowledgeConflictResponse.model_validate(conflict)
        )

    conflicts = service.list_conflicts(company_id, status)
    return schemas.ConflictsResponse(
        conflicts=[schemas.KnowledgeConflictResponse.model_validate(c) for c in conflicts],
        pending_count=service.pending_conflicts_count(company_id),
    )


@router.post("", response_model=schemas.ConflictResolveResponse)
def resolve_conflict(
    request: schemas.ConflictResolveRequest,
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: KnowledgeSyncService = Depends(get_sync_service),
) -> schemas.ConflictResolveResponse:
    if not request.company_id or not request.conflict_id or not request.resolution:
        raise HTTPException(
            status_code=400, detail="companyId, conflictId, and resolution are required"
        )
    require_access(session, auth, request.company_id)
    try:
        status = service.resolve_conflict(
            request.company_id,
            request.conflict_id,
            request.resolution,
            resolved_by=auth.uid,
            note=request.note,
        )
    except NoResultFound as e:
        raise HTTPException(status_code=404, detail=str(e) or "Conflict not found") from None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    return schemas.ConflictResolveResponse(resolution=status)
