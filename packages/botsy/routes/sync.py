"""Website sync: run a sync, read/update its configuration, inspect jobs."""

from __future__ import annotations

import dataclasses
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import AuthResult
from ..dependencies import get_current_user, get_session, get_sync_service, require_access
from ..knowledge_sync import KnowledgeSyncService
from ..knowledge_sync.service import CONFIG_DEFAULTS

router = APIRouter(prefix="/api/sync", tags=["sync"])

logger = structlog.get_logger(__name__)


def _config_response(config, company_id: str) -> schemas.SyncConfigResponse:
    if config is None:
        return schemas.SyncConfigResponse(company_id=company_id, **CONFIG_DEFAULTS)
    return schemas.SyncConfigResponse.model_validate(config)


@router.post("/website", response_model=schemas.SyncResultResponse)
def run_sync(
    request: schemas.SyncRunRequest,
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: KnowledgeSyncService = Depends(get_sync_service),
) -> schemas.SyncResultResponse:
    require_access(session, auth, request.company_id)
    logger.info("manual_sync_requested", company_id=request.company_id, user_id=auth.uid)
    result = service.run_website_sync(request.company_id)
    return schemas.SyncResultResponse.model_validate(dataclasses.asdict(result))


@router.put("/website", response_model=schemas.SyncConfigEnvelope)
def update_sync_config(
    request: schemas.SyncConfigUpdateRequest,
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: KnowledgeSyncService = Depends(get_sync_service),
) -> schemas.SyncConfigEnvelope:
    require_access(session, auth, request.company_id)
    try:
        config = service.update_config(request.company_id, request.changes(), actor_id=auth.uid)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except LookupError:
        raise HTTPException(status_code=404, detail="Company not found") from None
    return schemas.SyncConfigEnvelope(config=_config_response(config, request.company_id))


@router.get("/website", response_model=schemas.SyncConfigEnvelope)
def get_sync_config(
    company_id: Optional[str] = Query(None, alias="companyId"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: KnowledgeSyncService = Depends(get_sync_service),
) -> schemas.SyncConfigEnvelope:
    require_access(session, auth, company_id)
    return schemas.SyncConfigEnvelope(
        config=_config_response(service.get_config(company_id), company_id)
    )


@router.get("/status", response_model=schemas.SyncStatusResponse, response_model_exclude_none=True)
def sync_status(
    company_id: Optional[str] = Query(None, alias="companyId"),
    job_id: Optional[str] = Query(None, alias="jobId"),
    auth: AuthResult = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: KnowledgeSyncService = Depends(get_sync_service),
) -> schemas.SyncStatusResponse:
    require_access(session, auth, company_id)
    if job_id:
        try:
            job = service.get_job(company_id, job_id)
        except NoResultFound:
            raise HTTPException(status_code=404, detail="Sync job not found") from None
        return schemas.SyncStatusResponse(job=schemas.SyncJobResponse.model_validate(job))

    config = service.get_config(company_id)
    return schemas.SyncStatusResponse(
        config=_config_response(config, company_id),
        recent_jobs=[
            schemas.SyncJobResponse.model_validate(job) for job in service.recent_jobs(company_id)
        ],
        pending_conflicts=service.pending_conflicts_count(company_id),
        last_sync=config.last_sync_at if config else None,
    )
