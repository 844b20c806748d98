"""ShipStation sync trigger, status and credential check routes."""

from __future__ import annotations

from datetime import datetime
import json
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from proofdesk.auth.dependencies import require_admin, require_admin_or_cron, require_cron
from proofdesk.core.logger import get_logger
from proofdesk.core.rate_limit import rate_limit
from proofdesk.integrations.shipstation.client import (
    ShipStationClient,
    ShipStationNotConfiguredError,
    get_shipstation_client,
)
from proofdesk.schemas.sync import (
    CredentialTestResponse,
    StoreResponse,
    SyncRequest,
    SyncResponse,
    SyncRunSummary,
    SyncStats,
    SyncStatusResponse,
)
from proofdesk.storage.db import get_session
from proofdesk.sync.service import get_sync_status, run_sync


router = APIRouter(prefix="/shipstation", tags=["shipstation"])
logger = get_logger("proofdesk.sync")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else None


async def requested_sync_type(request: Request) -> Optional[str]:
    """Read `syncType` leniently; anything unusable means an incremental run."""

    body = await request.body()
    if not body.strip():
        return None
    try:
        payload = SyncRequest.model_validate(json.loads(body))
    except (ValueError, ValidationError):
        return None
    return payload.sync_type


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid4())


def _perform_sync(
    *,
    request: Request,
    session: Session,
    client: ShipStationClient,
    sync_type: Optional[str],
    triggered_by: str,
):
    request_id = _request_id(request)
    try:
        result = run_sync(session, client=client, sync_type=sync_type or "incremental", triggered_by=triggered_by)
    except ShipStationNotConfiguredError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "configured": False,
                "requestId": request_id,
                "error": "ShipStation not configured",
                "missingEnvVars": exc.missing,
            },
        )
    except Exception:
        session.rollback()
        logger.exception("sync_request_failed", request_id=request_id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "configured": True,
                "requestId": request_id,
                "error": "Failed to start sync",
            },
        )

    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "configured": True,
                "requestId": request_id,
                "runId": result.run_id,
                "error": result.error,
            },
        )

    return SyncResponse(
        success=True,
        configured=True,
        request_id=request_id,
        run_id=result.run_id,
        sync_type=result.sync_type,
        stats=SyncStats(**result.stats()),
        message=result.message,
        error_samples=list(result.error_samples),
    )


@router.post("/sync", response_model=SyncResponse)
def trigger_sync(
    request: Request,
    requested_type: Optional[str] = Depends(requested_sync_type),
    triggered_by: str = Depends(require_admin_or_cron),
    session: Session = Depends(get_session),
    client: ShipStationClient = Depends(get_shipstation_client),
):
    return _perform_sync(
        request=request,
        session=session,
        client=client,
        sync_type=requested_type,
        triggered_by=triggered_by,
    )


@router.get("/sync", response_model=SyncResponse, dependencies=[Depends(require_cron)])
def cron_sync(
    request: Request,
    session: Session = Depends(get_session),
    client: ShipStationClient = Depends(get_shipstation_client),
):
    return _perform_sync(
        request=request,
        session=session,
        client=client,
        sync_type="incremental",
        triggered_by="cron",
    )


@router.get(
    "/status",
    response_model=SyncStatusResponse,
    dependencies=[Depends(require_admin), Depends(rate_limit("shipstation_status", "admin_api"))],
)
def sync_status(session: Session = Depends(get_session)) -> SyncStatusResponse:
    snapshot = get_sync_status(session)
    return SyncStatusResponse(
        configured=snapshot.configured,
        missing_env_vars=snapshot.missing_env_vars,
        last_sync=_iso(snapshot.last_sync),
        last_attempt=_iso(snapshot.last_attempt),
        last_error=snapshot.last_error,
        synced_order_count=snapshot.synced_order_count,
        recent_runs=[
            SyncRunSummary(
                id=run.id,
                status=run.status,
                sync_type=run.sync_type,
                triggered_by=run.triggered_by,
                started_at=_iso(run.started_at),
                finished_at=_iso(run.finished_at),
                modified_after=_iso(run.modified_after),
                fetched=run.fetched_count,
                inserted=run.inserted_count,
                updated=run.updated_count,
                skipped=run.skipped_count,
                errors=run.error_count,
                error_summary=run.error_summary,
            )
            for run in snapshot.recent_runs
        ],
    )


@router.post(
    "/test",
    response_model=CredentialTestResponse,
    dependencies=[Depends(require_admin), Depends(rate_limit("shipstation_test", "admin_api"))],
)
def test_credentials(client: ShipStationClient = Depends(get_shipstation_client)) -> CredentialTestResponse:
    result = client.verify_credentials()
    logger.info("shipstation_credentials_checked", valid=result.valid, error_code=result.error_code)
    return CredentialTestResponse(
        valid=result.valid,
        configured=client.configured,
        missing_env_vars=client.missing_env_vars(),
        error=result.error,
        error_code=result.error_code,
        rate_limit_remaining=result.rate_limit_remaining,
        stores=[StoreResponse(id=store.id, name=store.name, marketplace=store.marketplace) for store in result.stores],
    )
