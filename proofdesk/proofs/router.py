"""Staff proof upload/send routes and stored file delivery."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from sqlalchemy.orm import Session

from proofdesk.auth.dependencies import require_admin
from proofdesk.core.config import get_settings
from proofdesk.core.rate_limit import rate_limit
from proofdesk.notifications.notifier import Notifier, get_notifier
from proofdesk.orders.service import OrderNotFoundError
from proofdesk.proofs.service import (
    ProofSendError,
    ProofUploadError,
    ProofValidationError,
    UploadedProofFile,
    send_proof,
    upload_proof,
)
from proofdesk.proofs.storage import ProofStorage, get_proof_storage
from proofdesk.schemas.proofs import ProofUploadResponse, SendProofRequest, SendProofResponse
from proofdesk.storage.db import get_session
from proofdesk.storage.models import ProofFile


router = APIRouter(prefix="/proofs", tags=["proofs"])


def _read_upload(upload: UploadFile, limit: int) -> UploadedProofFile:
    # One byte past the limit is enough to reject oversized files.
    data = upload.file.read(limit + 1)
    return UploadedProofFile(
        filename=upload.filename or "file",
        content_type=(upload.content_type or "").lower(),
        data=data,
    )


@router.post(
    "/upload",
    response_model=ProofUploadResponse,
    dependencies=[Depends(require_admin), Depends(rate_limit("proofs_upload", "upload"))],
)
def upload(
    order_id: str = Form(alias="orderId", min_length=1, max_length=36),
    staff_note: Optional[str] = Form(default=None, alias="staffNote"),
    files: List[UploadFile] = File(...),
    session: Session = Depends(get_session),
    storage: ProofStorage = Depends(get_proof_storage),
) -> ProofUploadResponse:
    settings = get_settings()
    if len(files) > settings.proof_max_files_per_upload:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.proof_max_files_per_upload} files per upload",
        )
    uploaded = [_read_upload(item, settings.proof_max_file_size_bytes) for item in files]

    try:
        result = upload_proof(
            session,
            order_id=order_id,
            files=uploaded,
            storage=storage,
            staff_note=staff_note,
            settings=settings,
        )
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
    except ProofValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ProofUploadError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload proof",
        ) from exc

    return ProofUploadResponse(
        order_id=result.order_id,
        version_id=result.version_id,
        version_number=result.version_number,
        file_ids=result.file_ids,
    )


@router.post(
    "/send",
    response_model=SendProofResponse,
    dependencies=[Depends(require_admin), Depends(rate_limit("proofs_send", "admin_api"))],
)
def send(
    payload: SendProofRequest,
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
) -> SendProofResponse:
    try:
        result = send_proof(session, order_id=payload.order_id, notifier=notifier)
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
    except ProofSendError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return SendProofResponse(
        proof_link=result.proof_link,
        expires_at=result.expires_at.isoformat(),
        email_sent=result.email_sent,
    )


@router.get("/files/{file_id}")
def get_file(
    file_id: str,
    session: Session = Depends(get_session),
    storage: ProofStorage = Depends(get_proof_storage),
) -> Response:
    proof_file = session.get(ProofFile, file_id)
    if proof_file is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    try:
        content = storage.open(proof_file.storage_key)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found") from exc
    return Response(
        content=content,
        media_type=proof_file.mime_type,
        headers={"Cache-Control": "private, max-age=3600"},
    )
