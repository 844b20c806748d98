"""Versioned proof uploads and customer proof links."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import re
import time
from typing import List, Optional, Sequence
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from proofdesk.core.config import Settings, get_settings
from proofdesk.core.logger import get_logger
from proofdesk.notifications.notifier import Notifier, deliver, proof_ready_email, sender_for
from proofdesk.orders.service import get_order, record_audit_event
from proofdesk.orders.status import OrderStatus
from proofdesk.proofs.links import issue_magic_link
from proofdesk.proofs.storage import ProofStorage
from proofdesk.settings.service import get_app_settings, load_templates
from proofdesk.storage.models import ProofFile, ProofVersion


STAFF_NOTE_MAX_LENGTH = 2000
_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")

logger = get_logger("proofdesk.proofs")


class ProofUploadError(RuntimeError):
    pass


class ProofValidationError(ProofUploadError):
    pass


class ProofSendError(RuntimeError):
    pass


@dataclass(frozen=True)
class UploadedProofFile:
    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class ProofUploadResult:
    order_id: str
    version_id: str
    version_number: int
    file_ids: List[str]


@dataclass(frozen=True)
class ProofSendResult:
    order_id: str
    proof_link: str
    expires_at: datetime
    email_sent: bool


def sanitize_filename(filename: str) -> str:
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = _UNSAFE_FILENAME_RE.sub("_", base).strip("._")
    return cleaned[:120] or "file"


def validate_upload(
    files: Sequence[UploadedProofFile],
    *,
    staff_note: Optional[str],
    settings: Settings,
) -> None:
    """Reject the whole batch before anything is stored."""

    if not files:
        raise ProofValidationError("At least one file is required")
    if len(files) > settings.proof_max_files_per_upload:
        raise ProofValidationError(f"At most {settings.proof_max_files_per_upload} files per upload")
    if staff_note and len(staff_note) > STAFF_NOTE_MAX_LENGTH:
        raise ProofValidationError(f"Staff note must be at most {STAFF_NOTE_MAX_LENGTH} characters")

    allowed = settings.allowed_proof_mime_types
    for item in files:
        if (item.content_type or "").lower() not in allowed:
            raise ProofValidationError(f"Unsupported file type for {item.filename}")
        if len(item.data) > settings.proof_max_file_size_bytes:
            raise ProofValidationError(f"File too large: {item.filename}")
        if not item.data:
            raise ProofValidationError(f"File is empty: {item.filename}")


def next_version_number(session: Session, *, order_id: str) -> int:
    current = session.scalar(
        select(func.max(ProofVersion.version_number)).where(ProofVersion.order_id == order_id)
    )
    return int(current or 0) + 1


def upload_proof(
    session: Session,
    *,
    order_id: str,
    files: Sequence[UploadedProofFile],
    storage: ProofStorage,
    staff_note: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> ProofUploadResult:
    """Create a new proof version with its files, all or nothing.

    A failure while storing any file or inserting any file row removes every
    object already stored for the version and discards the version row.
    """

    settings = settings or get_settings()
    order = get_order(session, order_id)
    note = staff_note.strip() if staff_note and staff_note.strip() else None
    validate_upload(files, staff_note=note, settings=settings)

    version = ProofVersion(
        id=str(uuid.uuid4()),
        order_id=order.id,
        version_number=next_version_number(session, order_id=order.id),
        staff_note=note,
    )
    stored_keys: List[str] = []
    file_ids: List[str] = []

    try:
        session.add(version)
        session.flush()
        stamp = int(time.time() * 1000)
        for index, item in enumerate(files):
            key = f"{order.id}/{version.id}/{stamp}-{index}-{sanitize_filename(item.filename)}"
            location = storage.put(key, item.data, content_type=item.content_type)
            stored_keys.append(key)

            proof_file = ProofFile(
                id=str(uuid.uuid4()),
                version_id=version.id,
                filename=item.filename,
                mime_type=item.content_type.lower(),
                size_bytes=len(item.data),
                storage_key=key,
                original_path=location,
                preview_path=location,
                sort_order=index,
            )
            session.add(proof_file)
            session.flush()
            file_ids.append(proof_file.id)

        if order.status == OrderStatus.DRAFT.value:
            order.status = OrderStatus.OPEN.value
        order.updated_at = datetime.now(timezone.utc)
        record_audit_event(
            session,
            order_id=order.id,
            actor_type="staff",
            event_type="proof_uploaded",
            metadata={"version_number": version.version_number, "file_count": len(files)},
        )
        session.commit()
    except Exception as exc:
        session.rollback()
        storage.delete_many(stored_keys)
        logger.error(
            "proof_upload_rolled_back",
            order_id=order_id,
            stored_files=len(stored_keys),
            error_type=exc.__class__.__name__,
        )
        raise ProofUploadError("Failed to upload proof") from exc

    logger.info(
        "proof_uploaded",
        order_id=order_id,
        version_number=version.version_number,
        file_count=len(file_ids),
    )
    return ProofUploadResult(
        order_id=order_id,
        version_id=version.id,
        version_number=version.version_number,
        file_ids=file_ids,
    )


def send_proof(
    session: Session,
    *,
    order_id: str,
    notifier: Notifier,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> ProofSendResult:
    settings = settings or get_settings()
    order = get_order(session, order_id)
    has_version = session.scalar(select(ProofVersion.id).where(ProofVersion.order_id == order.id).limit(1))
    if has_version is None:
        raise ProofSendError("No proof uploaded yet")

    current = now or datetime.now(timezone.utc)
    link = issue_magic_link(
        session,
        order_id=order.id,
        now=current,
        expiration_days=settings.magic_link_expiration_days,
    )
    order.status = OrderStatus.PROOF_SENT.value
    order.updated_at = current
    record_audit_event(
        session,
        order_id=order.id,
        actor_type="staff",
        event_type="proof_sent",
        metadata={"expires_at": link.expires_at.isoformat()},
    )
    app_settings = get_app_settings(session)
    session.commit()

    message = proof_ready_email(
        order,
        link=link.url,
        expiration_days=settings.magic_link_expiration_days,
        app_settings=app_settings,
        templates=load_templates(app_settings),
    )
    email_sent = deliver(
        notifier,
        kind="proof_ready",
        to=order.customer_email,
        message=message,
        sender=sender_for(app_settings, settings),
        order_id=order.id,
    )
    logger.info("proof_sent", order_id=order.id, email_sent=email_sent)
    return ProofSendResult(
        order_id=order.id,
        proof_link=link.url,
        expires_at=link.expires_at,
        email_sent=email_sent,
    )
