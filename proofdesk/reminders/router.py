"""Cron-triggered reminder route."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from proofdesk.auth.dependencies import require_cron
from proofdesk.notifications.notifier import Notifier, get_notifier
from proofdesk.reminders.service import send_reminders
from proofdesk.schemas.reminders import ReminderRunResponse
from proofdesk.storage.db import get_session


router = APIRouter(prefix="/cron", tags=["cron"])


@router.get("/reminders", response_model=ReminderRunResponse, dependencies=[Depends(require_cron)])
def run_reminders(
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
) -> ReminderRunResponse:
    result = send_reminders(session, notifier=notifier)
    return ReminderRunResponse(
        message=result.message,
        sent=result.sent,
        total=result.total,
        skipped=result.skipped,
        errors=result.errors,
    )
