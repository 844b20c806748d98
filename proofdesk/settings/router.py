"""Admin settings routes."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from proofdesk.auth.dependencies import require_admin
from proofdesk.core.rate_limit import rate_limit
from proofdesk.schemas.settings import ReminderConfigPayload, SettingsResponse, SettingsUpdateRequest
from proofdesk.settings.service import (
    UPDATABLE_FIELDS,
    ReminderConfig,
    get_app_settings,
    load_reminder_config,
    load_templates,
    update_app_settings,
)
from proofdesk.storage.db import get_session
from proofdesk.storage.models import AppSettings


router = APIRouter(
    prefix="/admin/settings",
    tags=["settings"],
    dependencies=[Depends(require_admin), Depends(rate_limit("admin_settings", "admin_api"))],
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else None


def _to_response(row: AppSettings) -> SettingsResponse:
    config = load_reminder_config(row)
    return SettingsResponse(
        company_name=row.company_name,
        accent_color=row.accent_color,
        logo_data_url=row.logo_data_url,
        email_from_name=row.email_from_name,
        email_from_email=row.email_from_email,
        staff_notify_email=row.staff_notify_email,
        reminder_config=ReminderConfigPayload(
            enabled=config.enabled,
            first_reminder_days=config.first_reminder_days,
            second_reminder_days=config.second_reminder_days,
            max_reminders=config.max_reminders,
        ),
        templates=load_templates(row),
        last_shipstation_sync=_iso(row.last_shipstation_sync),
        last_shipstation_sync_attempt=_iso(row.last_shipstation_sync_attempt),
        last_shipstation_sync_error=row.last_shipstation_sync_error,
    )


@router.get("", response_model=SettingsResponse)
def read_settings(session: Session = Depends(get_session)) -> SettingsResponse:
    row = get_app_settings(session)
    session.commit()
    return _to_response(row)


@router.put("", response_model=SettingsResponse)
def write_settings(payload: SettingsUpdateRequest, session: Session = Depends(get_session)) -> SettingsResponse:
    provided = payload.model_fields_set
    changes = {
        name: (str(getattr(payload, name)) if getattr(payload, name) is not None else None)
        for name in UPDATABLE_FIELDS
        if name in provided
    }
    reminder_config = None
    if payload.reminder_config is not None:
        reminder_config = ReminderConfig(
            enabled=payload.reminder_config.enabled,
            first_reminder_days=payload.reminder_config.first_reminder_days,
            second_reminder_days=payload.reminder_config.second_reminder_days,
            max_reminders=payload.reminder_config.max_reminders,
        )
    row = update_app_settings(
        session,
        changes=changes,
        reminder_config=reminder_config,
        templates=payload.templates,
    )
    return _to_response(row)
