"""Access to the single application settings row."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
import json
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from proofdesk.storage.models import DEFAULT_SETTINGS_ID, AppSettings


SYNC_ERROR_MAX_LENGTH = 500

UPDATABLE_FIELDS = (
    "company_name",
    "accent_color",
    "logo_data_url",
    "email_from_name",
    "email_from_email",
    "staff_notify_email",
)


@dataclass(frozen=True)
class ReminderConfig:
    enabled: bool = True
    first_reminder_days: int = 3
    second_reminder_days: int = 7
    max_reminders: int = 2


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=True, sort_keys=True)


def _loads_dict(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


def get_app_settings(session: Session) -> AppSettings:
    """Return the settings row, creating the default one on first use."""

    row = session.get(AppSettings, DEFAULT_SETTINGS_ID)
    if row is None:
        row = AppSettings(id=DEFAULT_SETTINGS_ID)
        session.add(row)
        session.flush()
    return row


def load_reminder_config(row: AppSettings) -> ReminderConfig:
    raw = _loads_dict(row.reminder_config_json)
    defaults = ReminderConfig()
    return ReminderConfig(
        enabled=bool(raw.get("enabled", defaults.enabled)),
        first_reminder_days=int(raw.get("first_reminder_days", defaults.first_reminder_days)),
        second_reminder_days=int(raw.get("second_reminder_days", defaults.second_reminder_days)),
        max_reminders=int(raw.get("max_reminders", defaults.max_reminders)),
    )


def load_templates(row: AppSettings) -> Dict[str, str]:
    return {str(key): str(value) for key, value in _loads_dict(row.templates_json).items()}


def update_app_settings(
    session: Session,
    *,
    changes: Dict[str, Any],
    reminder_config: Optional[ReminderConfig] = None,
    templates: Optional[Dict[str, str]] = None,
) -> AppSettings:
    row = get_app_settings(session)
    for field_name in UPDATABLE_FIELDS:
        if field_name in changes:
            value = changes[field_name]
            setattr(row, field_name, value.strip() if isinstance(value, str) and value.strip() else None)
    if reminder_config is not None:
        row.reminder_config_json = _dumps(asdict(reminder_config))
    if templates is not None:
        row.templates_json = _dumps(templates)
    row.updated_at = datetime.now(timezone.utc)
    session.commit()
    session.refresh(row)
    return row


def record_sync_success(session: Session, *, now: datetime, started_at: datetime) -> AppSettings:
    # The next incremental cutoff is the run start, so edits made mid-run are fetched again.
    row = get_app_settings(session)
    row.last_shipstation_sync = started_at
    row.last_shipstation_sync_attempt = now
    row.last_shipstation_sync_error = None
    row.updated_at = now
    return row


def record_sync_failure(session: Session, *, now: datetime, error: str) -> AppSettings:
    row = get_app_settings(session)
    row.last_shipstation_sync_attempt = now
    row.last_shipstation_sync_error = error[:SYNC_ERROR_MAX_LENGTH]
    row.updated_at = now
    return row
