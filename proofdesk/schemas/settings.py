"""Pydantic schemas for application settings."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ReminderConfigPayload(_CamelModel):
    enabled: bool = True
    first_reminder_days: int = Field(default=3, alias="firstReminderDays", ge=1, le=365)
    second_reminder_days: int = Field(default=7, alias="secondReminderDays", ge=1, le=365)
    max_reminders: int = Field(default=2, alias="maxReminders", ge=0, le=10)

    @model_validator(mode="after")
    def _check_order(self) -> "ReminderConfigPayload":
        if self.second_reminder_days < self.first_reminder_days:
            raise ValueError("secondReminderDays must not be shorter than firstReminderDays")
        return self


class SettingsUpdateRequest(_CamelModel):
    company_name: Optional[str] = Field(default=None, alias="companyName", max_length=200)
    accent_color: Optional[str] = Field(default=None, alias="accentColor", pattern=r"^#[0-9a-fA-F]{6}$")
    logo_data_url: Optional[str] = Field(
        default=None,
        alias="logoDataUrl",
        max_length=500_000,
        pattern=r"^data:image/",
    )
    email_from_name: Optional[str] = Field(default=None, alias="emailFromName", max_length=200)
    email_from_email: Optional[EmailStr] = Field(default=None, alias="emailFromEmail")
    staff_notify_email: Optional[EmailStr] = Field(default=None, alias="staffNotifyEmail")
    reminder_config: Optional[ReminderConfigPayload] = Field(default=None, alias="reminderConfig")
    templates: Optional[Dict[str, str]] = None


class SettingsResponse(_CamelModel):
    company_name: Optional[str] = Field(default=None, alias="companyName")
    accent_color: Optional[str] = Field(default=None, alias="accentColor")
    logo_data_url: Optional[str] = Field(default=None, alias="logoDataUrl")
    email_from_name: Optional[str] = Field(default=None, alias="emailFromName")
    email_from_email: Optional[str] = Field(default=None, alias="emailFromEmail")
    staff_notify_email: Optional[str] = Field(default=None, alias="staffNotifyEmail")
    reminder_config: ReminderConfigPayload = Field(alias="reminderConfig")
    templates: Dict[str, str] = Field(default_factory=dict)
    last_shipstation_sync: Optional[str] = Field(default=None, alias="lastShipstationSync")
    last_shipstation_sync_attempt: Optional[str] = Field(default=None, alias="lastShipstationSyncAttempt")
    last_shipstation_sync_error: Optional[str] = Field(default=None, alias="lastShipstationSyncError")
