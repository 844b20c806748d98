"""Pydantic schemas for the reminder cron endpoint."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class ReminderRunResponse(BaseModel):
    message: str
    sent: int
    total: int
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)
