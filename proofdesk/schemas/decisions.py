"""Pydantic schemas for customer decision submission."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class DecisionRequest(BaseModel):
    token: str = Field(min_length=64, max_length=64, pattern=r"^[0-9a-f]{64}$")
    decision: Literal["approved", "approved_with_notes", "changes_requested"]
    note: Optional[str] = Field(default=None, max_length=5000)


class DecisionResponse(BaseModel):
    success: bool = True
