"""Pydantic schemas for admin authentication."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    password: str = Field(min_length=1, max_length=255)


class LoginResponse(BaseModel):
    success: bool = True
