"""Pydantic schemas for proof upload and send."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class ProofUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    order_id: str = Field(alias="orderId")
    version_id: str = Field(alias="versionId")
    version_number: int = Field(alias="versionNumber")
    file_ids: List[str] = Field(alias="fileIds")


class SendProofRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(alias="orderId", min_length=1, max_length=36)


class SendProofResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    proof_link: str = Field(alias="proofLink")
    expires_at: str = Field(alias="expiresAt")
    email_sent: bool = Field(alias="emailSent")
