"""Pydantic schemas for the ShipStation sync API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SyncRequest(_CamelModel):
    # Unknown values fall back to an incremental sync.
    sync_type: Optional[str] = Field(default=None, alias="syncType", max_length=32)


class SyncStats(BaseModel):
    fetched: int
    inserted: int
    updated: int
    skipped: int
    errors: int


class SyncResponse(_CamelModel):
    success: bool
    configured: bool
    request_id: str = Field(alias="requestId")
    run_id: str = Field(alias="runId")
    sync_type: str = Field(alias="syncType")
    stats: SyncStats
    message: str
    error_samples: List[str] = Field(default_factory=list, alias="errorSamples")


class SyncRunSummary(_CamelModel):
    id: str
    status: str
    sync_type: str = Field(alias="syncType")
    triggered_by: str = Field(alias="triggeredBy")
    started_at: Optional[str] = Field(default=None, alias="startedAt")
    finished_at: Optional[str] = Field(default=None, alias="finishedAt")
    modified_after: Optional[str] = Field(default=None, alias="modifiedAfter")
    fetched: int
    inserted: int
    updated: int
    skipped: int
    errors: int
    error_summary: Optional[str] = Field(default=None, alias="errorSummary")


class SyncStatusResponse(_CamelModel):
    configured: bool
    missing_env_vars: List[str] = Field(alias="missingEnvVars")
    last_sync: Optional[str] = Field(default=None, alias="lastSync")
    last_attempt: Optional[str] = Field(default=None, alias="lastAttempt")
    last_error: Optional[str] = Field(default=None, alias="lastError")
    synced_order_count: int = Field(alias="syncedOrderCount")
    recent_runs: List[SyncRunSummary] = Field(alias="recentRuns")


class StoreResponse(BaseModel):
    id: int
    name: str
    marketplace: str


class CredentialTestResponse(_CamelModel):
    valid: bool
    configured: bool
    missing_env_vars: List[str] = Field(default_factory=list, alias="missingEnvVars")
    error: Optional[str] = None
    error_code: Optional[str] = Field(default=None, alias="errorCode")
    rate_limit_remaining: Optional[int] = Field(default=None, alias="rateLimitRemaining")
    stores: List[StoreResponse] = Field(default_factory=list)
