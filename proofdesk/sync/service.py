"""ShipStation order sync: reconcile fetched orders and record each run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from proofdesk.core.config import Settings, get_settings
from proofdesk.core.logger import get_logger
from proofdesk.core.metrics import record_sync_orders, record_sync_run
from proofdesk.core.observability import capture_exception
from proofdesk.integrations.shipstation.client import (
    ShipStationClient,
    ShipStationError,
    ShipStationNotConfiguredError,
    normalize_sync_type,
    resolve_modified_after,
)
from proofdesk.integrations.shipstation.mapper import PLATFORM, build_order_fields, parse_created_at
from proofdesk.orders.status import is_terminal
from proofdesk.settings.service import get_app_settings, record_sync_failure, record_sync_success
from proofdesk.storage.models import DEFAULT_SETTINGS_ID, AppSettings, Order, SyncRun


MAX_ERROR_SAMPLES = 10
ERROR_SUMMARY_MAX_LENGTH = 500
RECENT_RUNS_LIMIT = 10

logger = get_logger("proofdesk.sync")


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=True, sort_keys=True)


@dataclass
class SyncAccumulator:
    """Per-run tallies. ``fetched`` always equals the sum of the outcomes."""

    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    unchanged: int = 0
    errors: int = 0
    error_samples: List[str] = field(default_factory=list)

    def record(self, outcome: str) -> None:
        self.fetched += 1
        if outcome == "inserted":
            self.inserted += 1
        elif outcome == "updated":
            self.updated += 1
        elif outcome == "unchanged":
            self.unchanged += 1
            self.skipped += 1
        else:
            self.skipped += 1

    def record_error(self, order_number: str, exc: BaseException) -> str:
        self.fetched += 1
        self.errors += 1
        message = f"Order {order_number}: {str(exc) or exc.__class__.__name__}"
        if len(self.error_samples) < MAX_ERROR_SAMPLES:
            self.error_samples.append(message)
        return message

    def stats(self) -> Dict[str, int]:
        return {
            "fetched": self.fetched,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class SyncRunResult:
    run_id: str
    status: str
    sync_type: str
    modified_after: Optional[datetime]
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    error_samples: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "success"

    @property
    def message(self) -> str:
        if not self.success:
            return f"Sync failed: {self.error}"
        return (
            f"Synced {self.fetched} orders: {self.inserted} new, "
            f"{self.updated} updated, {self.skipped} skipped"
        )

    def stats(self) -> Dict[str, int]:
        return {
            "fetched": self.fetched,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class SyncStatus:
    configured: bool
    missing_env_vars: List[str]
    last_sync: Optional[datetime]
    last_attempt: Optional[datetime]
    last_error: Optional[str]
    synced_order_count: int
    recent_runs: List[SyncRun]


def _same_value(key: str, current: Any, value: Any) -> bool:
    if key == "order_total":
        return current is not None and round(float(current), 2) == value
    return current == value


def _reconcile_one(session: Session, payload: Dict[str, Any], now: datetime) -> str:
    fields = build_order_fields(payload)
    existing = session.scalar(
        select(Order).where(
            Order.external_id == fields["external_id"],
            Order.platform == PLATFORM,
        )
    )

    if existing is not None:
        if is_terminal(existing.status):
            return "skipped"
        changed = False
        for key, value in fields.items():
            if not _same_value(key, getattr(existing, key), value):
                setattr(existing, key, value)
                changed = True
        if not changed:
            return "unchanged"
        existing.updated_at = now
        session.flush()
        return "updated"

    order = Order(**fields, created_at=parse_created_at(payload) or now, updated_at=now)
    session.add(order)
    session.flush()
    return "inserted"


def reconcile_orders(
    session: Session,
    *,
    orders: Sequence[Dict[str, Any]],
    now: Optional[datetime] = None,
    run_id: Optional[str] = None,
) -> SyncAccumulator:
    """Upsert fetched orders one savepoint at a time; bad orders never abort the batch."""

    current = now or datetime.now(timezone.utc)
    accumulator = SyncAccumulator()

    for payload in orders:
        order_number = str(payload.get("orderNumber") or payload.get("orderId") or "unknown")
        try:
            with session.begin_nested():
                outcome = _reconcile_one(session, payload, current)
        except Exception as exc:
            message = accumulator.record_error(order_number, exc)
            logger.warning("sync_order_failed", run_id=run_id, order_number=order_number, error=message)
            continue
        accumulator.record(outcome)

    record_sync_orders(outcome="inserted", count=accumulator.inserted)
    record_sync_orders(outcome="updated", count=accumulator.updated)
    record_sync_orders(outcome="skipped", count=accumulator.skipped - accumulator.unchanged)
    record_sync_orders(outcome="unchanged", count=accumulator.unchanged)
    record_sync_orders(outcome="error", count=accumulator.errors)
    return accumulator


def run_sync(
    session: Session,
    *,
    client: ShipStationClient,
    sync_type: str = "incremental",
    triggered_by: str = "manual",
    now: Optional[datetime] = None,
) -> SyncRunResult:
    """Execute one recorded sync run.

    Raises ``ShipStationNotConfiguredError`` before anything is written when
    credentials are missing. Every other failure is recorded on the run row
    and returned as a failed ``SyncRunResult``.
    """

    sync_type = normalize_sync_type(sync_type)
    if not client.configured:
        missing = client.missing_env_vars()
        logger.warning("sync_not_configured", missing_env_vars=missing)
        raise ShipStationNotConfiguredError(missing)

    current = now or datetime.now(timezone.utc)
    run = SyncRun(status="running", sync_type=sync_type, triggered_by=triggered_by, started_at=current)
    session.add(run)
    session.commit()
    run_id = run.id
    logger.info("sync_run_started", run_id=run_id, sync_type=sync_type, triggered_by=triggered_by)

    modified_after: Optional[datetime] = None
    try:
        app_settings = get_app_settings(session)
        modified_after = resolve_modified_after(sync_type, app_settings.last_shipstation_sync, current)
        run.modified_after = modified_after
        session.commit()

        orders = client.fetch_orders(modified_after)
        accumulator = reconcile_orders(session, orders=orders, now=current, run_id=run_id)

        finished_at = datetime.now(timezone.utc)
        run.status = "success"
        run.finished_at = finished_at
        run.fetched_count = accumulator.fetched
        run.inserted_count = accumulator.inserted
        run.updated_count = accumulator.updated
        run.skipped_count = accumulator.skipped
        run.error_count = accumulator.errors
        run.error_details_json = (
            _dumps({"errors": accumulator.error_samples}) if accumulator.error_samples else None
        )
        record_sync_success(session, now=finished_at, started_at=current)
        session.commit()
    except Exception as exc:
        session.rollback()
        error_text = str(exc) or exc.__class__.__name__
        finished_at = datetime.now(timezone.utc)
        failed_run = session.get(SyncRun, run_id)
        if failed_run is not None:
            failed_run.status = "failed"
            failed_run.finished_at = finished_at
            failed_run.error_summary = error_text[:ERROR_SUMMARY_MAX_LENGTH]
        record_sync_failure(session, now=finished_at, error=error_text)
        session.commit()

        record_sync_run(sync_type=sync_type, status="failed")
        if not isinstance(exc, ShipStationError):
            capture_exception(exc, tags={"sync_run_id": run_id, "sync_type": sync_type})
        logger.error(
            "sync_run_failed",
            run_id=run_id,
            sync_type=sync_type,
            error_type=exc.__class__.__name__,
            error=error_text[:ERROR_SUMMARY_MAX_LENGTH],
        )
        return SyncRunResult(
            run_id=run_id,
            status="failed",
            sync_type=sync_type,
            modified_after=modified_after,
            error=error_text[:ERROR_SUMMARY_MAX_LENGTH],
        )

    record_sync_run(sync_type=sync_type, status="success")
    logger.info(
        "sync_run_completed",
        run_id=run_id,
        unchanged=accumulator.unchanged,
        **accumulator.stats(),
    )
    return SyncRunResult(
        run_id=run_id,
        status="success",
        sync_type=sync_type,
        modified_after=modified_after,
        fetched=accumulator.fetched,
        inserted=accumulator.inserted,
        updated=accumulator.updated,
        skipped=accumulator.skipped,
        errors=accumulator.errors,
        error_samples=tuple(accumulator.error_samples),
    )


def get_sync_status(session: Session, *, settings: Optional[Settings] = None) -> SyncStatus:
    settings = settings or get_settings()
    app_settings = session.get(AppSettings, DEFAULT_SETTINGS_ID)
    synced_order_count = session.scalar(
        select(func.count()).select_from(Order).where(Order.platform == PLATFORM)
    )
    recent_runs = list(
        session.scalars(
            select(SyncRun).order_by(desc(SyncRun.started_at)).limit(RECENT_RUNS_LIMIT)
        ).all()
    )
    return SyncStatus(
        configured=settings.shipstation_configured(),
        missing_env_vars=settings.shipstation_missing_env_vars(),
        last_sync=app_settings.last_shipstation_sync if app_settings else None,
        last_attempt=app_settings.last_shipstation_sync_attempt if app_settings else None,
        last_error=app_settings.last_shipstation_sync_error if app_settings else None,
        synced_order_count=int(synced_order_count or 0),
        recent_runs=recent_runs,
    )
