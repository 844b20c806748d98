"""Staff bulk actions over a selection of orders."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from proofdesk.core.config import Settings, get_settings
from proofdesk.core.logger import get_logger
from proofdesk.core.metrics import record_notification
from proofdesk.notifications.notifier import Notifier, sender_for
from proofdesk.orders.service import record_audit_event
from proofdesk.orders.status import OrderStatus, is_decided
from proofdesk.reminders.service import remind_order
from proofdesk.settings.service import get_app_settings, load_templates
from proofdesk.storage.models import Order


BULK_ACTIONS = ("mark_open", "mark_approved", "send_reminders")
MAX_BULK_ORDERS = 100

logger = get_logger("proofdesk.orders.bulk")


class BulkActionError(RuntimeError):
    pass


@dataclass(frozen=True)
class BulkActionResult:
    action: str
    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)


def _mark(orders: Sequence[Order], session: Session, *, action: str, now: datetime) -> Tuple[List[str], List[str]]:
    processed: List[str] = []
    skipped: List[str] = []
    for order in orders:
        # A customer decision is final; staff cannot overwrite or reopen it in bulk.
        if is_decided(order.status):
            skipped.append(order.id)
            continue
        if action == "mark_approved":
            order.status = OrderStatus.APPROVED.value
            order.customer_decision_at = now
            event_type = OrderStatus.APPROVED.value
        else:
            if order.status == OrderStatus.OPEN.value:
                skipped.append(order.id)
                continue
            order.status = OrderStatus.OPEN.value
            event_type = "marked_open"
        order.updated_at = now
        record_audit_event(
            session,
            order_id=order.id,
            actor_type="staff",
            event_type=event_type,
            metadata={"source": "bulk"},
        )
        processed.append(order.id)
    return processed, skipped


def _remind(
    orders: Sequence[Order],
    session: Session,
    *,
    notifier: Notifier,
    settings: Settings,
    now: datetime,
) -> Tuple[List[str], List[str]]:
    app_settings = get_app_settings(session)
    session.commit()
    templates = load_templates(app_settings)
    sender = sender_for(app_settings, settings)

    candidates = [(order.id, order.status == OrderStatus.PROOF_SENT.value) for order in orders]
    processed: List[str] = []
    skipped: List[str] = []
    for order_id, eligible in candidates:
        if not eligible:
            skipped.append(order_id)
            continue
        order = session.get(Order, order_id)
        try:
            delivered = remind_order(
                session,
                order,
                notifier=notifier,
                app_settings=app_settings,
                templates=templates,
                sender=sender,
                settings=settings,
                now=now,
                source="bulk",
            )
        except Exception as exc:
            session.rollback()
            record_notification(kind="reminder", status="failed")
            logger.warning("bulk_reminder_failed", order_id=order_id, error_type=exc.__class__.__name__)
            skipped.append(order_id)
            continue
        (processed if delivered else skipped).append(order_id)
    return processed, skipped


def apply_bulk_action(
    session: Session,
    *,
    action: str,
    order_ids: Sequence[str],
    notifier: Notifier,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> BulkActionResult:
    """Apply ``action`` to every listed order and log one ``bulk_<action>`` event.

    Decided orders are never changed. Reminders only go to ``proof_sent``
    orders and commit per order, like the scheduled run.
    """

    if action not in BULK_ACTIONS:
        raise BulkActionError("Unknown action")
    requested = list(dict.fromkeys(order_ids))
    if not requested:
        raise BulkActionError("At least one order ID required")
    if len(requested) > MAX_BULK_ORDERS:
        raise BulkActionError("Too many orders")

    settings = settings or get_settings()
    current = now or datetime.now(timezone.utc)
    found = {order.id: order for order in session.scalars(select(Order).where(Order.id.in_(requested)))}
    orders = [found[order_id] for order_id in requested if order_id in found]
    not_found = [order_id for order_id in requested if order_id not in found]

    if action == "send_reminders":
        processed, skipped = _remind(orders, session, notifier=notifier, settings=settings, now=current)
    else:
        processed, skipped = _mark(orders, session, action=action, now=current)

    record_audit_event(
        session,
        order_id=None,
        actor_type="staff",
        event_type=f"bulk_{action}",
        metadata={"order_count": len(requested), "processed": len(processed)},
    )
    session.commit()
    logger.info(
        "bulk_action_applied",
        action=action,
        requested=len(requested),
        processed=len(processed),
        skipped=len(skipped),
        not_found=len(not_found),
    )
    return BulkActionResult(action=action, processed=processed, skipped=skipped, not_found=not_found)
