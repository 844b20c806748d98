"""Customer decisions submitted through a magic link."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from proofdesk.core.config import get_settings
from proofdesk.core.logger import get_logger
from proofdesk.core.metrics import record_decision
from proofdesk.notifications.notifier import Notifier, decision_received_email, deliver, sender_for
from proofdesk.orders.service import OrderNotFoundError, append_message, record_audit_event
from proofdesk.orders.status import DECIDED_STATUSES, is_decided
from proofdesk.proofs.links import MagicLinkExpiredError, MagicLinkNotFoundError, resolve_magic_link
from proofdesk.settings.service import get_app_settings
from proofdesk.storage.models import Order


NOTE_MAX_LENGTH = 5000

logger = get_logger("proofdesk.decisions")

__all__ = [
    "DecisionAlreadySubmittedError",
    "DecisionError",
    "DecisionResult",
    "MagicLinkExpiredError",
    "MagicLinkNotFoundError",
    "OrderNotFoundError",
    "submit_decision",
]


class DecisionError(RuntimeError):
    pass


class DecisionAlreadySubmittedError(DecisionError):
    pass


@dataclass(frozen=True)
class DecisionResult:
    order_id: str
    decision: str
    decided_at: datetime
    staff_notified: bool


def submit_decision(
    session: Session,
    *,
    token: str,
    decision: str,
    notifier: Notifier,
    note: Optional[str] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DecisionResult:
    """Record the customer's decision for the order behind ``token``.

    Raises ``MagicLinkNotFoundError``, ``MagicLinkExpiredError``,
    ``OrderNotFoundError`` or ``DecisionAlreadySubmittedError``. Staff
    notification happens after the commit and never raises.
    """

    if decision not in DECIDED_STATUSES:
        raise DecisionError("Invalid decision")
    if note and len(note) > NOTE_MAX_LENGTH:
        raise DecisionError(f"Note must be at most {NOTE_MAX_LENGTH} characters")

    current = now or datetime.now(timezone.utc)
    link = resolve_magic_link(session, token=token, now=current)
    order = session.get(Order, link.order_id)
    if order is None:
        raise OrderNotFoundError("Order not found")
    if is_decided(order.status):
        raise DecisionAlreadySubmittedError("Decision already submitted")

    order.status = decision
    order.customer_decision_at = current
    order.customer_last_activity_at = current
    order.updated_at = current

    cleaned_note = note.strip() if note and note.strip() else None
    if cleaned_note:
        append_message(
            session,
            order_id=order.id,
            author_type="customer",
            author_name=order.customer_name or "Customer",
            body=cleaned_note,
        )

    record_audit_event(
        session,
        order_id=order.id,
        actor_type="customer",
        event_type=decision,
        metadata={"has_note": cleaned_note is not None},
        ip=ip,
        user_agent=user_agent,
    )
    app_settings = get_app_settings(session)
    session.commit()
    record_decision(decision=decision)
    logger.info("decision_recorded", order_id=order.id, decision=decision, has_note=cleaned_note is not None)

    settings = get_settings()
    admin_url = f"{settings.app_public_base_url.rstrip('/')}/admin/orders/{order.id}"
    staff_notified = deliver(
        notifier,
        kind="decision_received",
        to=app_settings.staff_notify_email,
        message=decision_received_email(order, decision=decision, note=cleaned_note, admin_url=admin_url),
        sender=sender_for(app_settings, settings),
        order_id=order.id,
    )
    return DecisionResult(
        order_id=order.id,
        decision=decision,
        decided_at=current,
        staff_notified=staff_notified,
    )
