"""Proof reminder e-mails for customers who have not decided yet."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from proofdesk.core.config import Settings, get_settings
from proofdesk.core.logger import get_logger
from proofdesk.core.metrics import record_notification
from proofdesk.notifications.notifier import Notifier, reminder_email, sender_for
from proofdesk.orders.service import record_audit_event
from proofdesk.orders.status import OrderStatus
from proofdesk.proofs.links import as_utc, issue_magic_link
from proofdesk.settings.service import ReminderConfig, get_app_settings, load_reminder_config, load_templates
from proofdesk.storage.models import AppSettings, MagicLink, Order


logger = get_logger("proofdesk.reminders")


@dataclass(frozen=True)
class ReminderRunResult:
    enabled: bool
    total: int = 0
    sent: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.enabled:
            return "Reminders disabled"
        if self.total == 0:
            return "No reminders needed"
        return f"Sent {self.sent} reminders"


def reminder_due(
    order: Order,
    *,
    config: ReminderConfig,
    now: datetime,
    proof_sent_at: Optional[datetime] = None,
) -> bool:
    count = order.reminder_count or 0
    if count >= config.max_reminders:
        return False
    interval_days = config.first_reminder_days if count == 0 else config.second_reminder_days
    last_contact = as_utc(order.last_reminder_sent_at) or as_utc(proof_sent_at) or as_utc(order.created_at)
    if last_contact is None:
        return False
    return last_contact <= now - timedelta(days=interval_days)


def remind_order(
    session: Session,
    order: Order,
    *,
    notifier: Notifier,
    app_settings: AppSettings,
    templates: Dict[str, str],
    sender: str,
    settings: Settings,
    now: datetime,
    source: str = "schedule",
) -> bool:
    """Mint a fresh link, e-mail it, and commit only once it was delivered.

    Returns False after rolling back when the notifier skipped delivery.
    Errors propagate with the session still dirty; the caller rolls back.
    """

    issued = issue_magic_link(
        session,
        order_id=order.id,
        now=now,
        expiration_days=settings.magic_link_expiration_days,
    )
    message = reminder_email(order, link=issued.url, app_settings=app_settings, templates=templates)
    delivered = notifier.send(
        to=order.customer_email,
        subject=message.subject,
        html=message.html,
        text=message.text,
        sender=sender,
    )
    if not delivered:
        session.rollback()
        record_notification(kind="reminder", status="skipped")
        return False

    reminder_number = (order.reminder_count or 0) + 1
    order.reminder_count = reminder_number
    order.last_reminder_sent_at = now
    order.updated_at = now
    record_audit_event(
        session,
        order_id=order.id,
        actor_type="system" if source == "schedule" else "staff",
        event_type="reminder_sent",
        metadata={"reminder_number": reminder_number, "source": source},
    )
    session.commit()
    record_notification(kind="reminder", status="sent")
    return True


def send_reminders(
    session: Session,
    *,
    notifier: Notifier,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> ReminderRunResult:
    """Remind every due ``proof_sent`` order with a freshly minted link.

    Minting replaces the stored hash, so earlier links stop working. The new
    link is only committed once the e-mail went out.
    """

    settings = settings or get_settings()
    current = now or datetime.now(timezone.utc)
    app_settings = get_app_settings(session)
    session.commit()
    config = load_reminder_config(app_settings)
    if not config.enabled:
        return ReminderRunResult(enabled=False)

    templates = load_templates(app_settings)
    sender = sender_for(app_settings, settings)
    rows = session.execute(
        select(Order, MagicLink.updated_at)
        .outerjoin(MagicLink, MagicLink.order_id == Order.id)
        .where(
            Order.status == OrderStatus.PROOF_SENT.value,
            Order.reminder_count < config.max_reminders,
        )
        .order_by(Order.created_at)
    ).all()
    due = [
        order
        for order, proof_sent_at in rows
        if reminder_due(order, config=config, now=current, proof_sent_at=proof_sent_at)
    ]

    sent = 0
    skipped = 0
    errors: List[str] = []
    for order in due:
        order_id = order.id
        order_number = order.order_number
        try:
            delivered = remind_order(
                session,
                order,
                notifier=notifier,
                app_settings=app_settings,
                templates=templates,
                sender=sender,
                settings=settings,
                now=current,
            )
        except Exception as exc:
            session.rollback()
            record_notification(kind="reminder", status="failed")
            error = f"Order {order_number}: {str(exc) or exc.__class__.__name__}"
            errors.append(error)
            logger.warning("reminder_failed", order_id=order_id, error=error[:200])
            continue
        if delivered:
            sent += 1
        else:
            skipped += 1

    logger.info("reminders_processed", due=len(due), sent=sent, skipped=skipped, errors=len(errors))
    return ReminderRunResult(enabled=True, total=len(due), sent=sent, skipped=skipped, errors=errors)
