"""Best-effort outbound notifications behind a narrow port."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape
from typing import Optional, Protocol

from proofdesk.core.config import Settings, get_settings
from proofdesk.core.logger import get_logger
from proofdesk.core.metrics import record_notification
from proofdesk.integrations.email.resend_client import ResendClient, format_sender, get_resend_client
from proofdesk.storage.models import AppSettings, Order


logger = get_logger("proofdesk.notifications")


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    html: str
    text: str


class Notifier(Protocol):
    def send(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        sender: Optional[str] = None,
    ) -> bool:
        """Deliver one message. Return False when delivery was skipped."""


class NullNotifier:
    def send(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        sender: Optional[str] = None,
    ) -> bool:
        del to, subject, html, text, sender
        return False


class EmailNotifier:
    def __init__(self, client: ResendClient, *, default_sender: str) -> None:
        self._client = client
        self._default_sender = default_sender

    def send(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None,
        sender: Optional[str] = None,
    ) -> bool:
        if not self._client.configured:
            return False
        self._client.send_email(
            from_address=sender or self._default_sender,
            to=[to],
            subject=subject,
            html=html,
            text=text,
        )
        return True


def get_notifier() -> Notifier:
    settings = get_settings()
    if not settings.email_configured():
        return NullNotifier()
    return EmailNotifier(
        get_resend_client(),
        default_sender=format_sender(settings.email_default_from_name, settings.email_default_from_address),
    )


def sender_for(app_settings: Optional[AppSettings], settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    name = (app_settings.email_from_name if app_settings else None) or settings.email_default_from_name
    address = (app_settings.email_from_email if app_settings else None) or settings.email_default_from_address
    return format_sender(name, address)


def deliver(
    notifier: Notifier,
    *,
    kind: str,
    to: Optional[str],
    message: EmailMessage,
    sender: Optional[str] = None,
    order_id: Optional[str] = None,
) -> bool:
    """Send a notification without ever raising. Returns True when delivered."""

    if not to:
        record_notification(kind=kind, status="skipped")
        return False
    try:
        delivered = notifier.send(
            to=to,
            subject=message.subject,
            html=message.html,
            text=message.text,
            sender=sender,
        )
    except Exception as exc:
        record_notification(kind=kind, status="failed")
        logger.warning(
            "notification_failed",
            kind=kind,
            order_id=order_id,
            error_type=exc.__class__.__name__,
            error=str(exc)[:200],
        )
        return False

    record_notification(kind=kind, status="sent" if delivered else "skipped")
    logger.info("notification_processed", kind=kind, order_id=order_id, delivered=delivered)
    return delivered


def _company(app_settings: Optional[AppSettings]) -> str:
    return (app_settings.company_name if app_settings else None) or "The Team"


def _greeting_name(order: Order) -> str:
    return order.customer_name or "there"


def _subject(templates: Optional[dict], key: str, default: str, order: Order) -> str:
    template = (templates or {}).get(key)
    if not template:
        return default
    return template.replace("{order_number}", order.order_number)


def proof_ready_email(
    order: Order,
    *,
    link: str,
    expiration_days: int,
    app_settings: Optional[AppSettings] = None,
    templates: Optional[dict] = None,
) -> EmailMessage:
    company = _company(app_settings)
    subject = _subject(
        templates,
        "proof_ready_subject",
        f"Your proof is ready - Order #{order.order_number}",
        order,
    )
    html = (
        '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">'
        "<h2>Your proof is ready for review!</h2>"
        f"<p>Hi {escape(_greeting_name(order))},</p>"
        f"<p>Your proof for order #{escape(order.order_number)} is ready for your review.</p>"
        f'<p><a href="{escape(link)}">Review Your Proof</a></p>'
        f'<p>If the button does not work, copy and paste this link:<br><a href="{escape(link)}">{escape(link)}</a></p>'
        f"<p>This link will expire in {expiration_days} days.</p>"
        f"<p>Thank you,<br>{escape(company)}</p>"
        "</div>"
    )
    text = (
        f"Hi {_greeting_name(order)},\n\n"
        f"Your proof for order #{order.order_number} is ready for your review:\n{link}\n\n"
        f"This link will expire in {expiration_days} days.\n\n"
        f"Thank you,\n{company}"
    )
    return EmailMessage(subject=subject, html=html, text=text)


def reminder_email(
    order: Order,
    *,
    link: str,
    app_settings: Optional[AppSettings] = None,
    templates: Optional[dict] = None,
) -> EmailMessage:
    company = _company(app_settings)
    subject = _subject(
        templates,
        "reminder_subject",
        f"Reminder: Your proof is waiting - Order #{order.order_number}",
        order,
    )
    html = (
        '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">'
        "<h2>Reminder: Your proof is ready for review</h2>"
        f"<p>Hi {escape(_greeting_name(order))},</p>"
        f"<p>We're still waiting for your approval on order #{escape(order.order_number)}.</p>"
        f'<p><a href="{escape(link)}">Review Your Proof</a></p>'
        "<p>Any earlier review link for this order no longer works.</p>"
        f"<p>Thank you,<br>{escape(company)}</p>"
        "</div>"
    )
    text = (
        f"Hi {_greeting_name(order)},\n\n"
        f"We're still waiting for your approval on order #{order.order_number}:\n{link}\n\n"
        "Any earlier review link for this order no longer works.\n\n"
        f"Thank you,\n{company}"
    )
    return EmailMessage(subject=subject, html=html, text=text)


def decision_received_email(
    order: Order,
    *,
    decision: str,
    note: Optional[str],
    admin_url: str,
) -> EmailMessage:
    label = "Changes Requested" if decision == "changes_requested" else "Approved"
    readable = decision.replace("_", " ")
    note_html = f"<p><strong>Customer note:</strong> {escape(note)}</p>" if note else ""
    note_text = f"\nCustomer note: {note}\n" if note else ""
    html = (
        f"<h2>{label}</h2>"
        f"<p>Order #{escape(order.order_number)} has been {escape(readable)}.</p>"
        f"{note_html}"
        f'<p><a href="{escape(admin_url)}">View Order</a></p>'
    )
    text = f"Order #{order.order_number} has been {readable}.\n{note_text}\nView order: {admin_url}"
    return EmailMessage(subject=f"{label} - Order #{order.order_number}", html=html, text=text)
