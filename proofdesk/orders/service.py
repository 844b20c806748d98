"""Order persistence helpers shared by the staff and customer flows."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from proofdesk.orders.status import OrderStatus
from proofdesk.storage.models import AuditEvent, Message, Order, Thread


MANUAL_PLATFORM = "manual"
USER_AGENT_MAX_LENGTH = 500
MAX_LIST_LIMIT = 500
SEARCH_MIN_LENGTH = 2
SEARCH_MAX_LENGTH = 200
SEARCH_LIMIT = 10

_LIKE_WILDCARDS = re.compile(r"[%_\\]")


class OrderNotFoundError(RuntimeError):
    pass


class DuplicateOrderError(RuntimeError):
    pass


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=True, sort_keys=True)


def record_audit_event(
    session: Session,
    *,
    order_id: Optional[str],
    actor_type: str,
    event_type: str,
    metadata: Optional[Dict[str, Any]] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuditEvent:
    """Stage an audit row. The caller owns the commit."""

    event = AuditEvent(
        order_id=order_id,
        actor_type=actor_type,
        event_type=event_type,
        metadata_json=_dumps(metadata or {}),
        ip=ip,
        user_agent=user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
    )
    session.add(event)
    return event


def get_order(session: Session, order_id: str) -> Order:
    order = session.get(Order, order_id)
    if order is None:
        raise OrderNotFoundError("Order not found")
    return order


def get_or_create_thread(session: Session, *, order_id: str) -> Thread:
    thread = session.scalar(select(Thread).where(Thread.order_id == order_id))
    if thread is None:
        thread = Thread(order_id=order_id)
        session.add(thread)
        session.flush()
    return thread


def append_message(
    session: Session,
    *,
    order_id: str,
    author_type: str,
    body: str,
    author_name: Optional[str] = None,
) -> Message:
    thread = get_or_create_thread(session, order_id=order_id)
    message = Message(thread_id=thread.id, author_type=author_type, author_name=author_name, body=body)
    session.add(message)
    return message


def list_orders(
    session: Session,
    *,
    status: Optional[str] = None,
    limit: int = 100,
) -> List[Order]:
    bounded_limit = max(1, min(limit, MAX_LIST_LIMIT))
    query = select(Order).order_by(desc(Order.created_at)).limit(bounded_limit)
    if status:
        query = query.where(Order.status == status)
    return list(session.scalars(query).all())


def search_orders(session: Session, *, query: Optional[str], limit: int = SEARCH_LIMIT) -> List[Order]:
    """Case-insensitive substring search over number, customer and product.

    Queries shorter than two characters (after LIKE wildcards are stripped)
    or longer than 200 return nothing. Order-number hits sort first.
    """

    cleaned = (query or "").strip()
    if len(cleaned) < SEARCH_MIN_LENGTH or len(cleaned) > SEARCH_MAX_LENGTH:
        return []
    needle = _LIKE_WILDCARDS.sub("", cleaned)
    if len(needle) < SEARCH_MIN_LENGTH:
        return []

    pattern = f"%{needle}%"
    rows = session.scalars(
        select(Order)
        .where(
            or_(
                Order.order_number.ilike(pattern),
                Order.customer_name.ilike(pattern),
                Order.customer_email.ilike(pattern),
                Order.product_name.ilike(pattern),
                Order.sku.ilike(pattern),
            )
        )
        .order_by(desc(Order.created_at))
        .limit(max(1, limit))
    ).all()
    lowered = needle.lower()
    return sorted(rows, key=lambda order: 0 if lowered in order.order_number.lower() else 1)


def order_number_taken(session: Session, *, order_number: str, platform: str = MANUAL_PLATFORM) -> bool:
    existing = session.scalar(
        select(Order.id).where(Order.platform == platform, Order.order_number == order_number)
    )
    return existing is not None


def create_manual_order(
    session: Session,
    *,
    order_number: str,
    customer_email: str,
    customer_name: Optional[str] = None,
    product_name: Optional[str] = None,
    sku: Optional[str] = None,
    quantity: int = 1,
    order_total: Optional[float] = None,
    status: str = OrderStatus.DRAFT.value,
) -> Order:
    normalized_number = order_number.strip()
    if order_number_taken(session, order_number=normalized_number):
        raise DuplicateOrderError("Order number already exists")

    now = datetime.now(timezone.utc)
    order = Order(
        platform=MANUAL_PLATFORM,
        order_number=normalized_number,
        customer_email=customer_email.strip(),
        customer_name=customer_name,
        product_name=product_name,
        sku=sku,
        quantity=quantity,
        order_total=order_total,
        status=status,
        created_at=now,
        updated_at=now,
    )
    session.add(order)
    try:
        session.flush()
    except IntegrityError as exc:
        # A concurrent create won the unique constraint.
        session.rollback()
        raise DuplicateOrderError("Order number already exists") from exc
    session.add(Thread(order_id=order.id))
    record_audit_event(
        session,
        order_id=order.id,
        actor_type="staff",
        event_type="order_created",
        metadata={"platform": MANUAL_PLATFORM},
    )
    session.commit()
    session.refresh(order)
    return order
