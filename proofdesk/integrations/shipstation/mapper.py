"""Translate ShipStation order payloads into local order fields."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import re
from typing import Any, Dict, Optional

from proofdesk.orders.status import OrderStatus


PLATFORM = "shipstation"
UNKNOWN_CUSTOMER_EMAIL = "unknown@shipstation.com"

STATUS_MAP: Dict[str, OrderStatus] = {
    "awaiting_payment": OrderStatus.DRAFT,
    "awaiting_shipment": OrderStatus.OPEN,
    "pending_fulfillment": OrderStatus.OPEN,
    "shipped": OrderStatus.APPROVED,
    "on_hold": OrderStatus.DRAFT,
    "cancelled": OrderStatus.DRAFT,
}

_FRACTION_RE = re.compile(r"\.(\d+)")


def map_order_status(external_status: Optional[str]) -> str:
    key = (external_status or "").strip().lower()
    return STATUS_MAP.get(key, OrderStatus.OPEN).value


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=True, sort_keys=True)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a ShipStation timestamp; naive values are taken as UTC."""

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # ShipStation emits up to seven fractional digits.
    match = _FRACTION_RE.search(text)
    if match:
        fraction = match.group(1)[:6].ljust(6, "0")
        text = f"{text[:match.start()]}.{fraction}{text[match.end():]}"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_created_at(payload: Dict[str, Any]) -> Optional[datetime]:
    return parse_timestamp(payload.get("orderDate") or payload.get("createDate"))


def _party_name(payload: Dict[str, Any], key: str) -> Optional[str]:
    party = payload.get(key)
    if isinstance(party, dict):
        name = str(party.get("name") or "").strip()
        return name or None
    return None


def build_order_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return the external-derived Order columns for one ShipStation order.

    Raises ``ValueError`` when the payload lacks an order id or number.
    """

    order_id = payload.get("orderId")
    if order_id is None or str(order_id).strip() == "":
        raise ValueError("missing orderId")
    order_number = str(payload.get("orderNumber") or "").strip()
    if not order_number:
        raise ValueError("missing orderNumber")

    items = [item for item in payload.get("items") or [] if isinstance(item, dict)]
    first_item = items[0] if items else {}

    quantity = sum(int(item.get("quantity") or 0) for item in items) or 1

    options = None
    raw_options = first_item.get("options")
    if isinstance(raw_options, list):
        options = {
            str(option.get("name")): option.get("value")
            for option in raw_options
            if isinstance(option, dict) and option.get("name")
        }

    return {
        "external_id": str(order_id).strip(),
        "order_number": order_number,
        "platform": PLATFORM,
        "customer_email": str(payload.get("customerEmail") or "").strip() or UNKNOWN_CUSTOMER_EMAIL,
        "customer_name": _party_name(payload, "shipTo") or _party_name(payload, "billTo"),
        "status": map_order_status(payload.get("orderStatus")),
        "order_total": round(float(payload.get("orderTotal") or 0), 2),
        "sku": first_item.get("sku") or None,
        "product_name": first_item.get("name") or None,
        "quantity": quantity,
        "product_image_url": first_item.get("imageUrl") or None,
        "customization_options_json": _dumps(options) if options is not None else None,
        "raw_json": _dumps(payload),
    }
