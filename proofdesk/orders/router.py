"""Staff order listing, search, manual creation and bulk actions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from proofdesk.auth.dependencies import require_admin
from proofdesk.core.rate_limit import rate_limit
from proofdesk.notifications.notifier import Notifier, get_notifier
from proofdesk.orders.bulk import BulkActionError, apply_bulk_action
from proofdesk.orders.service import (
    MAX_LIST_LIMIT,
    DuplicateOrderError,
    create_manual_order,
    list_orders,
    search_orders,
)
from proofdesk.orders.status import OrderStatus
from proofdesk.schemas.orders import (
    BulkActionRequest,
    BulkActionResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    SearchResponse,
    SearchResult,
)
from proofdesk.storage.db import get_session
from proofdesk.storage.models import Order


router = APIRouter(
    prefix="/orders",
    tags=["orders"],
    dependencies=[Depends(require_admin), Depends(rate_limit("orders", "admin_api"))],
)

_STATUS_VALUES = {item.value for item in OrderStatus}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else None


def _to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        external_id=order.external_id,
        platform=order.platform,
        order_number=order.order_number,
        customer_email=order.customer_email,
        customer_name=order.customer_name,
        status=order.status,
        order_total=order.order_total,
        sku=order.sku,
        product_name=order.product_name,
        quantity=order.quantity,
        reminder_count=order.reminder_count,
        created_at=_iso(order.created_at),
        customer_decision_at=_iso(order.customer_decision_at),
    )


@router.get("", response_model=OrderListResponse)
def get_orders(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=MAX_LIST_LIMIT),
    session: Session = Depends(get_session),
) -> OrderListResponse:
    if status_filter and status_filter not in _STATUS_VALUES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status filter")
    rows = list_orders(session, status=status_filter, limit=limit)
    return OrderListResponse(count=len(rows), orders=[_to_response(row) for row in rows])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreateRequest, session: Session = Depends(get_session)) -> OrderResponse:
    try:
        order = create_manual_order(
            session,
            order_number=payload.order_number,
            customer_email=str(payload.customer_email),
            customer_name=payload.customer_name,
            product_name=payload.product_name,
            sku=payload.sku,
            quantity=payload.quantity,
            order_total=payload.order_total,
            status=payload.status,
        )
    except DuplicateOrderError as exc:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order number already exists") from exc
    return _to_response(order)


def _to_search_result(order: Order) -> SearchResult:
    who = order.customer_name or order.customer_email or "No name"
    what = order.product_name or order.sku or "No product"
    return SearchResult(
        id=order.id,
        title=f"#{order.order_number}",
        subtitle=f"{who} • {what}",
        href=f"/admin/orders/{order.id}",
    )


@router.get(
    "/search",
    response_model=SearchResponse,
    dependencies=[Depends(rate_limit("search", "search"))],
)
def search(q: Optional[str] = Query(default=None), session: Session = Depends(get_session)) -> SearchResponse:
    return SearchResponse(results=[_to_search_result(order) for order in search_orders(session, query=q)])


@router.post("/bulk-actions", response_model=BulkActionResponse)
def bulk_actions(
    payload: BulkActionRequest,
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
) -> BulkActionResponse:
    try:
        result = apply_bulk_action(
            session,
            action=payload.action,
            order_ids=[str(order_id) for order_id in payload.order_ids],
            notifier=notifier,
        )
    except BulkActionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return BulkActionResponse(
        action=result.action,
        processed=len(result.processed),
        processed_ids=result.processed,
        skipped_ids=result.skipped,
        not_found_ids=result.not_found,
    )
