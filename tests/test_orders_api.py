from datetime import datetime, timedelta, timezone
import json
import uuid

from sqlalchemy import func, select

from proofdesk.orders import service as orders_service
from proofdesk.storage.models import AuditEvent, Order, Thread
from tests.conftest import create_api_test_context, login, seed_order, teardown_api_test_context


def test_create_manual_order(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        response = context.client.post(
            "/orders",
            json={
                "orderNumber": "MAN-1",
                "customerEmail": "client@example.com",
                "customerName": "Client Name",
                "productName": "Banner",
                "quantity": 3,
                "orderTotal": 120.5,
            },
        )

        assert response.status_code == 201
        payload = response.json()
        assert payload["platform"] == "manual"
        assert payload["status"] == "draft"
        assert payload["orderTotal"] == 120.5
        assert payload["reminderCount"] == 0
        with context.session_factory() as session:
            assert session.scalar(select(Thread).where(Thread.order_id == payload["id"])) is not None
            event = session.scalar(select(AuditEvent).where(AuditEvent.order_id == payload["id"]))
            assert event.event_type == "order_created"
    finally:
        teardown_api_test_context()


def test_duplicate_manual_order_number_conflicts(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        body = {"orderNumber": "MAN-2", "customerEmail": "client@example.com"}

        assert context.client.post("/orders", json=body).status_code == 201
        assert context.client.post("/orders", json=body).status_code == 409
    finally:
        teardown_api_test_context()


def test_create_order_validates_email(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        response = context.client.post("/orders", json={"orderNumber": "MAN-3", "customerEmail": "not-an-email"})
        assert response.status_code == 422
    finally:
        teardown_api_test_context()


def test_list_orders_filters_by_status(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        seed_order(context.session_factory, status="open", order_number="O-1")
        seed_order(context.session_factory, status="approved", order_number="O-2")

        everything = context.client.get("/orders")
        approved = context.client.get("/orders", params={"status": "approved"})
        invalid = context.client.get("/orders", params={"status": "shipped"})

        assert everything.json()["count"] == 2
        assert [item["orderNumber"] for item in approved.json()["orders"]] == ["O-2"]
        assert invalid.status_code == 400
    finally:
        teardown_api_test_context()


def test_concurrent_duplicate_create_still_conflicts(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        # Both requests pass the read check, as two racing creates would.
        monkeypatch.setattr(orders_service, "order_number_taken", lambda session, **kwargs: False)
        body = {"orderNumber": "MAN-9", "customerEmail": "client@example.com"}

        assert context.client.post("/orders", json=body).status_code == 201
        assert context.client.post("/orders", json=body).status_code == 409
        with context.session_factory() as session:
            assert session.scalar(select(func.count()).select_from(Order)) == 1
    finally:
        teardown_api_test_context()


def test_search_matches_number_customer_and_product(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        base = datetime(2026, 10, 1, tzinfo=timezone.utc)
        by_number = seed_order(context.session_factory, order_number="MUG-7", created_at=base)
        by_product = seed_order(
            context.session_factory,
            order_number="SS-2002",
            customer_name="Robin Reyes",
            product_name="Custom Mug",
            created_at=base + timedelta(days=1),
        )
        seed_order(context.session_factory, order_number="SS-3003", product_name="Banner")

        response = context.client.get("/orders/search", params={"q": "mug"})

        assert response.status_code == 200
        results = response.json()["results"]
        assert [item["id"] for item in results] == [by_number, by_product]
        assert results[0]["title"] == "#MUG-7"
        assert results[1]["subtitle"] == "Robin Reyes • Custom Mug"
        assert results[1]["href"] == f"/admin/orders/{by_product}"
        assert results[1]["type"] == "order"
    finally:
        teardown_api_test_context()


def test_search_ignores_short_queries_and_wildcards(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        seed_order(context.session_factory, order_number="SS-100")

        for query in ("S", "%_", "s%", "x" * 201):
            assert context.client.get("/orders/search", params={"q": query}).json() == {"results": []}
        assert context.client.get("/orders/search").json() == {"results": []}
    finally:
        teardown_api_test_context()


def test_bulk_approve_leaves_decided_orders_alone(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        pending = seed_order(context.session_factory, status="proof_sent")
        decided = seed_order(context.session_factory, status="changes_requested")
        missing = str(uuid.uuid4())

        response = context.client.post(
            "/orders/bulk-actions",
            json={"action": "mark_approved", "orderIds": [pending, decided, missing]},
        )

        assert response.status_code == 200
        payload = response.json()
        assert payload["processed"] == 1
        assert payload["processedIds"] == [pending]
        assert payload["skippedIds"] == [decided]
        assert payload["notFoundIds"] == [missing]
        with context.session_factory() as session:
            approved = session.get(Order, pending)
            assert approved.status == "approved"
            assert approved.customer_decision_at is not None
            assert session.get(Order, decided).status == "changes_requested"
            per_order = session.scalar(select(AuditEvent).where(AuditEvent.order_id == pending))
            assert per_order.event_type == "approved"
            assert per_order.actor_type == "staff"
            bulk_event = session.scalar(select(AuditEvent).where(AuditEvent.event_type == "bulk_mark_approved"))
            assert json.loads(bulk_event.metadata_json) == {"order_count": 3, "processed": 1}
    finally:
        teardown_api_test_context()


def test_bulk_mark_open(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        draft = seed_order(context.session_factory, status="draft")
        already_open = seed_order(context.session_factory, status="open")
        approved = seed_order(context.session_factory, status="approved")

        response = context.client.post(
            "/orders/bulk-actions",
            json={"action": "mark_open", "orderIds": [draft, already_open, approved]},
        )

        assert response.json()["processedIds"] == [draft]
        assert response.json()["skippedIds"] == [already_open, approved]
        with context.session_factory() as session:
            assert session.get(Order, draft).status == "open"
            assert session.get(Order, approved).status == "approved"
    finally:
        teardown_api_test_context()


def test_bulk_reminders_only_reach_proof_sent_orders(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        waiting = seed_order(context.session_factory, status="proof_sent", customer_email="waiting@example.com")
        draft = seed_order(context.session_factory, status="draft")

        response = context.client.post(
            "/orders/bulk-actions",
            json={"action": "send_reminders", "orderIds": [waiting, draft]},
        )

        assert response.status_code == 200
        assert response.json()["processedIds"] == [waiting]
        assert response.json()["skippedIds"] == [draft]
        assert [item["to"] for item in context.notifier.sent] == ["waiting@example.com"]
        with context.session_factory() as session:
            assert session.get(Order, waiting).reminder_count == 1
            event = session.scalar(select(AuditEvent).where(AuditEvent.event_type == "reminder_sent"))
            assert json.loads(event.metadata_json) == {"reminder_number": 1, "source": "bulk"}
            assert session.scalar(select(AuditEvent).where(AuditEvent.event_type == "bulk_send_reminders")) is not None
    finally:
        teardown_api_test_context()


def test_bulk_actions_validate_input(monkeypatch, tmp_path) -> None:
    context = create_api_test_context(monkeypatch, tmp_path)
    try:
        login(context.client)
        order_id = seed_order(context.session_factory)

        bodies = [
            {"action": "mark_open", "orderIds": []},
            {"action": "mark_open", "orderIds": ["not-a-uuid"]},
            {"action": "delete_everything", "orderIds": [order_id]},
            {"action": "mark_open", "orderIds": [str(uuid.uuid4()) for _ in range(101)]},
        ]
        for body in bodies:
            assert context.client.post("/orders/bulk-actions", json=body).status_code == 422
    finally:
        teardown_api_test_context()
