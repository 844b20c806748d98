from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
import uuid

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import proofdesk.api.main as api_main
from proofdesk.core.config import get_settings
from proofdesk.core.rate_limit import get_rate_limiter
from proofdesk.integrations.email.resend_client import EmailClientError
from proofdesk.integrations.shipstation.client import CredentialCheckResult, StoreSummary, get_shipstation_client
from proofdesk.notifications.notifier import get_notifier
from proofdesk.proofs.links import issue_magic_link
from proofdesk.proofs.storage import ProofStorageError, get_proof_storage
from proofdesk.storage.db import Base, configure_sqlite_engine, get_session, load_models
from proofdesk.storage.models import Order, ProofFile, ProofVersion


ADMIN_PASSWORD = "staff-pass-1234"
SESSION_SECRET = "session-secret-for-tests-0123456789abcdef"
CRON_SECRET = "cron-secret-for-tests-0001"
PUBLIC_BASE_URL = "https://proofs.example.test"
CRON_HEADERS = {"Authorization": f"Bearer {CRON_SECRET}"}


def build_sqlite_session_factory() -> sessionmaker:
    load_models()
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    configure_sqlite_engine(engine)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


class RecordingNotifier:
    def __init__(self, *, delivered: bool = True) -> None:
        self.delivered = delivered
        self.sent: List[Dict[str, Any]] = []

    def send(self, *, to: str, subject: str, html: str, text: Optional[str] = None, sender: Optional[str] = None) -> bool:
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text, "sender": sender})
        return self.delivered


class FailingNotifier:
    def __init__(self) -> None:
        self.attempts = 0

    def send(self, *, to: str, subject: str, html: str, text: Optional[str] = None, sender: Optional[str] = None) -> bool:
        del to, subject, html, text, sender
        self.attempts += 1
        raise EmailClientError("email_provider_request_failed status=500 detail=boom")


class MemoryProofStorage:
    def __init__(self, *, fail_on_put: Optional[int] = None) -> None:
        self.objects: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.put_calls = 0
        self._fail_on_put = fail_on_put

    def put(self, key: str, data: bytes, *, content_type: str) -> str:
        del content_type
        self.put_calls += 1
        if self._fail_on_put is not None and self.put_calls == self._fail_on_put:
            raise ProofStorageError(f"Failed to store {key}")
        self.objects[key] = data
        return key

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.deleted.append(key)
            self.objects.pop(key, None)

    def open(self, key: str) -> bytes:
        if key not in self.objects:
            raise FileNotFoundError(key)
        return self.objects[key]


class FakeShipStationClient:
    def __init__(
        self,
        *,
        orders: Optional[List[Dict[str, Any]]] = None,
        configured: bool = True,
        error: Optional[Exception] = None,
    ) -> None:
        self.orders = list(orders or [])
        self._configured = configured
        self.error = error
        self.calls: List[Optional[datetime]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def missing_env_vars(self) -> List[str]:
        return [] if self._configured else ["SHIPSTATION_API_KEY", "SHIPSTATION_API_SECRET"]

    def fetch_orders(self, modified_after: Optional[datetime]) -> List[Dict[str, Any]]:
        self.calls.append(modified_after)
        if self.error is not None:
            raise self.error
        return list(self.orders)

    def verify_credentials(self) -> CredentialCheckResult:
        if not self._configured:
            return CredentialCheckResult(valid=False, error="Missing API credentials", error_code="missing_credentials")
        return CredentialCheckResult(
            valid=True,
            rate_limit_remaining=39,
            stores=(StoreSummary(id=1, name="Main Store", marketplace="Etsy"),),
        )


def shipstation_order(order_id: int, order_number: str, **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "orderId": order_id,
        "orderNumber": order_number,
        "orderDate": "2026-10-01T10:15:00.0000000",
        "orderStatus": "awaiting_shipment",
        "customerEmail": f"buyer-{order_id}@example.com",
        "orderTotal": 42.5,
        "shipTo": {"name": "Jamie Buyer"},
        "items": [
            {
                "sku": "MUG-11",
                "name": "Custom Mug",
                "quantity": 2,
                "imageUrl": "https://cdn.example.com/mug.png",
                "options": [{"name": "Color", "value": "Blue"}],
            }
        ],
    }
    payload.update(overrides)
    return payload


@dataclass
class ApiTestContext:
    client: TestClient
    session_factory: sessionmaker
    notifier: Any
    storage: MemoryProofStorage
    shipstation: FakeShipStationClient
    extra: Dict[str, Any] = field(default_factory=dict)


def create_api_test_context(
    monkeypatch,
    tmp_path: Path,
    *,
    notifier: Any = None,
    storage: Optional[MemoryProofStorage] = None,
    shipstation: Optional[FakeShipStationClient] = None,
) -> ApiTestContext:
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("SESSION_SECRET", SESSION_SECRET)
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    monkeypatch.setenv("APP_PUBLIC_BASE_URL", PUBLIC_BASE_URL)
    monkeypatch.setenv("PROOF_STORAGE_PATH", str(tmp_path / "proofs"))
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "memory")

    get_settings.cache_clear()
    get_rate_limiter.cache_clear()

    session_factory = build_sqlite_session_factory()
    notifier = notifier if notifier is not None else RecordingNotifier()
    storage = storage if storage is not None else MemoryProofStorage()
    shipstation = shipstation if shipstation is not None else FakeShipStationClient()

    def override_get_session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    api_main.app.dependency_overrides[get_session] = override_get_session
    api_main.app.dependency_overrides[get_notifier] = lambda: notifier
    api_main.app.dependency_overrides[get_proof_storage] = lambda: storage
    api_main.app.dependency_overrides[get_shipstation_client] = lambda: shipstation

    return ApiTestContext(
        client=TestClient(api_main.app),
        session_factory=session_factory,
        notifier=notifier,
        storage=storage,
        shipstation=shipstation,
    )


def teardown_api_test_context() -> None:
    api_main.app.dependency_overrides.clear()
    get_settings.cache_clear()
    get_rate_limiter.cache_clear()


def login(client: TestClient) -> None:
    response = client.post("/auth/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200


def seed_order(session_factory: sessionmaker, **fields: Any) -> str:
    now = datetime.now(timezone.utc)
    values: Dict[str, Any] = {
        "platform": "manual",
        "order_number": f"M-{uuid.uuid4().hex[:8]}",
        "customer_email": "customer@example.com",
        "customer_name": "Casey Customer",
        "status": "open",
        "created_at": now,
        "updated_at": now,
    }
    values.update(fields)
    with session_factory() as session:
        order = Order(**values)
        session.add(order)
        session.commit()
        return order.id


def seed_proof_version(session_factory: sessionmaker, order_id: str, *, version_number: int = 1) -> str:
    with session_factory() as session:
        version = ProofVersion(order_id=order_id, version_number=version_number, staff_note="First draft")
        session.add(version)
        session.flush()
        session.add(
            ProofFile(
                version_id=version.id,
                filename="proof.png",
                mime_type="image/png",
                size_bytes=4,
                storage_key=f"{order_id}/{version.id}/proof.png",
                original_path=f"{order_id}/{version.id}/proof.png",
                preview_path=f"{order_id}/{version.id}/proof.png",
                sort_order=0,
            )
        )
        session.commit()
        return version.id


def seed_magic_link(
    session_factory: sessionmaker,
    order_id: str,
    *,
    now: Optional[datetime] = None,
    expiration_days: int = 30,
) -> str:
    with session_factory() as session:
        issued = issue_magic_link(session, order_id=order_id, now=now, expiration_days=expiration_days)
        session.commit()
        return issued.token
