"""
Tests for API Routes.

Exercises the HTTP surface through TestClient with service dependencies
overridden.
"""

from collections.abc import Iterator
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from paygate.api.dependencies import (
    get_checkout_service,
    get_current_principal,
    get_notifier,
    get_payment_store,
    get_webhook_service,
)
from paygate.config import settings
from paygate.db.session import get_db
from paygate.exceptions import (
    GatewayError,
    PaymentNotFoundError,
    PaymentValidationError,
    PersistenceError,
    SubscriberNotFoundError,
)
from paygate.main import app
from paygate.models.api import NotificationOutcome, PaymentStatus, SubscriptionStatus
from paygate.models.domain import (
    CheckoutResult,
    Principal,
    SubscriberData,
    WebhookResult,
)
from paygate.services.signer import webhook_signature

WEBHOOK_BODY = b"sessionId=abc-1&orderId=3012&amount=9900&currency=PLN"
FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class RecordingNotifier:
    """Notifier double that records activation confirmations."""

    def __init__(self) -> None:
        self.sent: list[SubscriberData] = []

    async def send_activation_confirmation(self, subscriber: SubscriberData) -> bool:
        self.sent.append(subscriber)
        return True


@pytest.fixture
def checkout_service() -> MagicMock:
    service = MagicMock()
    service.create_checkout = AsyncMock()
    return service


@pytest.fixture
def webhook_service() -> MagicMock:
    service = MagicMock()
    service.process = AsyncMock()
    return service


@pytest.fixture
def payment_store() -> MagicMock:
    store = MagicMock()
    store.get_by_id = AsyncMock(return_value=None)
    store.get_subscriber = AsyncMock(return_value=None)
    return store


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(
    principal: Principal,
    checkout_service: MagicMock,
    webhook_service: MagicMock,
    payment_store: MagicMock,
    notifier: RecordingNotifier,
) -> Iterator[TestClient]:
    app.dependency_overrides[get_current_principal] = lambda: principal
    app.dependency_overrides[get_checkout_service] = lambda: checkout_service
    app.dependency_overrides[get_webhook_service] = lambda: webhook_service
    app.dependency_overrides[get_payment_store] = lambda: payment_store
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestCreatePayment:
    """Tests for POST /api/payments/create."""

    def test_success(self, client: TestClient, checkout_service: MagicMock, principal: Principal):
        payment_id = uuid4()
        checkout_service.create_checkout.return_value = CheckoutResult(
            payment_id=payment_id,
            redirect_url="https://sandbox.przelewy24.pl/trnRequest/TOKEN",
            session_id="abc-1",
        )

        response = client.post("/api/payments/create", json={"plan": "starter", "period": "monthly"})

        assert response.status_code == 201
        body = response.json()
        assert body["payment_id"] == str(payment_id)
        assert body["redirect_url"] == "https://sandbox.przelewy24.pl/trnRequest/TOKEN"
        assert body["session_id"] == "abc-1"
        checkout_service.create_checkout.assert_awaited_once_with(principal, "starter", "monthly")

    def test_invalid_selection(self, client: TestClient, checkout_service: MagicMock):
        checkout_service.create_checkout.side_effect = PaymentValidationError(
            "Invalid plan or billing period"
        )

        response = client.post("/api/payments/create", json={"plan": "gold", "period": "monthly"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid plan or billing period"

    def test_gateway_unavailable(self, client: TestClient, checkout_service: MagicMock):
        checkout_service.create_checkout.side_effect = GatewayError("timed out")

        response = client.post("/api/payments/create", json={"plan": "starter", "period": "monthly"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Payment provider unavailable"

    def test_unknown_subscriber(
        self, client: TestClient, checkout_service: MagicMock, principal: Principal
    ):
        checkout_service.create_checkout.side_effect = SubscriberNotFoundError(
            principal.subscriber_id
        )

        response = client.post("/api/payments/create", json={"plan": "starter", "period": "monthly"})

        assert response.status_code == 401

    def test_persistence_failure(self, client: TestClient, checkout_service: MagicMock):
        checkout_service.create_checkout.side_effect = PersistenceError("down")

        response = client.post("/api/payments/create", json={"plan": "starter", "period": "monthly"})

        assert response.status_code == 500

    def test_missing_fields(self, client: TestClient):
        response = client.post("/api/payments/create", json={"plan": "starter"})

        assert response.status_code == 422

    def test_requires_authentication(self, client: TestClient):
        del app.dependency_overrides[get_current_principal]

        response = client.post("/api/payments/create", json={"plan": "starter", "period": "monthly"})

        assert response.status_code == 401


class TestPaymentWebhook:
    """Tests for POST /api/payments/webhook."""

    def test_completed_acknowledged_and_notifies(
        self,
        client: TestClient,
        webhook_service: MagicMock,
        notifier: RecordingNotifier,
        subscriber_data: SubscriberData,
    ):
        webhook_service.process.return_value = WebhookResult(
            outcome=NotificationOutcome.COMPLETED, subscriber=subscriber_data
        )

        response = client.post("/api/payments/webhook", content=WEBHOOK_BODY, headers=FORM_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"success": True, "status": "completed"}
        assert notifier.sent == [subscriber_data]
        notification = webhook_service.process.await_args.args[0]
        assert notification.session_id == "abc-1"
        assert notification.order_id == 3012

    @pytest.mark.parametrize("outcome", [NotificationOutcome.FAILED, NotificationOutcome.DUPLICATE])
    def test_non_completed_outcomes_acknowledged_without_notification(
        self,
        client: TestClient,
        webhook_service: MagicMock,
        notifier: RecordingNotifier,
        outcome: NotificationOutcome,
    ):
        webhook_service.process.return_value = WebhookResult(outcome=outcome)

        response = client.post("/api/payments/webhook", content=WEBHOOK_BODY, headers=FORM_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"success": True, "status": outcome.value}
        assert notifier.sent == []

    def test_malformed_body(self, client: TestClient, webhook_service: MagicMock):
        response = client.post(
            "/api/payments/webhook", content=b"orderId=1&amount=9900", headers=FORM_HEADERS
        )

        assert response.status_code == 400
        webhook_service.process.assert_not_awaited()

    def test_unknown_session(self, client: TestClient, webhook_service: MagicMock):
        webhook_service.process.side_effect = PaymentNotFoundError("abc-1")

        response = client.post("/api/payments/webhook", content=WEBHOOK_BODY, headers=FORM_HEADERS)

        assert response.status_code == 404

    def test_inconclusive_verification_is_not_acknowledged(
        self, client: TestClient, webhook_service: MagicMock
    ):
        webhook_service.process.side_effect = GatewayError("timed out")

        response = client.post("/api/payments/webhook", content=WEBHOOK_BODY, headers=FORM_HEADERS)

        assert response.status_code == 503

    def test_persistence_failure(self, client: TestClient, webhook_service: MagicMock):
        webhook_service.process.side_effect = PersistenceError("down")

        response = client.post("/api/payments/webhook", content=WEBHOOK_BODY, headers=FORM_HEADERS)

        assert response.status_code == 500

    def test_bad_signature_rejected_before_processing(
        self,
        client: TestClient,
        webhook_service: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(settings, "webhook_signature_secret", "whsec")

        response = client.post(
            "/api/payments/webhook",
            content=WEBHOOK_BODY,
            headers={**FORM_HEADERS, "X-Webhook-Signature": "sha256=" + "0" * 64},
        )

        assert response.status_code == 401
        webhook_service.process.assert_not_awaited()

    def test_valid_signature_accepted(
        self,
        client: TestClient,
        webhook_service: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(settings, "webhook_signature_secret", "whsec")
        webhook_service.process.return_value = WebhookResult(outcome=NotificationOutcome.DUPLICATE)

        response = client.post(
            "/api/payments/webhook",
            content=WEBHOOK_BODY,
            headers={**FORM_HEADERS, "X-Webhook-Signature": webhook_signature(WEBHOOK_BODY, "whsec")},
        )

        assert response.status_code == 200

    def test_notifier_failure_does_not_change_response(
        self,
        client: TestClient,
        webhook_service: MagicMock,
        subscriber_data: SubscriberData,
    ):
        failing = MagicMock()
        failing.send_activation_confirmation = AsyncMock(return_value=False)
        app.dependency_overrides[get_notifier] = lambda: failing
        webhook_service.process.return_value = WebhookResult(
            outcome=NotificationOutcome.COMPLETED, subscriber=subscriber_data
        )

        response = client.post("/api/payments/webhook", content=WEBHOOK_BODY, headers=FORM_HEADERS)

        assert response.status_code == 200
        assert response.json()["status"] == "completed"


class TestPaymentStatus:
    """Tests for GET /api/payments/{payment_id}."""

    def test_own_payment(
        self,
        client: TestClient,
        payment_store: MagicMock,
        principal: Principal,
        intent_factory,
    ):
        intent = intent_factory(principal.subscriber_id)
        payment_store.get_by_id.return_value = intent

        response = client.get(f"/api/payments/{intent.payment_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == PaymentStatus.INITIALIZED.value
        assert body["amount_minor"] == 9900
        assert body["completed_at"] is None

    def test_other_subscribers_payment_is_hidden(
        self, client: TestClient, payment_store: MagicMock, intent_factory
    ):
        intent = intent_factory(uuid4())
        payment_store.get_by_id.return_value = intent

        response = client.get(f"/api/payments/{intent.payment_id}")

        assert response.status_code == 404

    def test_missing_payment(self, client: TestClient):
        response = client.get(f"/api/payments/{uuid4()}")

        assert response.status_code == 404

    def test_invalid_payment_id(self, client: TestClient):
        response = client.get("/api/payments/not-a-uuid")

        assert response.status_code == 422


class TestSubscription:
    """Tests for GET /api/subscription."""

    def test_active_subscription(
        self,
        client: TestClient,
        payment_store: MagicMock,
        subscriber_id: UUID,
    ):
        payment_store.get_subscriber.return_value = SubscriberData(
            subscriber_id=subscriber_id,
            email="jan.kowalski@example.com",
            name=None,
            plan=None,
            status=SubscriptionStatus.ACTIVE,
            period_end_date=datetime(2099, 1, 1, tzinfo=UTC),
        )

        response = client.get("/api/subscription")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "active"
        assert body["is_active"] is True
        assert body["period_end_date"].startswith("2099-01-01")

    def test_trial_is_not_active(
        self, client: TestClient, payment_store: MagicMock, subscriber_id: UUID
    ):
        payment_store.get_subscriber.return_value = SubscriberData(
            subscriber_id=subscriber_id,
            email="jan.kowalski@example.com",
            name=None,
            plan=None,
            status=SubscriptionStatus.TRIAL,
            period_end_date=None,
        )

        response = client.get("/api/subscription")

        assert response.json()["is_active"] is False

    def test_unknown_subscriber(self, client: TestClient):
        response = client.get("/api/subscription")

        assert response.status_code == 401


class TestServiceEndpoints:
    """Tests for root and metrics endpoints."""

    def test_root(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == settings.api_title

    def test_metrics(self, client: TestClient):
        client.get("/")
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "paygate_http_requests_total" in response.text

    def test_health_connected(self, client: TestClient, db_session: AsyncMock):
        app.dependency_overrides[get_db] = lambda: db_session

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    def test_health_disconnected(self, client: TestClient, db_session: AsyncMock):
        db_session.execute = AsyncMock(side_effect=ConnectionRefusedError("db down"))
        app.dependency_overrides[get_db] = lambda: db_session

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["detail"]["database"] == "disconnected"
