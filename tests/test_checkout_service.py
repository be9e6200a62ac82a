"""
Tests for CheckoutService.

Runs against the in-memory store and a fake gateway.
"""

from uuid import UUID, uuid4

import pytest

from paygate.config import settings
from paygate.exceptions import (
    GatewayError,
    PaymentValidationError,
    PersistenceError,
    SubscriberNotFoundError,
)
from paygate.models.api import BillingPeriod, PaymentStatus, PlanType
from paygate.models.domain import Principal
from paygate.services.checkout import CheckoutService
from paygate.services.payment_store import PaymentStore


@pytest.fixture
def seeded_principal(seeded_subscriber_id: UUID) -> Principal:
    return Principal(
        subscriber_id=seeded_subscriber_id,
        email="jan.kowalski@example.com",
        name="Jan Kowalski",
    )


@pytest.fixture
def checkout(store: PaymentStore, fake_gateway) -> CheckoutService:
    return CheckoutService(store, fake_gateway, settings)


class TestCreateCheckout:
    """Tests for create_checkout."""

    async def test_starter_monthly_initializes_intent(
        self,
        checkout: CheckoutService,
        store: PaymentStore,
        fake_gateway,
        seeded_principal: Principal,
    ):
        """Starter monthly registers 9900 grosze and leaves the intent initialized."""
        result = await checkout.create_checkout(seeded_principal, "starter", "monthly")

        assert result.redirect_url == "https://sandbox.przelewy24.pl/trnRequest/P24-TOKEN-0001"

        intent = await store.get_by_id(result.payment_id)
        assert intent is not None
        assert intent.status == PaymentStatus.INITIALIZED
        assert intent.amount_minor == 9900
        assert intent.plan_type == PlanType.STARTER
        assert intent.billing_period == BillingPeriod.MONTHLY
        assert intent.token == "P24-TOKEN-0001"
        assert intent.session_id == result.session_id

    async def test_registration_payload(
        self,
        checkout: CheckoutService,
        fake_gateway,
        seeded_principal: Principal,
    ):
        result = await checkout.create_checkout(seeded_principal, "professional", "yearly")

        registration = fake_gateway.registrations[0]
        assert registration.session_id == result.session_id
        assert registration.amount_minor == 199000
        assert registration.currency == "PLN"
        assert registration.email == "jan.kowalski@example.com"
        assert registration.client == "Jan Kowalski"
        assert registration.url_return == "https://app.example.com/dashboard?payment=success"
        assert registration.url_status == "https://app.example.com/api/payments/webhook"
        assert "professional yearly" in registration.description

    async def test_session_ids_are_unique(
        self, checkout: CheckoutService, seeded_principal: Principal
    ):
        first = await checkout.create_checkout(seeded_principal, "starter", "monthly")
        second = await checkout.create_checkout(seeded_principal, "starter", "monthly")

        assert first.session_id != second.session_id
        assert first.payment_id != second.payment_id
        UUID(first.session_id)

    async def test_invalid_selection_persists_nothing(
        self,
        checkout: CheckoutService,
        fake_gateway,
        seeded_principal: Principal,
    ):
        with pytest.raises(PaymentValidationError):
            await checkout.create_checkout(seeded_principal, "enterprise", "monthly")

        assert fake_gateway.registrations == []

    async def test_unknown_subscriber(self, checkout: CheckoutService, fake_gateway):
        stranger = Principal(subscriber_id=uuid4(), email="nobody@example.com")

        with pytest.raises(SubscriberNotFoundError):
            await checkout.create_checkout(stranger, "starter", "monthly")

        assert fake_gateway.registrations == []

    async def test_gateway_failure_marks_intent_failed(
        self,
        checkout: CheckoutService,
        store: PaymentStore,
        fake_gateway,
        seeded_principal: Principal,
    ):
        """Every registration outcome ends in initialized or failed, never pending."""
        fake_gateway.register_error = GatewayError("Przelewy24 register timed out")

        with pytest.raises(GatewayError):
            await checkout.create_checkout(seeded_principal, "starter", "monthly")

        session_id = fake_gateway.registrations[0].session_id
        intent = await store.get_by_session_id(session_id)
        assert intent is not None
        assert intent.status == PaymentStatus.FAILED
        assert intent.failure_reason == "registration: Przelewy24 register timed out"

    async def test_token_write_failure_marks_intent_failed(
        self,
        checkout: CheckoutService,
        store: PaymentStore,
        fake_gateway,
        seeded_principal: Principal,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """A registered intent whose token cannot be recorded does not stay pending."""

        async def unavailable(payment_id: UUID, token: str) -> None:
            raise PersistenceError("Payment status could not be written")

        monkeypatch.setattr(store, "mark_initialized", unavailable)

        with pytest.raises(PersistenceError):
            await checkout.create_checkout(seeded_principal, "starter", "monthly")

        intent = await store.get_by_session_id(fake_gateway.registrations[0].session_id)
        assert intent is not None
        assert intent.status == PaymentStatus.FAILED
        assert intent.failure_reason == "registration: token could not be recorded"

    async def test_token_write_failure_propagates_when_store_is_down(
        self,
        checkout: CheckoutService,
        store: PaymentStore,
        seeded_principal: Principal,
        monkeypatch: pytest.MonkeyPatch,
    ):
        async def initialize_unavailable(*args: object, **kwargs: object) -> None:
            raise PersistenceError("Payment status could not be written")

        async def fail_unavailable(*args: object, **kwargs: object) -> None:
            raise PersistenceError("Payment store unavailable")

        monkeypatch.setattr(store, "mark_initialized", initialize_unavailable)
        monkeypatch.setattr(store, "mark_failed", fail_unavailable)

        with pytest.raises(PersistenceError) as exc_info:
            await checkout.create_checkout(seeded_principal, "starter", "monthly")

        # The original write failure is what the caller sees
        assert exc_info.value.message == "Payment status could not be written"

    async def test_client_falls_back_to_email(
        self,
        store: PaymentStore,
        fake_gateway,
        sqlite_session,
    ):
        from paygate.db.models import Subscriber

        subscriber_id = uuid4()
        sqlite_session.add(Subscriber(id=subscriber_id, email="anna@example.com", name=None))
        await sqlite_session.commit()

        checkout = CheckoutService(store, fake_gateway, settings)
        await checkout.create_checkout(
            Principal(subscriber_id=subscriber_id, email="anna@example.com"), "starter", "yearly"
        )

        assert fake_gateway.registrations[0].client == "anna@example.com"
