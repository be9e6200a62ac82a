"""
Checkout Service - turns a plan selection into a gateway redirect.

NO DICTIONARIES - All operations use strongly typed domain models.
"""

import uuid

from structlog import get_logger

from paygate.config import Settings
from paygate.exceptions import GatewayError, PersistenceError, SubscriberNotFoundError
from paygate.models.domain import (
    CURRENCY_PLN,
    CheckoutResult,
    Principal,
    TransactionRegistration,
)
from paygate.observability.metrics import metrics
from paygate.services.payment_gateway import PaymentGateway
from paygate.services.payment_store import PaymentStore
from paygate.services.pricing import get_price, parse_selection

logger = get_logger(__name__)


class CheckoutService:
    """Creates payment intents and registers them with the gateway."""

    def __init__(self, store: PaymentStore, gateway: PaymentGateway, settings: Settings) -> None:
        self.store = store
        self.gateway = gateway
        self.settings = settings

    async def create_checkout(self, principal: Principal, plan: str, period: str) -> CheckoutResult:
        """
        Create a payment intent and register it with the gateway.

        The intent is persisted as pending BEFORE the gateway is called, so a
        notification can never arrive for a session we do not know about.

        Raises:
            PaymentValidationError: Unknown plan or period (nothing persisted)
            SubscriberNotFoundError: Principal has no subscriber record
            GatewayError: Registration failed (intent marked failed)
            PersistenceError: Store unavailable (a registered intent is marked failed if possible)
        """
        plan_type, billing_period = parse_selection(plan, period)
        amount_minor = get_price(plan_type, billing_period)

        subscriber = await self.store.get_subscriber(principal.subscriber_id)
        if subscriber is None:
            raise SubscriberNotFoundError(principal.subscriber_id)

        session_id = str(uuid.uuid4())
        intent = await self.store.create_intent(
            subscriber_id=subscriber.subscriber_id,
            plan=plan_type,
            period=billing_period,
            amount_minor=amount_minor,
            session_id=session_id,
        )

        registration = TransactionRegistration(
            session_id=session_id,
            amount_minor=amount_minor,
            currency=CURRENCY_PLN,
            description=f"Subscription {plan_type.value} {billing_period.value}",
            email=subscriber.email,
            client=subscriber.name or principal.display_name,
            url_return=self.settings.return_url,
            url_status=self.settings.status_url,
        )

        try:
            result = await self.gateway.register(registration)
        except GatewayError as exc:
            logger.error(
                "checkout_registration_failed",
                payment_id=str(intent.payment_id),
                session_id=session_id,
                error=exc.message,
            )
            await self.store.mark_failed(intent.payment_id, f"registration: {exc.message}")
            raise

        try:
            await self.store.mark_initialized(intent.payment_id, result.token)
        except PersistenceError as exc:
            # The redirect is never handed out, so the intent cannot be paid
            logger.error(
                "checkout_initialize_write_failed",
                payment_id=str(intent.payment_id),
                session_id=session_id,
                token=result.token,
                error=exc.message,
            )
            try:
                await self.store.mark_failed(
                    intent.payment_id, "registration: token could not be recorded"
                )
            except PersistenceError as fail_exc:
                logger.error(
                    "checkout_failure_write_failed",
                    payment_id=str(intent.payment_id),
                    error=fail_exc.message,
                )
            raise

        metrics.record_payment_created(plan_type.value, billing_period.value)

        logger.info(
            "checkout_created",
            payment_id=str(intent.payment_id),
            subscriber_id=str(subscriber.subscriber_id),
            session_id=session_id,
            amount_minor=amount_minor,
        )

        return CheckoutResult(
            payment_id=intent.payment_id,
            redirect_url=result.redirect_url,
            session_id=session_id,
        )
