"""
Webhook Service - idempotent consumer of Przelewy24 settlement notifications.

NO DICTIONARIES - All operations use strongly typed domain models.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from urllib.parse import parse_qs

from structlog import get_logger

from paygate.exceptions import (
    GatewayError,
    PaymentNotFoundError,
    PaymentValidationError,
    VerificationFailedError,
)
from paygate.models.api import NotificationOutcome
from paygate.models.domain import PaymentIntentData, SettlementNotification, WebhookResult
from paygate.observability.logging import log_context
from paygate.observability.metrics import metrics
from paygate.services.payment_gateway import PaymentGateway
from paygate.services.payment_store import PaymentStore, TransitionResult
from paygate.services.pricing import compute_period_end

logger = get_logger(__name__)

# Current names first, then the legacy p24_-prefixed form
_FIELD_ALIASES: dict[str, tuple[str, str]] = {
    "session_id": ("sessionId", "p24_session_id"),
    "order_id": ("orderId", "p24_order_id"),
    "amount": ("amount", "p24_amount"),
    "currency": ("currency", "p24_currency"),
}


def _field(form: dict[str, list[str]], name: str) -> str:
    for alias in _FIELD_ALIASES[name]:
        values = form.get(alias)
        if values and values[0].strip():
            return values[0].strip()
    raise PaymentValidationError(f"Missing required field: {_FIELD_ALIASES[name][0]}")


def _int_field(form: dict[str, list[str]], name: str) -> int:
    raw = _field(form, name)
    try:
        return int(raw)
    except ValueError as exc:
        raise PaymentValidationError(f"Field {_FIELD_ALIASES[name][0]} must be an integer") from exc


def parse_notification(body: bytes) -> SettlementNotification:
    """
    Parse a URL-encoded settlement notification.

    Raises:
        PaymentValidationError: Body is not decodable or a required field is absent/invalid
    """
    try:
        form = parse_qs(body.decode("utf-8"), strict_parsing=False)
    except UnicodeDecodeError as exc:
        raise PaymentValidationError("Notification body is not valid UTF-8") from exc

    session_id = _field(form, "session_id")
    order_id = _int_field(form, "order_id")
    amount_minor = _int_field(form, "amount")
    currency = _field(form, "currency").upper()

    try:
        return SettlementNotification(
            session_id=session_id,
            order_id=order_id,
            amount_minor=amount_minor,
            currency=currency,
        )
    except ValueError as exc:
        raise PaymentValidationError(str(exc)) from exc


def _utc_now() -> datetime:
    return datetime.now(UTC)


class WebhookService:
    """
    Drives a payment intent and its subscriber through settlement.

    The store's conditional transitions decide idempotency; the terminal check
    up front only saves a gateway round-trip for obvious redeliveries.
    """

    def __init__(
        self,
        store: PaymentStore,
        gateway: PaymentGateway,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.clock = clock

    async def process(self, notification: SettlementNotification) -> WebhookResult:
        """
        Process one settlement notification.

        Returns:
            WebhookResult: completed (with activated subscriber), failed, or duplicate

        Raises:
            PaymentNotFoundError: No intent was created for this session id
            GatewayError: Verification inconclusive; the gateway must redeliver
            PersistenceError: Store unavailable
        """
        with log_context(session_id=notification.session_id, order_id=notification.order_id):
            intent = await self.store.get_by_session_id(notification.session_id)
            if intent is None:
                logger.warning("webhook_unknown_session")
                metrics.record_webhook("rejected")
                raise PaymentNotFoundError(notification.session_id)

            if intent.is_terminal:
                logger.info("webhook_duplicate_ignored", status=intent.status.value)
                metrics.record_webhook(NotificationOutcome.DUPLICATE.value)
                return WebhookResult(outcome=NotificationOutcome.DUPLICATE)

            try:
                await self._verify(intent, notification)
            except GatewayError as exc:
                logger.warning("webhook_verification_inconclusive", error=exc.message)
                metrics.record_webhook("retry")
                raise
            except VerificationFailedError as exc:
                return await self._fail(intent, notification, exc.reason)

            return await self._complete(intent, notification)

    async def _verify(
        self, intent: PaymentIntentData, notification: SettlementNotification
    ) -> None:
        """Raise VerificationFailedError unless the gateway confirms a matching settlement."""
        result = await self.gateway.verify(
            session_id=intent.session_id,
            amount_minor=notification.amount_minor,
            order_id=notification.order_id,
            currency=notification.currency,
        )
        if not result.verified:
            raise VerificationFailedError(
                intent.session_id, f"gateway status: {result.gateway_status or 'unknown'}"
            )
        if notification.amount_minor != intent.amount_minor:
            raise VerificationFailedError(
                intent.session_id,
                f"amount mismatch: notified {notification.amount_minor}, "
                f"expected {intent.amount_minor}",
            )
        if notification.currency != intent.currency:
            raise VerificationFailedError(
                intent.session_id,
                f"currency mismatch: notified {notification.currency}, expected {intent.currency}",
            )

    async def _fail(
        self,
        intent: PaymentIntentData,
        notification: SettlementNotification,
        reason: str,
    ) -> WebhookResult:
        transition = await self.store.mark_failed(
            intent.payment_id, reason, order_id=str(notification.order_id)
        )
        if transition == TransitionResult.ALREADY_TERMINAL:
            metrics.record_webhook(NotificationOutcome.DUPLICATE.value)
            return WebhookResult(outcome=NotificationOutcome.DUPLICATE)

        logger.warning("payment_verification_failed", payment_id=str(intent.payment_id), reason=reason)
        metrics.record_webhook(NotificationOutcome.FAILED.value)
        return WebhookResult(outcome=NotificationOutcome.FAILED)

    async def _complete(
        self, intent: PaymentIntentData, notification: SettlementNotification
    ) -> WebhookResult:
        now = self.clock()
        period_end = compute_period_end(now, intent.billing_period)

        transition = await self.store.complete_and_activate(
            payment_id=intent.payment_id,
            subscriber_id=intent.subscriber_id,
            order_id=str(notification.order_id),
            completed_at=now,
            plan=intent.plan_type,
            period_end=period_end,
        )
        if transition == TransitionResult.ALREADY_TERMINAL:
            logger.info("webhook_duplicate_ignored", payment_id=str(intent.payment_id))
            metrics.record_webhook(NotificationOutcome.DUPLICATE.value)
            return WebhookResult(outcome=NotificationOutcome.DUPLICATE)

        subscriber = await self.store.get_subscriber(intent.subscriber_id)

        logger.info(
            "payment_completed",
            payment_id=str(intent.payment_id),
            subscriber_id=str(intent.subscriber_id),
            plan=intent.plan_type.value,
            period_end=period_end.isoformat(),
        )
        metrics.record_webhook(NotificationOutcome.COMPLETED.value, intent.amount_minor)
        return WebhookResult(outcome=NotificationOutcome.COMPLETED, subscriber=subscriber)
