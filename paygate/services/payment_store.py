"""
Payment Store - persisted payment intents and their conditional state transitions.

Every transition is a single UPDATE ... WHERE status IN (...). Two writers racing
on the same intent cannot both succeed; the loser observes rowcount == 0.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from paygate.db.models import Payment, Subscriber, utc_now
from paygate.exceptions import PaymentNotFoundError, PersistenceError
from paygate.models.api import (
    NON_TERMINAL_STATUSES,
    BillingPeriod,
    PaymentStatus,
    PlanType,
    SubscriptionStatus,
)
from paygate.models.domain import CURRENCY_PLN, PaymentIntentData, SubscriberData

logger = get_logger(__name__)


class TransitionResult(str, Enum):
    """Outcome of a conditional status transition."""

    APPLIED = "applied"
    ALREADY_TERMINAL = "already_terminal"


def _to_intent_data(payment: Payment) -> PaymentIntentData:
    return PaymentIntentData(
        payment_id=payment.id,
        subscriber_id=payment.subscriber_id,
        amount_minor=payment.amount_minor,
        currency=payment.currency,
        plan_type=PlanType(payment.plan_type),
        billing_period=BillingPeriod(payment.billing_period),
        session_id=payment.p24_session_id,
        status=PaymentStatus(payment.status),
        token=payment.p24_token,
        order_id=payment.p24_order_id,
        failure_reason=payment.failure_reason,
        created_at=payment.created_at,
        completed_at=payment.completed_at,
    )


def _to_subscriber_data(subscriber: Subscriber) -> SubscriberData:
    return SubscriberData(
        subscriber_id=subscriber.id,
        email=subscriber.email,
        name=subscriber.name,
        plan=PlanType(subscriber.subscription_plan) if subscriber.subscription_plan else None,
        status=SubscriptionStatus(subscriber.subscription_status),
        period_end_date=subscriber.subscription_end_date,
    )


class PaymentStore:
    """
    Payment intent store.

    Sole source of truth for idempotency: the webhook handler never decides
    a transition from a value it read earlier, only from the UPDATE result.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payment store with database session."""
        self.session = session

    async def create_intent(
        self,
        subscriber_id: UUID,
        plan: PlanType,
        period: BillingPeriod,
        amount_minor: int,
        session_id: str,
    ) -> PaymentIntentData:
        """
        Persist a new intent in pending status.

        Raises:
            PersistenceError: Insert failed (including a session id collision)
        """
        payment = Payment(
            subscriber_id=subscriber_id,
            amount_minor=amount_minor,
            currency=CURRENCY_PLN,
            plan_type=plan,
            billing_period=period,
            status=PaymentStatus.PENDING,
            p24_session_id=session_id,
        )
        self.session.add(payment)

        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            logger.error("payment_intent_insert_conflict", session_id=session_id, error=str(exc))
            raise PersistenceError(f"Payment intent could not be created: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("payment_intent_insert_failed", session_id=session_id, error=str(exc))
            raise PersistenceError("Payment intent could not be created") from exc

        logger.info(
            "payment_intent_created",
            payment_id=str(payment.id),
            session_id=session_id,
            amount_minor=amount_minor,
            plan=plan.value,
            period=period.value,
        )
        return _to_intent_data(payment)

    async def get_by_session_id(self, session_id: str) -> PaymentIntentData | None:
        """Find an intent by its generated P24 session id."""
        stmt = (
            select(Payment)
            .where(Payment.p24_session_id == session_id)
            .execution_options(populate_existing=True)
        )
        payment = await self._scalar(stmt)
        return _to_intent_data(payment) if payment else None

    async def get_by_id(self, payment_id: UUID) -> PaymentIntentData | None:
        """Find an intent by primary key."""
        stmt = (
            select(Payment)
            .where(Payment.id == payment_id)
            .execution_options(populate_existing=True)
        )
        payment = await self._scalar(stmt)
        return _to_intent_data(payment) if payment else None

    async def get_subscriber(self, subscriber_id: UUID) -> SubscriberData | None:
        """Find the subscriber that owns intents and subscription state."""
        stmt = (
            select(Subscriber)
            .where(Subscriber.id == subscriber_id)
            .execution_options(populate_existing=True)
        )
        subscriber = await self._scalar(stmt)
        return _to_subscriber_data(subscriber) if subscriber else None

    async def mark_initialized(self, payment_id: UUID, token: str) -> TransitionResult:
        """Record the gateway token: pending -> initialized."""
        return await self._apply(
            payment_id,
            (PaymentStatus.PENDING,),
            {"status": PaymentStatus.INITIALIZED, "p24_token": token},
        )

    async def mark_failed(
        self, payment_id: UUID, reason: str, order_id: str | None = None
    ) -> TransitionResult:
        """Terminal failure: {pending, initialized} -> failed."""
        values: dict[str, object] = {
            "status": PaymentStatus.FAILED,
            "failure_reason": reason[:255],
        }
        if order_id is not None:
            values["p24_order_id"] = order_id
        return await self._apply(payment_id, NON_TERMINAL_STATUSES, values)

    async def complete_and_activate(
        self,
        payment_id: UUID,
        subscriber_id: UUID,
        order_id: str,
        completed_at: datetime,
        plan: PlanType,
        period_end: datetime,
    ) -> TransitionResult:
        """
        Complete the intent and activate the subscription in one transaction.

        {pending, initialized} -> completed, then subscriber status/plan/period
        end. Either both rows change or neither does.

        Raises:
            PersistenceError: Subscriber missing or the database failed
        """
        try:
            applied = await self._transition(
                payment_id,
                NON_TERMINAL_STATUSES,
                {
                    "status": PaymentStatus.COMPLETED,
                    "p24_order_id": order_id,
                    "completed_at": completed_at,
                },
            )
            if not applied:
                await self.session.rollback()
                return await self._resolve_lost_race(payment_id)

            subscriber_stmt = (
                update(Subscriber)
                .where(Subscriber.id == subscriber_id)
                .values(
                    subscription_status=SubscriptionStatus.ACTIVE,
                    subscription_plan=plan,
                    subscription_end_date=period_end,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            subscriber_result = await self.session.execute(subscriber_stmt)
            if subscriber_result.rowcount != 1:
                await self.session.rollback()
                raise PersistenceError(f"Subscriber {subscriber_id} missing for activation")

            await self.session.commit()

        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("payment_completion_failed", payment_id=str(payment_id), error=str(exc))
            raise PersistenceError("Payment completion could not be written") from exc

        logger.info(
            "subscription_activated",
            payment_id=str(payment_id),
            subscriber_id=str(subscriber_id),
            plan=plan.value,
            period_end=period_end.isoformat(),
        )
        return TransitionResult.APPLIED

    async def _apply(
        self,
        payment_id: UUID,
        from_statuses: tuple[PaymentStatus, ...],
        values: dict[str, object],
    ) -> TransitionResult:
        try:
            applied = await self._transition(payment_id, from_statuses, values)
            if applied:
                await self.session.commit()
                logger.info(
                    "payment_status_changed",
                    payment_id=str(payment_id),
                    status=PaymentStatus(values["status"]).value,
                )
                return TransitionResult.APPLIED
            await self.session.rollback()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("payment_transition_failed", payment_id=str(payment_id), error=str(exc))
            raise PersistenceError("Payment status could not be written") from exc

        return await self._resolve_lost_race(payment_id)

    async def _transition(
        self,
        payment_id: UUID,
        from_statuses: tuple[PaymentStatus, ...],
        values: dict[str, object],
    ) -> bool:
        """Compare-and-swap on status. True when this writer won."""
        stmt = (
            update(Payment)
            .where(Payment.id == payment_id, Payment.status.in_(from_statuses))
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount == 1)

    async def _resolve_lost_race(self, payment_id: UUID) -> TransitionResult:
        """A conditional update matched nothing; find out why."""
        current = await self.get_by_id(payment_id)
        if current is None:
            raise PaymentNotFoundError(str(payment_id))
        if current.is_terminal:
            logger.info(
                "payment_transition_already_terminal",
                payment_id=str(payment_id),
                status=current.status.value,
            )
            return TransitionResult.ALREADY_TERMINAL
        raise PersistenceError(
            f"Payment {payment_id} transition lost a race (status={current.status.value})"
        )

    async def _scalar(self, stmt):  # type: ignore[no-untyped-def]
        try:
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("payment_store_read_failed", error=str(exc))
            raise PersistenceError("Payment store unavailable") from exc
