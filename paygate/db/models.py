"""
Database Models - SQLAlchemy ORM models with strict typing.

NO DICTIONARIES - All columns use Mapped[] type annotations.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Uuid,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from paygate.models.api import BillingPeriod, PaymentStatus, PlanType, SubscriptionStatus


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def _enum_column(enum_cls: type, name: str, length: int = 20) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=length,
        values_callable=lambda x: [e.value for e in x],
    )


class Subscriber(Base):
    """
    ORM model for subscribers table.

    The account record is owned by the account service; this system only
    writes the subscription_* columns.
    """

    __tablename__ = "subscribers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    subscription_plan: Mapped[PlanType | None] = mapped_column(
        _enum_column(PlanType, "plan_type"), nullable=True
    )
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        _enum_column(SubscriptionStatus, "subscription_status"),
        nullable=False,
        default=SubscriptionStatus.TRIAL,
    )
    subscription_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (Index("idx_subscribers_subscription_status", "subscription_status"),)

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Subscriber(id={self.id}, plan={self.subscription_plan}, "
            f"status={self.subscription_status}, end={self.subscription_end_date})>"
        )


class Payment(Base):
    """
    ORM model for payments table.

    One row per checkout attempt. Rows are never deleted; they are the audit
    trail of every registration and settlement.
    """

    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    subscriber_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("subscribers.id", ondelete="RESTRICT"), nullable=False
    )

    # Amount in grosze
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="PLN")

    plan_type: Mapped[PlanType] = mapped_column(_enum_column(PlanType, "plan_type"), nullable=False)
    billing_period: Mapped[BillingPeriod] = mapped_column(
        _enum_column(BillingPeriod, "billing_period"), nullable=False
    )

    status: Mapped[PaymentStatus] = mapped_column(
        _enum_column(PaymentStatus, "payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # Correlation key generated by this system, never by the gateway
    p24_session_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    # Assigned by the gateway
    p24_token: Mapped[str | None] = mapped_column(String(255), nullable=True)
    p24_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    failure_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_payment_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'initialized', 'completed', 'failed')",
            name="ck_payment_status",
        ),
        Index("idx_payments_subscriber_id", "subscriber_id"),
        Index("idx_payments_status", "status"),
        Index("idx_payments_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Payment(id={self.id}, session_id={self.p24_session_id}, "
            f"amount={self.amount_minor}, status={self.status})>"
        )
