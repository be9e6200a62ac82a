"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from paygate.models.api import (
    BillingPeriod,
    NotificationOutcome,
    PaymentStatus,
    PlanType,
    SubscriptionStatus,
)

CURRENCY_PLN = "PLN"


@dataclass(frozen=True)
class Principal:
    """Authenticated subscriber, produced by the session collaborator."""

    subscriber_id: UUID
    email: str
    name: str | None = None

    def __post_init__(self) -> None:
        """Validate principal fields."""
        if not self.email:
            raise ValueError("email cannot be empty")

    @property
    def display_name(self) -> str:
        return self.name or self.email


@dataclass(frozen=True)
class PaymentIntentData:
    """Immutable snapshot of a persisted payment intent."""

    payment_id: UUID
    subscriber_id: UUID
    amount_minor: int
    currency: str
    plan_type: PlanType
    billing_period: BillingPeriod
    session_id: str
    status: PaymentStatus
    token: str | None
    order_id: str | None
    failure_reason: str | None
    created_at: datetime
    completed_at: datetime | None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class SubscriberData:
    """Immutable snapshot of a subscriber's billing state."""

    subscriber_id: UUID
    email: str
    name: str | None
    plan: PlanType | None
    status: SubscriptionStatus
    period_end_date: datetime | None

    def is_active(self, now: datetime | None = None) -> bool:
        """Active status with a period end still in the future."""
        if self.status != SubscriptionStatus.ACTIVE or self.period_end_date is None:
            return False
        now = now or datetime.now(UTC)
        end = self.period_end_date
        if end.tzinfo is None:
            end = end.replace(tzinfo=UTC)
        return end > now


@dataclass(frozen=True)
class TransactionRegistration:
    """Everything the gateway needs to register one checkout."""

    session_id: str
    amount_minor: int
    currency: str
    description: str
    email: str
    client: str
    url_return: str
    url_status: str

    def __post_init__(self) -> None:
        """Validate registration constraints."""
        if not self.session_id:
            raise ValueError("session_id cannot be empty")
        if self.amount_minor <= 0:
            raise ValueError(f"Amount must be positive: {self.amount_minor}")
        if len(self.currency) != 3:
            raise ValueError(f"Invalid currency code: {self.currency}")


@dataclass(frozen=True)
class RegistrationResult:
    """Token and redirect URL returned by a successful registration."""

    token: str
    redirect_url: str


@dataclass(frozen=True)
class VerificationResult:
    """Definitive gateway answer for a settlement."""

    verified: bool
    gateway_status: str | None = None


@dataclass(frozen=True)
class SettlementNotification:
    """Correlation fields of an inbound settlement notification."""

    session_id: str
    order_id: int
    amount_minor: int
    currency: str

    def __post_init__(self) -> None:
        """Validate notification fields."""
        if not self.session_id:
            raise ValueError("session_id cannot be empty")
        if self.order_id <= 0:
            raise ValueError(f"order_id must be positive: {self.order_id}")
        if self.amount_minor <= 0:
            raise ValueError(f"amount must be positive: {self.amount_minor}")
        if len(self.currency) != 3:
            raise ValueError(f"Invalid currency code: {self.currency}")


@dataclass(frozen=True)
class CheckoutResult:
    """Outcome of a successful checkout creation."""

    payment_id: UUID
    redirect_url: str
    session_id: str


@dataclass(frozen=True)
class WebhookResult:
    """Outcome of one settlement notification and the subscriber it activated, if any."""

    outcome: NotificationOutcome
    subscriber: SubscriberData | None = None
