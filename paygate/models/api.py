"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class PlanType(str, Enum):
    """Subscription plan enumeration."""

    STARTER = "starter"
    PROFESSIONAL = "professional"


class BillingPeriod(str, Enum):
    """Billing period enumeration."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


class PaymentStatus(str, Enum):
    """Payment intent lifecycle: pending -> initialized -> {completed | failed}."""

    PENDING = "pending"
    INITIALIZED = "initialized"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentStatus.COMPLETED, PaymentStatus.FAILED)


NON_TERMINAL_STATUSES = (PaymentStatus.PENDING, PaymentStatus.INITIALIZED)


class SubscriptionStatus(str, Enum):
    """Subscription status enumeration."""

    TRIAL = "trial"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class NotificationOutcome(str, Enum):
    """Result of processing one settlement notification."""

    COMPLETED = "completed"
    FAILED = "failed"
    DUPLICATE = "duplicate"


# ============================================================================
# Payment Models
# ============================================================================


class CreatePaymentRequest(BaseModel):
    """
    POST /api/payments/create request body.

    Plan and period are plain strings so an unknown selection is rejected
    by the price table with a 400, not by schema validation.
    """

    plan: str = Field(..., max_length=50)
    period: str = Field(..., max_length=50)


class CreatePaymentResponse(BaseModel):
    """POST /api/payments/create response."""

    payment_id: UUID
    redirect_url: str
    session_id: str


class PaymentStatusResponse(BaseModel):
    """GET /api/payments/{payment_id} response."""

    payment_id: UUID
    session_id: str
    status: PaymentStatus
    plan_type: PlanType
    billing_period: BillingPeriod
    amount_minor: int
    currency: str
    created_at: str
    completed_at: str | None = None


class WebhookAckResponse(BaseModel):
    """Acknowledgement returned to the gateway for a processed notification."""

    success: bool = True
    status: NotificationOutcome


# ============================================================================
# Subscription Models
# ============================================================================


class SubscriptionResponse(BaseModel):
    """GET /api/subscription response."""

    subscriber_id: UUID
    plan: PlanType | None
    status: SubscriptionStatus
    period_end_date: str | None
    is_active: bool


# ============================================================================
# Health Check Models
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: Literal["healthy", "unhealthy"]
    database: Literal["connected", "disconnected"]
    timestamp: str


class ErrorDetail(BaseModel):
    """Standard error response detail."""

    detail: str
