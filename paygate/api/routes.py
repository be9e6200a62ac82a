"""
API Routes - FastAPI endpoints for checkout, settlement and subscription state.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

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
    WebhookSignatureError,
)
from paygate.models.api import (
    CreatePaymentRequest,
    CreatePaymentResponse,
    HealthResponse,
    PaymentStatusResponse,
    SubscriptionResponse,
    WebhookAckResponse,
)
from paygate.models.domain import Principal
from paygate.observability.metrics import metrics
from paygate.services.checkout import CheckoutService
from paygate.services.notifications import ConfirmationNotifier
from paygate.services.payment_store import PaymentStore
from paygate.services.signer import verify_webhook_signature
from paygate.services.webhook import WebhookService, parse_notification

logger = get_logger(__name__)

router = APIRouter()

WEBHOOK_SIGNATURE_HEADER = "X-Webhook-Signature"


def _check_signature(body: bytes, signature: str | None) -> None:
    """Secondary sha256= signature, enforced only when both header and secret are present."""
    secret = settings.webhook_signature_secret
    if signature and secret and not verify_webhook_signature(body, signature, secret):
        raise WebhookSignatureError()


@router.post(
    "/api/payments/create",
    response_model=CreatePaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_payment(
    request: CreatePaymentRequest,
    principal: Principal = Depends(get_current_principal),
    service: CheckoutService = Depends(get_checkout_service),
) -> CreatePaymentResponse:
    """
    Start a checkout for the authenticated subscriber.

    Persists a pending intent, registers it with Przelewy24 and returns the
    redirect URL the browser must follow.
    """
    try:
        result = await service.create_checkout(principal, request.plan, request.period)

        return CreatePaymentResponse(
            payment_id=result.payment_id,
            redirect_url=result.redirect_url,
            session_id=result.session_id,
        )

    except PaymentValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.message,
        ) from exc
    except SubscriberNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized. Please log in.",
        ) from exc
    except GatewayError as exc:
        metrics.record_error("GatewayError", "create_payment")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Payment provider unavailable",
        ) from exc
    except PersistenceError as exc:
        metrics.record_error("PersistenceError", "create_payment")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error occurred",
        ) from exc


@router.post("/api/payments/webhook", response_model=WebhookAckResponse)
async def payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: WebhookService = Depends(get_webhook_service),
    notifier: ConfirmationNotifier = Depends(get_notifier),
) -> WebhookAckResponse:
    """
    Przelewy24 settlement notification (urlStatus).

    Acknowledged with 200 once the notification is correlated to a known
    intent, whatever the business outcome. 503 forces redelivery when the
    gateway could not confirm the settlement.
    """
    body = await request.body()

    try:
        _check_signature(body, request.headers.get(WEBHOOK_SIGNATURE_HEADER))
        notification = parse_notification(body)
        result = await service.process(notification)

    except WebhookSignatureError as exc:
        logger.warning("webhook_signature_rejected")
        metrics.record_webhook("rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        ) from exc
    except PaymentValidationError as exc:
        logger.warning("webhook_malformed", error=exc.message)
        metrics.record_webhook("rejected")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.message,
        ) from exc
    except PaymentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment not found",
        ) from exc
    except GatewayError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Verification unavailable",
        ) from exc
    except PersistenceError as exc:
        logger.error("webhook_persistence_failed", error=exc.message)
        metrics.record_error("PersistenceError", "payment_webhook")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database update failed",
        ) from exc

    if result.subscriber is not None:
        background_tasks.add_task(notifier.send_activation_confirmation, result.subscriber)

    return WebhookAckResponse(status=result.outcome)


@router.get("/api/payments/{payment_id}", response_model=PaymentStatusResponse)
async def get_payment_status(
    payment_id: UUID,
    principal: Principal = Depends(get_current_principal),
    store: PaymentStore = Depends(get_payment_store),
) -> PaymentStatusResponse:
    """Status of one of the caller's payment intents (polled after the return redirect)."""
    try:
        intent = await store.get_by_id(payment_id)
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error occurred",
        ) from exc

    # Another subscriber's intent is reported as missing
    if intent is None or intent.subscriber_id != principal.subscriber_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment not found",
        )

    return PaymentStatusResponse(
        payment_id=intent.payment_id,
        session_id=intent.session_id,
        status=intent.status,
        plan_type=intent.plan_type,
        billing_period=intent.billing_period,
        amount_minor=intent.amount_minor,
        currency=intent.currency,
        created_at=intent.created_at.isoformat(),
        completed_at=intent.completed_at.isoformat() if intent.completed_at else None,
    )


@router.get("/api/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    principal: Principal = Depends(get_current_principal),
    store: PaymentStore = Depends(get_payment_store),
) -> SubscriptionResponse:
    """The caller's current plan, status and period end."""
    try:
        subscriber = await store.get_subscriber(principal.subscriber_id)
    except PersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error occurred",
        ) from exc

    if subscriber is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized. Please log in.",
        )

    return SubscriptionResponse(
        subscriber_id=subscriber.subscriber_id,
        plan=subscriber.plan,
        status=subscriber.status,
        period_end_date=(
            subscriber.period_end_date.isoformat() if subscriber.period_end_date else None
        ),
        is_active=subscriber.is_active(),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))

        return HealthResponse(
            status="healthy",
            database="connected",
            timestamp=datetime.now(UTC).isoformat(),
        )

    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(exc),
                "timestamp": datetime.now(UTC).isoformat(),
            },
        ) from exc
