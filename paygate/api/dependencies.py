"""
FastAPI Dependencies - Authentication and service wiring.

NO DICTIONARIES - All dependencies return typed objects.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from paygate.config import settings
from paygate.db.session import get_db
from paygate.exceptions import AuthenticationError
from paygate.models.domain import Principal
from paygate.services.checkout import CheckoutService
from paygate.services.notifications import ConfirmationNotifier
from paygate.services.payment_gateway import PaymentGateway
from paygate.services.payment_store import PaymentStore
from paygate.services.session_tokens import SessionTokenService
from paygate.services.webhook import WebhookService

# Bearer token scheme for session JWTs
bearer_scheme = HTTPBearer(auto_error=False)


def get_session_tokens() -> SessionTokenService:
    """Session token decoder built from settings."""
    return SessionTokenService(settings.session_jwt_secret, settings.session_jwt_algorithm)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: SessionTokenService = Depends(get_session_tokens),
) -> Principal:
    """
    FastAPI dependency resolving the authenticated subscriber.

    Accepts: Authorization: Bearer {session_jwt}

    Raises:
        HTTPException 401 if no token or invalid token
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return tokens.decode(credentials.credentials)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized. Please log in.",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def get_gateway(request: Request) -> PaymentGateway:
    """Gateway client constructed once at startup."""
    gateway: PaymentGateway = request.app.state.gateway
    return gateway


def get_notifier(request: Request) -> ConfirmationNotifier:
    """Confirmation notifier constructed once at startup."""
    notifier: ConfirmationNotifier = request.app.state.notifier
    return notifier


def get_payment_store(db: AsyncSession = Depends(get_db)) -> PaymentStore:
    return PaymentStore(db)


def get_checkout_service(
    store: PaymentStore = Depends(get_payment_store),
    gateway: PaymentGateway = Depends(get_gateway),
) -> CheckoutService:
    return CheckoutService(store, gateway, settings)


def get_webhook_service(
    store: PaymentStore = Depends(get_payment_store),
    gateway: PaymentGateway = Depends(get_gateway),
) -> WebhookService:
    return WebhookService(store, gateway)
