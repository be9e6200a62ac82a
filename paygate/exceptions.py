"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from uuid import UUID


class PaymentError(Exception):
    """Base exception for all payment and subscription errors."""

    pass


class PaymentValidationError(PaymentError):
    """Raised for an invalid plan/period selection or a malformed notification."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Validation failed: {message}")


class AuthenticationError(PaymentError):
    """Raised when a session token or signature cannot be authenticated."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")


class WebhookSignatureError(AuthenticationError):
    """Raised when the X-Webhook-Signature header does not match the body."""

    def __init__(self, message: str = "signature mismatch") -> None:
        super().__init__(f"webhook {message}")


class NotFoundError(PaymentError):
    """Raised when a referenced record does not exist."""

    def __init__(self, resource: str, key: str) -> None:
        self.resource = resource
        self.key = key
        super().__init__(f"{resource} not found: {key}")


class PaymentNotFoundError(NotFoundError):
    """Raised when no payment intent matches a session id or payment id."""

    def __init__(self, key: str) -> None:
        super().__init__("Payment", key)


class SubscriberNotFoundError(NotFoundError):
    """Raised when the authenticated principal has no subscriber record."""

    def __init__(self, subscriber_id: UUID) -> None:
        self.subscriber_id = subscriber_id
        super().__init__("Subscriber", str(subscriber_id))


class GatewayError(PaymentError):
    """
    Raised when the gateway could not be reached or answered unexpectedly.

    This means "could not confirm", never "confirmed as failed".
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(f"Payment gateway error: {message}")


class VerificationFailedError(PaymentError):
    """Raised when a settlement is explicitly rejected or does not match the intent."""

    def __init__(self, session_id: str, reason: str) -> None:
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Verification failed for session {session_id}: {reason}")


class PersistenceError(PaymentError):
    """Raised when the payment store is unavailable or a transition cannot be resolved."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Persistence error: {message}")
