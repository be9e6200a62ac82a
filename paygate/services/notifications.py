"""
Confirmation Notifier - best-effort activation email through the Resend API.

Delivery is attempted once. Nothing raised here may reach the webhook response.
"""

import httpx
from structlog import get_logger

from paygate.models.domain import SubscriberData
from paygate.observability.metrics import metrics

logger = get_logger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"


class ConfirmationNotifier:
    """Sends the subscription-activated email."""

    def __init__(
        self,
        api_key: str,
        email_from: str,
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.email_from = email_from
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
        return self._http_client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def send_activation_confirmation(self, subscriber: SubscriberData) -> bool:
        """
        Send one confirmation email for an activated subscription.

        Returns:
            True when the provider accepted the message. Never raises.
        """
        if not self.enabled:
            logger.info("confirmation_email_skipped", subscriber_id=str(subscriber.subscriber_id))
            metrics.record_confirmation_email("skipped")
            return False

        try:
            response = await self.http_client.post(
                RESEND_EMAILS_URL,
                json=self._build_message(subscriber),
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            logger.error(
                "confirmation_email_failed",
                subscriber_id=str(subscriber.subscriber_id),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            metrics.record_confirmation_email("failed")
            return False
        except Exception as exc:
            logger.exception(
                "confirmation_email_failed",
                subscriber_id=str(subscriber.subscriber_id),
                error_type=type(exc).__name__,
            )
            metrics.record_confirmation_email("failed")
            return False

        if not response.is_success:
            logger.error(
                "confirmation_email_failed",
                subscriber_id=str(subscriber.subscriber_id),
                status_code=response.status_code,
            )
            metrics.record_confirmation_email("failed")
            return False

        logger.info("confirmation_email_sent", subscriber_id=str(subscriber.subscriber_id))
        metrics.record_confirmation_email("sent")
        return True

    def _build_message(self, subscriber: SubscriberData) -> dict[str, object]:
        greeting = subscriber.name or subscriber.email
        plan = subscriber.plan.value if subscriber.plan else "subscription"
        period_end = (
            subscriber.period_end_date.date().isoformat() if subscriber.period_end_date else "-"
        )
        return {
            "from": self.email_from,
            "to": [subscriber.email],
            "subject": "Your subscription is active",
            "html": (
                f"<p>Hello {greeting},</p>"
                f"<p>Your payment was received and your <strong>{plan}</strong> plan "
                f"is now active until {period_end}.</p>"
            ),
            "text": (
                f"Hello {greeting},\n\n"
                f"Your payment was received and your {plan} plan is now active "
                f"until {period_end}.\n"
            ),
        }
