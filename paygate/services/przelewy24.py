"""
Przelewy24 Gateway Client.

NO DICTIONARIES - All data uses strongly typed models.
"""

import time
from typing import Any

import httpx
from structlog import get_logger

from paygate.config import GatewayConfig
from paygate.exceptions import GatewayError
from paygate.models.domain import (
    CURRENCY_PLN,
    RegistrationResult,
    TransactionRegistration,
    VerificationResult,
)
from paygate.observability.metrics import metrics
from paygate.observability.tracing import trace_operation
from paygate.services.signer import registration_digest, verification_digest

logger = get_logger(__name__)

REGISTER_PATH = "/transaction/register"
VERIFY_PATH = "/transaction/verify"


class Przelewy24Client:
    """
    Przelewy24 client implementing the PaymentGateway protocol.

    Calls are never retried here: retrying a registration could open a second
    charge for the same checkout.
    """

    def __init__(
        self,
        config: GatewayConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Przelewy24 client.

        Args:
            config: Merchant credentials and sandbox flag
            http_client: Optional pre-configured client (tests pass a MockTransport)
        """
        self.config = config
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds)
            )
        return self._http_client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def register(self, registration: TransactionRegistration) -> RegistrationResult:
        """
        Register a transaction with Przelewy24.

        Returns:
            Token and redirect URL ({host}/trnRequest/{token})

        Raises:
            GatewayError: Transport failure, non-success status, or missing token
        """
        payload = {
            "merchantId": self.config.merchant_id,
            "posId": self.config.pos_id,
            "sessionId": registration.session_id,
            "amount": registration.amount_minor,
            "currency": registration.currency,
            "description": registration.description,
            "email": registration.email,
            "client": registration.client,
            "urlReturn": registration.url_return,
            "urlStatus": registration.url_status,
            "sign": registration_digest(
                registration.session_id,
                self.config.merchant_id,
                registration.amount_minor,
                registration.currency,
                self.config.crc,
            ),
        }

        logger.info(
            "registering_p24_transaction",
            session_id=registration.session_id,
            amount_minor=registration.amount_minor,
            currency=registration.currency,
        )

        response = await self._post("register", REGISTER_PATH, payload, registration.session_id)

        if not response.is_success:
            message = self._error_message(response, "Transaction registration failed")
            logger.error(
                "p24_registration_rejected",
                session_id=registration.session_id,
                status_code=response.status_code,
                error=message,
            )
            raise GatewayError(message, status_code=response.status_code)

        body = self._parse_json(response)
        data = body.get("data")
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            message = str(body.get("error") or "Transaction registration failed")
            logger.error(
                "p24_registration_missing_token",
                session_id=registration.session_id,
                error=message,
            )
            raise GatewayError(message, status_code=response.status_code)

        redirect_url = f"{self.config.redirect_base_url}/trnRequest/{token}"

        logger.info("p24_transaction_registered", session_id=registration.session_id)

        return RegistrationResult(token=str(token), redirect_url=redirect_url)

    async def verify(
        self,
        session_id: str,
        amount_minor: int,
        order_id: int,
        currency: str = CURRENCY_PLN,
    ) -> VerificationResult:
        """
        Verify a settled transaction with Przelewy24.

        A 2xx answer carrying data.status is definitive, as is a 4xx answer
        with a JSON body (the gateway refused the verification). Auth failures,
        5xx answers and unexpected bodies raise GatewayError.
        """
        payload = {
            "merchantId": self.config.merchant_id,
            "posId": self.config.pos_id,
            "sessionId": session_id,
            "amount": amount_minor,
            "currency": currency,
            "orderId": order_id,
            "sign": verification_digest(
                session_id, order_id, amount_minor, currency, self.config.crc
            ),
        }

        logger.info(
            "verifying_p24_transaction",
            session_id=session_id,
            order_id=order_id,
            amount_minor=amount_minor,
        )

        response = await self._post("verify", VERIFY_PATH, payload, session_id)

        if response.status_code in (401, 403) or response.status_code >= 500:
            message = self._error_message(response, "Verification unavailable")
            logger.error(
                "p24_verification_unavailable",
                session_id=session_id,
                status_code=response.status_code,
                error=message,
            )
            raise GatewayError(message, status_code=response.status_code)

        body = self._parse_json(response)

        if not response.is_success:
            reason = str(body.get("error") or f"HTTP {response.status_code}")
            logger.warning(
                "p24_verification_rejected",
                session_id=session_id,
                status_code=response.status_code,
                error=reason,
            )
            return VerificationResult(verified=False, gateway_status=reason)

        data = body.get("data")
        if not isinstance(data, dict) or "status" not in data:
            logger.error("p24_verification_malformed", session_id=session_id)
            raise GatewayError(
                "Verification response missing data.status", status_code=response.status_code
            )

        gateway_status = str(data["status"])
        verified = gateway_status == "success"

        logger.info(
            "p24_transaction_verified",
            session_id=session_id,
            order_id=order_id,
            verified=verified,
            gateway_status=gateway_status,
        )

        return VerificationResult(verified=verified, gateway_status=gateway_status)

    async def _post(
        self, operation: str, path: str, payload: dict[str, Any], session_id: str
    ) -> httpx.Response:
        """POST a signed payload; transport failures become GatewayError."""
        url = f"{self.config.api_base_url}{path}"
        auth = httpx.BasicAuth(str(self.config.pos_id), self.config.api_key)
        start_time = time.time()

        with trace_operation(f"p24.{operation}", session_id=session_id) as span:
            try:
                response = await self.http_client.post(
                    url,
                    json=payload,
                    auth=auth,
                    timeout=self.config.timeout_seconds,
                )
            except httpx.TimeoutException as exc:
                metrics.record_gateway_call(operation, "error", time.time() - start_time)
                logger.error("p24_request_timeout", operation=operation, session_id=session_id)
                raise GatewayError(f"Przelewy24 {operation} timed out") from exc
            except httpx.HTTPError as exc:
                metrics.record_gateway_call(operation, "error", time.time() - start_time)
                logger.error(
                    "p24_request_failed",
                    operation=operation,
                    session_id=session_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise GatewayError(f"Przelewy24 {operation} failed: {exc}") from exc

            span.set_attribute("http.status_code", response.status_code)

        outcome = "success" if response.is_success else "rejected"
        metrics.record_gateway_call(operation, outcome, time.time() - start_time)
        return response

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayError(
                "Przelewy24 returned a non-JSON response", status_code=response.status_code
            ) from exc
        if not isinstance(body, dict):
            raise GatewayError(
                "Przelewy24 returned an unexpected response", status_code=response.status_code
            )
        return body

    @staticmethod
    def _error_message(response: httpx.Response, default: str) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"{default} (HTTP {response.status_code})"
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"{default} (HTTP {response.status_code})"
