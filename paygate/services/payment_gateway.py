"""
Payment Gateway Protocol - the two remote operations checkout and webhook rely on.

NO DICTIONARIES - All data uses strongly typed models.
"""

from typing import Protocol

from paygate.models.domain import (
    CURRENCY_PLN,
    RegistrationResult,
    TransactionRegistration,
    VerificationResult,
)


class PaymentGateway(Protocol):
    """
    Payment gateway protocol.

    Implemented by Przelewy24Client; tests substitute a fake gateway.
    """

    async def register(self, registration: TransactionRegistration) -> RegistrationResult:
        """
        Register a transaction and obtain the customer redirect.

        Args:
            registration: Signed-payload inputs for one checkout

        Returns:
            Gateway token and the redirect URL built from it

        Raises:
            GatewayError: Transport failure, non-success status, or no token in the response
        """
        ...

    async def verify(
        self,
        session_id: str,
        amount_minor: int,
        order_id: int,
        currency: str = CURRENCY_PLN,
    ) -> VerificationResult:
        """
        Ask the gateway to confirm a settlement.

        Args:
            session_id: Our correlation key for the checkout
            amount_minor: Amount reported in the notification
            order_id: Gateway order id reported in the notification
            currency: Currency reported in the notification

        Returns:
            VerificationResult with verified=False only when the gateway answered
            definitively

        Raises:
            GatewayError: The settlement could not be confirmed either way
        """
        ...
