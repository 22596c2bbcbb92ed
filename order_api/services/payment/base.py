"""
Payment Gateway Abstract Base Class

Defines the interface contract for all payment gateway implementations.
Both MockPaymentService and StripePaymentService implement these methods,
so the order service behaves identically whichever one is active.

Design Pattern: Strategy Pattern
    - Allows runtime switching between payment providers
    - Facilitates testing with the mock implementation
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


def to_minor_units(amount: float) -> int:
    """
    Convert a decimal currency amount to the gateway's minor units.

    Gateways expect the smallest currency unit (cents for USD).

    Example:
        >>> to_minor_units(29.99)
        2999
    """
    return int(round(amount * 100))


@dataclass
class PaymentIntentResult:
    """
    Standardized result from payment intent creation.

    Attributes:
        success: Whether the intent was created
        payment_intent_id: Gateway identifier (Stripe format: pi_xxx)
        client_secret: Secret the browser uses to confirm the payment
        amount: Amount in minor units
        currency: Currency code (e.g., "usd")
        error_message: Error description if creation failed
        error_code: Machine-readable error code
        response_time_ms: Time taken by the gateway
    """
    success: bool
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    amount: Optional[int] = None
    currency: str = "usd"
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0


class BasePaymentService(ABC):
    """
    Abstract base class for payment gateways.

    Example:
        >>> service = get_payment_service()  # Returns Mock or Stripe
        >>> result = await service.create_payment_intent(
        ...     amount=2999,
        ...     currency="usd",
        ...     metadata={"orderId": "42", "userId": "7"},
        ... )
        >>> if result.success:
        ...     print(result.client_secret)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the payment provider (e.g., "mock", "stripe")."""
        pass

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: int,
        currency: str = "usd",
        metadata: Optional[dict] = None,
    ) -> PaymentIntentResult:
        """
        Create a payment intent for client-side confirmation.

        Args:
            amount: Amount in minor units (cents)
            currency: Three-letter currency code
            metadata: Key-value data attached to the intent

        Returns:
            PaymentIntentResult: Contains client_secret for the frontend
        """
        pass

    @abstractmethod
    async def verify_webhook(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> Optional[dict]:
        """
        Verify and parse a webhook from the payment provider.

        Returns:
            dict: Parsed event if valid, None if invalid
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify connectivity to the payment provider."""
        pass
