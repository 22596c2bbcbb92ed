"""
Mock Payment Gateway Implementation

Simulates Stripe-like payment intents without making real API calls.
Used in development mode (ENV_MODE=development) and in tests to:
    - Exercise the complete order flow locally
    - Develop without internet connectivity or Stripe keys

Behavior:
    - Optional simulated latency
    - Fails a configurable share of intents (simulates provider errors)
    - Generates Stripe-like IDs (pi_xxx) and client secrets
    - Webhooks are parsed without signature verification
"""

import asyncio
import json
import logging
import random
import uuid
from datetime import datetime
from typing import Optional

from order_api.services.payment.base import (
    BasePaymentService,
    PaymentIntentResult,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the payment gateway.

    Attributes:
        failure_rate: Probability of simulated intent failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds

    Example:
        >>> service = MockPaymentService(failure_rate=0.0)
        >>> result = await service.create_payment_intent(2999)
        >>> result.client_secret
        'pi_mock_..._secret_mock'
    """

    # Simulated failure reasons (mimics real Stripe error codes)
    FAILURE_REASONS = [
        ("api_connection_error", "Payment service temporarily unavailable"),
        ("rate_limit", "Too many requests to the payment service"),
        ("processing_error", "An error occurred while creating the payment."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max(min_latency, max_latency)

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={self.min_latency}-{self.max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    def _generate_payment_intent_id(self) -> str:
        """Generate a Stripe-like payment intent ID."""
        return f"pi_mock_{uuid.uuid4().hex[:24]}"

    async def _simulate_latency(self) -> float:
        """Sleep for a random latency; returns it in milliseconds."""
        if self.max_latency <= 0:
            return 0.0
        latency = random.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def create_payment_intent(
        self,
        amount: int,
        currency: str = "usd",
        metadata: Optional[dict] = None,
    ) -> PaymentIntentResult:
        """
        Simulate creating a payment intent.

        The client secret is fake and will not work with Stripe.js.
        """
        start_time = datetime.now()
        await self._simulate_latency()

        if amount <= 0:
            return PaymentIntentResult(
                success=False,
                currency=currency,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
            )

        if self._should_fail():
            error_code, error_message = random.choice(self.FAILURE_REASONS)
            logger.debug(f"Mock: Payment intent failed - {error_code}")
            return PaymentIntentResult(
                success=False,
                amount=amount,
                currency=currency,
                error_message=error_message,
                error_code=error_code,
            )

        payment_intent_id = self._generate_payment_intent_id()

        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
        logger.debug(f"Mock: Created payment intent {payment_intent_id} for {amount} {currency}")

        return PaymentIntentResult(
            success=True,
            payment_intent_id=payment_intent_id,
            client_secret=f"{payment_intent_id}_secret_mock",
            amount=amount,
            currency=currency,
            response_time_ms=elapsed_ms,
        )

    async def verify_webhook(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> Optional[dict]:
        """Parse the payload without cryptographic verification."""
        try:
            event = json.loads(payload)
        except ValueError:
            logger.warning("Mock: Invalid webhook payload")
            return None
        return event if isinstance(event, dict) else None

    async def health_check(self) -> bool:
        return True
