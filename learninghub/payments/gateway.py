"""Stripe payment gateway.

Stripe's client is synchronous, so calls run in a worker thread.
"""

import asyncio
from dataclasses import dataclass, field

import stripe
import structlog


logger = structlog.get_logger(__name__)


class PaymentGatewayError(Exception):
    """The payment processor rejected a call or could not be reached."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PaymentIntentNotFoundError(PaymentGatewayError):
    def __init__(self, intent_id: str):
        super().__init__(f"Unknown payment intent: {intent_id}")


@dataclass(frozen=True)
class PaymentIntentInfo:
    id: str
    status: str
    amount: int
    currency: str
    client_secret: str | None = None
    payment_method_type: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @classmethod
    def from_stripe(cls, intent: "stripe.PaymentIntent") -> "PaymentIntentInfo":
        method_types = intent.get("payment_method_types") or []
        return cls(
            id=intent["id"],
            status=intent["status"],
            amount=intent["amount"],
            currency=intent["currency"],
            client_secret=intent.get("client_secret"),
            payment_method_type=method_types[0] if method_types else None,
            metadata=dict(intent.get("metadata") or {}),
        )


class StripeGateway:
    def __init__(self, secret_key: str):
        self.secret_key = secret_key

    async def create_intent(
        self, amount_minor_units: int, currency: str, metadata: dict[str, str]
    ) -> PaymentIntentInfo:
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=self.secret_key,
                amount=amount_minor_units,
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.warning("stripe_create_intent_failed", error=str(e))
            raise PaymentGatewayError("Failed to create payment intent") from e

        logger.info(
            "stripe_intent_created", intent_id=intent["id"], amount=amount_minor_units
        )
        return PaymentIntentInfo.from_stripe(intent)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentInfo:
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.retrieve, intent_id, api_key=self.secret_key
            )
        except stripe.InvalidRequestError as e:
            raise PaymentIntentNotFoundError(intent_id) from e
        except stripe.StripeError as e:
            logger.warning("stripe_retrieve_intent_failed", intent_id=intent_id, error=str(e))
            raise PaymentGatewayError("Failed to retrieve payment intent") from e
        return PaymentIntentInfo.from_stripe(intent)
