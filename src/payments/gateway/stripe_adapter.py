"""Stripe adapter: creates and looks up payment intents with the stripe-python SDK."""

from decimal import Decimal

import stripe
import structlog

from payments.gateway.port import PaymentIntent, PaymentProvider, RemotePayment
from shared.money import to_minor_units
from shared.exceptions import PaymentProviderUnavailable, PaymentVerificationFailed

logger = structlog.get_logger(__name__)


class StripePaymentProvider(PaymentProvider):
    """Creates card PaymentIntents and reads them back, expanding the payment method for card details."""

    name = "stripe"

    def __init__(self, secret_key: str, timeout_seconds: float = 10.0, client: stripe.StripeClient | None = None) -> None:
        # Retries stay off: checkout never retries payment calls on its own
        self.client = client or stripe.StripeClient(
            secret_key,
            http_client=stripe.RequestsClient(timeout=timeout_seconds),
            max_network_retries=0,
        )

    def fetch_payment(self, payment_id: str) -> RemotePayment:
        try:
            intent = self.client.v1.payment_intents.retrieve(payment_id, params={"expand": ["payment_method"]})
        except stripe.APIConnectionError as exc:
            logger.warning("Stripe request failed", payment_id=payment_id, error=str(exc))
            raise PaymentProviderUnavailable("Stripe", "request timed out or connection failed") from exc
        except stripe.InvalidRequestError as exc:
            raise PaymentVerificationFailed("Payment intent not found") from exc
        except (stripe.RateLimitError, stripe.APIError) as exc:
            raise PaymentProviderUnavailable("Stripe", str(exc)) from exc
        except stripe.StripeError as exc:
            raise PaymentVerificationFailed(str(exc)) from exc

        card_brand = None
        card_last4 = None
        payment_method = getattr(intent, "payment_method", None)
        if payment_method is not None and not isinstance(payment_method, str):
            card = getattr(payment_method, "card", None)
            if card is not None:
                card_brand = getattr(card, "brand", None)
                card_last4 = getattr(card, "last4", None)

        amount = getattr(intent, "amount", None)
        return RemotePayment(
            provider=self.name,
            payment_id=getattr(intent, "id", payment_id),
            status=getattr(intent, "status", ""),
            # Stripe reports minor units
            amount=Decimal(amount) / 100 if isinstance(amount, int) else None,
            currency=getattr(intent, "currency", None),
            card_brand=card_brand,
            card_last4=card_last4,
        )

    def create_payment(self, amount: Decimal, currency: str, metadata: dict | None = None) -> PaymentIntent:
        cents = to_minor_units(amount)
        try:
            intent = self.client.v1.payment_intents.create(
                params={
                    "amount": cents,
                    "currency": currency.lower(),
                    "payment_method_types": ["card"],
                    "metadata": {key: str(value) for key, value in (metadata or {}).items()},
                }
            )
        except stripe.APIConnectionError as exc:
            logger.warning("Stripe request failed", amount=cents, error=str(exc))
            raise PaymentProviderUnavailable("Stripe", "request timed out or connection failed") from exc
        except stripe.StripeError as exc:
            logger.error("Stripe payment intent creation failed", amount=cents, error=str(exc))
            raise PaymentProviderUnavailable("Stripe", "failed to create payment intent") from exc

        return PaymentIntent(
            provider=self.name,
            payment_id=intent.id,
            status=getattr(intent, "status", ""),
            amount=Decimal(cents) / 100,
            currency=currency,
            client_secret=getattr(intent, "client_secret", None),
        )
