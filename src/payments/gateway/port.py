"""Payment provider port (abstract interface).

Checkout never charges a card itself: the buyer pays with the provider first
and hands us the provider's payment id. Adapters start that payment for the
client (a Stripe intent, a PayPal order), capture it where the provider needs
an explicit capture, and look it up again when the order is placed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from shared.exceptions import ValidationError


@dataclass(frozen=True)
class RemotePayment:
    """A payment as reported by the provider."""

    provider: str
    payment_id: str
    status: str
    amount: Decimal | None = None
    currency: str | None = None
    card_brand: str | None = None
    card_last4: str | None = None


@dataclass(frozen=True)
class PaymentIntent:
    """A payment started with the provider, waiting for the buyer to complete it."""

    provider: str
    payment_id: str
    status: str
    amount: Decimal
    currency: str
    client_secret: str | None = None


@dataclass(frozen=True)
class CaptureResult:
    provider: str
    payment_id: str
    status: str
    capture_id: str | None = None

    @property
    def completed(self) -> bool:
        return self.status.upper() == "COMPLETED"


class PaymentProvider(ABC):
    """Abstract payment provider interface."""

    name: str = ""

    @abstractmethod
    def fetch_payment(self, payment_id: str) -> RemotePayment:
        """Look up a payment by the provider's id.

        Raises:
            PaymentVerificationFailed: the provider has no usable record of the payment.
            PaymentProviderUnavailable: the provider could not be reached in time.
        """
        ...

    @abstractmethod
    def create_payment(self, amount: Decimal, currency: str, metadata: dict | None = None) -> PaymentIntent:
        """Start a payment of ``amount`` for the buyer to complete on the client.

        Raises:
            PaymentProviderUnavailable: the provider could not be reached or refused the request.
        """
        ...

    def capture_payment(self, payment_id: str) -> CaptureResult:
        """Capture an approved payment. Only providers with an explicit capture step support it."""
        raise ValidationError({"payment_method": [f"{self.name} payments do not need a separate capture"]})
