"""Configurable fake payment provider for development and testing.

Payments are looked up in an in-memory table seeded with ``register()``.
Unknown ids resolve to a successful payment with no amount, and the whole
provider can be switched to failure mode with ``configure()``. Payments it
creates are registered too, so a later lookup reports them.
"""

from decimal import Decimal
from uuid import uuid4

from payments.gateway.port import CaptureResult, PaymentIntent, PaymentProvider, RemotePayment
from shared.exceptions import PaymentProviderUnavailable, PaymentVerificationFailed

_SUCCESS_STATUS = {"paypal": "COMPLETED", "stripe": "succeeded"}


class FakePaymentProvider(PaymentProvider):
    """Configurable fake payment provider."""

    def __init__(self, name: str = "fake") -> None:
        self.name = name
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment not found"
        self.unavailable: bool = False
        self.payments: dict[str, RemotePayment] = {}
        self.calls: list[str] = []
        self.created: list[PaymentIntent] = []
        self.captured: list[str] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Payment not found", unavailable: bool = False) -> None:
        """Configure provider behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.unavailable = unavailable

    def register(
        self,
        payment_id: str,
        amount,
        currency: str = "USD",
        status: str | None = None,
        card_brand: str | None = None,
        card_last4: str | None = None,
    ) -> RemotePayment:
        """Seed a payment the provider will report for ``payment_id``."""
        payment = RemotePayment(
            provider=self.name,
            payment_id=payment_id,
            status=status or _SUCCESS_STATUS.get(self.name, "succeeded"),
            amount=Decimal(str(amount)) if amount is not None else None,
            currency=currency,
            card_brand=card_brand,
            card_last4=card_last4,
        )
        self.payments[payment_id] = payment
        return payment

    def fetch_payment(self, payment_id: str) -> RemotePayment:
        self.calls.append(payment_id)

        if self.unavailable:
            raise PaymentProviderUnavailable(self.name, "request timed out")
        if not self.should_succeed:
            raise PaymentVerificationFailed(self.failure_reason)

        if payment_id in self.payments:
            return self.payments[payment_id]
        return RemotePayment(
            provider=self.name,
            payment_id=payment_id,
            status=_SUCCESS_STATUS.get(self.name, "succeeded"),
        )

    def _check_available(self) -> None:
        if self.unavailable:
            raise PaymentProviderUnavailable(self.name, "request timed out")

    def create_payment(self, amount: Decimal, currency: str, metadata: dict | None = None) -> PaymentIntent:
        self._check_available()
        payment_id = f"{self.name}_{uuid4().hex[:16]}"
        intent = PaymentIntent(
            provider=self.name,
            payment_id=payment_id,
            status="CREATED" if self.name == "paypal" else "requires_payment_method",
            amount=Decimal(str(amount)),
            currency=currency,
            client_secret=f"{payment_id}_secret" if self.name == "stripe" else None,
        )
        self.created.append(intent)
        self.register(payment_id, amount, currency=currency)
        return intent

    def capture_payment(self, payment_id: str) -> CaptureResult:
        self._check_available()
        self.captured.append(payment_id)
        if not self.should_succeed:
            return CaptureResult(provider=self.name, payment_id=payment_id, status="DECLINED")
        return CaptureResult(
            provider=self.name,
            payment_id=payment_id,
            status="COMPLETED",
            capture_id=f"capture_{uuid4().hex[:12]}",
        )
