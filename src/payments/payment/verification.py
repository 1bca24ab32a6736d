"""Payment verification: confirms a claimed payment with its provider.

Rules per method:
    none    no lookup; the order is created with payment pending
    paypal  the remote checkout order must be COMPLETED
    stripe  the intent must match the expected amount (in minor units) and
            currency, and be succeeded or processing

Verification never retries. A provider that cannot be reached surfaces as
PaymentProviderUnavailable; any other refusal as PaymentVerificationFailed.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

import structlog

from payments.gateway import get_provider
from payments.gateway.port import RemotePayment
from shared.exceptions import PaymentVerificationFailed, ValidationError
from shared.money import to_minor_units

logger = structlog.get_logger(__name__)


class PaymentMethod(Enum):
    NONE = "none"
    PAYPAL = "paypal"
    STRIPE = "stripe"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


_STRIPE_SUCCESS_STATUSES = {"succeeded", "processing"}


@dataclass(frozen=True)
class PaymentVerification:
    method: str
    payment_id: str | None
    status: str
    amount: Decimal | None = None
    currency: str | None = None
    card_brand: str | None = None
    card_last4: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID.value


def _check_paypal(remote: RemotePayment, expected_total: Decimal) -> None:
    if (remote.status or "").upper() != "COMPLETED":
        raise PaymentVerificationFailed(f"PayPal order status: {remote.status}")
    # Settled amount is informational only
    if remote.amount is not None and to_minor_units(remote.amount) != to_minor_units(expected_total):
        logger.warning(
            "PayPal settled amount differs from order total",
            payment_id=remote.payment_id,
            settled=str(remote.amount),
            expected=str(expected_total),
        )


def _check_stripe(remote: RemotePayment, expected_total: Decimal, expected_currency: str) -> None:
    expected_cents = to_minor_units(expected_total)
    if expected_cents > 0 and (remote.amount is None or to_minor_units(remote.amount) != expected_cents):
        raise PaymentVerificationFailed("Payment amount mismatch")
    if (remote.currency or "").lower() != expected_currency.lower():
        raise PaymentVerificationFailed("Payment currency mismatch")
    if remote.status not in _STRIPE_SUCCESS_STATUSES:
        raise PaymentVerificationFailed(f"Payment status: {remote.status}")


class PaymentVerifier:
    def verify(
        self,
        method: str,
        payment_id: str | None,
        expected_total: Decimal,
        expected_currency: str,
    ) -> PaymentVerification:
        try:
            payment_method = PaymentMethod(method or PaymentMethod.NONE.value)
        except ValueError:
            raise ValidationError({"payment_method": [f"Unsupported payment method: {method}"]}) from None

        if payment_method == PaymentMethod.NONE:
            return PaymentVerification(method=payment_method.value, payment_id=None, status=PaymentStatus.PENDING.value)

        if not payment_id:
            raise ValidationError({"payment_id": [f"A payment id is required for {payment_method.value} payments"]})

        remote = get_provider(payment_method.value).fetch_payment(payment_id)
        try:
            if payment_method == PaymentMethod.PAYPAL:
                _check_paypal(remote, expected_total)
            else:
                _check_stripe(remote, expected_total, expected_currency)
        except PaymentVerificationFailed as exc:
            logger.warning(
                "Payment verification failed",
                method=payment_method.value,
                payment_id=payment_id,
                reason=exc.reason,
            )
            raise

        logger.info(
            "Payment verified",
            method=payment_method.value,
            payment_id=payment_id,
            amount=str(remote.amount) if remote.amount is not None else None,
            currency=remote.currency,
        )
        return PaymentVerification(
            method=payment_method.value,
            payment_id=payment_id,
            status=PaymentStatus.PAID.value,
            amount=remote.amount,
            currency=remote.currency,
            card_brand=remote.card_brand,
            card_last4=remote.card_last4,
        )
