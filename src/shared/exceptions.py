"""Checkout error taxonomy, built on protean's exceptions.

Plain ``ValidationError`` and ``ObjectNotFoundError`` come straight from
protean. The subclasses below carry the HTTP status they map to and a stable
error code, so the API layer can translate any of them without knowing about
individual classes.
"""

from protean.exceptions import ObjectNotFoundError, ProteanException, ValidationError

__all__ = [
    "CarrierError",
    "CheckoutError",
    "CouponInvalid",
    "CouponNotApplicable",
    "ExternalServiceError",
    "InsufficientStock",
    "InvalidQuantity",
    "NotAuthenticated",
    "NotificationDeliveryError",
    "ObjectNotFoundError",
    "PaymentProviderUnavailable",
    "PaymentVerificationFailed",
    "PermissionDenied",
    "ProductNotFound",
    "ReservationExpired",
    "ValidationError",
]


def _as_messages(messages) -> dict:
    if messages is None:
        return {}
    if isinstance(messages, str):
        return {"_entity": [messages]}
    return messages


class CheckoutError(ProteanException):
    status_code = 500
    code = "checkout_error"

    def __init__(self, messages: dict | str | None = None):
        super().__init__(_as_messages(messages))
        self.messages = _as_messages(messages)

    def __str__(self) -> str:
        return first_message(self)


def first_message(exc: Exception) -> str:
    """The first human-readable message an exception carries."""
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        for values in messages.values():
            if isinstance(values, (list, tuple)) and values:
                return str(values[0])
            if values:
                return str(values)
    elif messages:
        return str(messages)
    return exc.__class__.__name__


class NotAuthenticated(CheckoutError):
    status_code = 401
    code = "not_authenticated"


class PermissionDenied(CheckoutError):
    status_code = 403
    code = "forbidden"


class ProductNotFound(ValidationError):
    code = "product_not_found"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__({"products": [f"Product {product_id} does not exist"]})


class InvalidQuantity(ValidationError):
    code = "invalid_quantity"

    def __init__(self, product_id: str, quantity):
        self.product_id = product_id
        super().__init__({"quantity": [f"Quantity for product {product_id} must be at least 1, got {quantity}"]})


class CouponInvalid(ValidationError):
    code = "coupon_invalid"

    def __init__(self, message: str = "Coupon is invalid or inactive"):
        super().__init__({"coupon_code": [message]})


class CouponNotApplicable(ValidationError):
    code = "coupon_not_applicable"

    def __init__(self):
        super().__init__({"coupon_code": ["Coupon does not apply to any items in your cart"]})


class InsufficientStock(CheckoutError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__({"products": [f"Product {product_id} is no longer available in the requested quantity"]})


class ReservationExpired(CheckoutError):
    status_code = 409
    code = "reservation_expired"

    def __init__(self, hold_id: str):
        self.hold_id = hold_id
        super().__init__({"reservation": [f"Stock reservation {hold_id} is no longer active"]})


class PaymentVerificationFailed(CheckoutError):
    status_code = 402
    code = "payment_verification_failed"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__({"payment": [reason]})


class ExternalServiceError(CheckoutError):
    status_code = 502
    code = "external_service_error"


class PaymentProviderUnavailable(ExternalServiceError):
    code = "payment_provider_unavailable"

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__({"payment": [f"{provider} is unavailable: {reason}"]})


class CarrierError(ExternalServiceError):
    code = "carrier_error"


class NotificationDeliveryError(ExternalServiceError):
    code = "notification_delivery_error"
