"""Payment provider registry.

Provides get_provider() / set_provider() to swap implementations per payment
method:
- FakePaymentProvider for development and testing (the default)
- PayPalPaymentProvider / StripePaymentProvider when credentials are configured

Outside development a method without credentials is disabled rather than
silently backed by the fake.
"""

from payments.gateway.fake_adapter import FakePaymentProvider
from payments.gateway.port import PaymentProvider
from shared.config import PaymentSettings
from shared.exceptions import PaymentProviderUnavailable

_providers: dict[str, PaymentProvider] = {}
_disabled: set[str] = set()


def get_provider(method: str) -> PaymentProvider:
    """Return the provider for a payment method. Defaults to FakePaymentProvider."""
    if method in _disabled:
        raise PaymentProviderUnavailable(method, "payment method is not configured")
    if method not in _providers:
        _providers[method] = FakePaymentProvider(method)
    return _providers[method]


def is_enabled(method: str) -> bool:
    return method not in _disabled


def set_provider(method: str, provider: PaymentProvider) -> None:
    """Override the provider for a payment method (useful for tests)."""
    _disabled.discard(method)
    _providers[method] = provider


def reset_providers() -> None:
    """Reset to default providers."""
    _providers.clear()
    _disabled.clear()


def configure_providers(settings: PaymentSettings, use_fakes: bool = True) -> None:
    """Install the real adapters for every provider that has credentials."""
    reset_providers()
    if settings.paypal_enabled:
        from payments.gateway.paypal_adapter import PayPalPaymentProvider

        set_provider(
            "paypal",
            PayPalPaymentProvider(
                client_id=settings.paypal_client_id,
                client_secret=settings.paypal_client_secret,
                base_url=settings.paypal_base_url,
                timeout_seconds=settings.timeout_seconds,
            ),
        )
    elif not use_fakes:
        _disabled.add("paypal")

    if settings.stripe_enabled:
        from payments.gateway.stripe_adapter import StripePaymentProvider

        set_provider(
            "stripe",
            StripePaymentProvider(settings.stripe_secret_key, timeout_seconds=settings.timeout_seconds),
        )
    elif not use_fakes:
        _disabled.add("stripe")
