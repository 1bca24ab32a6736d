"""Tests for the Stripe adapter with a stand-in StripeClient."""

from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe
from payments.gateway.stripe_adapter import StripePaymentProvider
from shared.exceptions import PaymentProviderUnavailable, PaymentVerificationFailed


def _client(retrieve=None, create=None):
    return SimpleNamespace(v1=SimpleNamespace(payment_intents=SimpleNamespace(retrieve=retrieve, create=create)))


def _intent(**overrides):
    fields = {
        "id": "pi_123",
        "status": "succeeded",
        "amount": 5360,
        "currency": "usd",
        "payment_method": SimpleNamespace(card=SimpleNamespace(brand="visa", last4="4242")),
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


class TestFetchPayment:
    def test_converts_minor_units_and_reads_card(self):
        calls = []

        def retrieve(payment_id, params=None):
            calls.append((payment_id, params))
            return _intent()

        payment = StripePaymentProvider("sk_test", client=_client(retrieve)).fetch_payment("pi_123")

        assert payment.amount == Decimal("53.60")
        assert payment.currency == "usd"
        assert payment.status == "succeeded"
        assert payment.card_brand == "visa"
        assert payment.card_last4 == "4242"
        assert calls == [("pi_123", {"expand": ["payment_method"]})]

    def test_unexpanded_payment_method_has_no_card_details(self):
        provider = StripePaymentProvider("sk_test", client=_client(lambda *_, **__: _intent(payment_method="pm_1")))
        payment = provider.fetch_payment("pi_123")
        assert payment.card_brand is None
        assert payment.card_last4 is None

    def test_missing_intent_fails_verification(self):
        def retrieve(payment_id, params=None):
            raise stripe.InvalidRequestError("No such payment_intent: 'pi_404'", "intent")

        with pytest.raises(PaymentVerificationFailed) as exc:
            StripePaymentProvider("sk_test", client=_client(retrieve)).fetch_payment("pi_404")
        assert exc.value.reason == "Payment intent not found"

    def test_connection_error_makes_stripe_unavailable(self):
        def retrieve(payment_id, params=None):
            raise stripe.APIConnectionError("Network error")

        with pytest.raises(PaymentProviderUnavailable):
            StripePaymentProvider("sk_test", client=_client(retrieve)).fetch_payment("pi_123")


class TestCreatePayment:
    def test_creates_a_card_intent_in_minor_units(self):
        calls = []

        def create(params=None):
            calls.append(params)
            return SimpleNamespace(id="pi_new", status="requires_payment_method", client_secret="pi_new_secret")

        provider = StripePaymentProvider("sk_test", client=_client(create=create))
        intent = provider.create_payment(Decimal("53.60"), "USD", metadata={"accountId": "a-1", "coupon": None})

        assert intent.payment_id == "pi_new"
        assert intent.client_secret == "pi_new_secret"
        assert intent.amount == Decimal("53.60")
        assert calls == [
            {
                "amount": 5360,
                "currency": "usd",
                "payment_method_types": ["card"],
                "metadata": {"accountId": "a-1", "coupon": "None"},
            }
        ]

    def test_stripe_errors_make_stripe_unavailable(self):
        def create(params=None):
            raise stripe.CardError("Your card was declined", "card", "card_declined")

        with pytest.raises(PaymentProviderUnavailable):
            StripePaymentProvider("sk_test", client=_client(create=create)).create_payment(Decimal("10.00"), "USD")
