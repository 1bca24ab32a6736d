"""PayPal adapter: creates, captures and looks up checkout orders over the REST API."""

from decimal import Decimal, InvalidOperation
from urllib.parse import quote

import httpx
import structlog

from payments.gateway.port import CaptureResult, PaymentIntent, PaymentProvider, RemotePayment
from shared.exceptions import PaymentProviderUnavailable, PaymentVerificationFailed
from shared.money import round_money

logger = structlog.get_logger(__name__)


class PayPalPaymentProvider(PaymentProvider):
    """Talks to PayPal checkout orders with client-credentials OAuth."""

    name = "paypal"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = "https://api-m.sandbox.paypal.com",
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url
        self.timeout = httpx.Timeout(timeout_seconds)
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    def _access_token(self, client: httpx.Client) -> str:
        response = client.post(
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
        )
        if response.is_error:
            logger.error("PayPal authentication failed", status_code=response.status_code)
            raise PaymentProviderUnavailable("PayPal", "authentication failed")
        return response.json()["access_token"]

    def _request(self, method: str, path: str, json: dict | None = None) -> httpx.Response:
        """Send an authenticated request. Transport failures become PaymentProviderUnavailable."""
        try:
            with self._client() as client:
                token = self._access_token(client)
                return client.request(
                    method,
                    path,
                    json=json,
                    headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                )
        except httpx.TimeoutException as exc:
            logger.warning("PayPal request timed out", path=path)
            raise PaymentProviderUnavailable("PayPal", "request timed out") from exc
        except httpx.TransportError as exc:
            raise PaymentProviderUnavailable("PayPal", str(exc)) from exc

    def fetch_payment(self, payment_id: str) -> RemotePayment:
        response = self._request("GET", f"/v2/checkout/orders/{quote(payment_id, safe='')}")
        if response.is_error:
            logger.warning("PayPal order lookup failed", payment_id=payment_id, status_code=response.status_code)
            raise PaymentVerificationFailed("Failed to fetch PayPal order")

        data = response.json()
        units = data.get("purchase_units") or [{}]
        amount = units[0].get("amount") or {}
        try:
            value = Decimal(str(amount.get("value", "0")))
        except InvalidOperation:
            value = None

        return RemotePayment(
            provider=self.name,
            payment_id=data.get("id", payment_id),
            status=data.get("status", ""),
            amount=value,
            currency=amount.get("currency_code") or "USD",
        )

    def create_payment(self, amount: Decimal, currency: str, metadata: dict | None = None) -> PaymentIntent:
        value = round_money(amount)
        response = self._request(
            "POST",
            "/v2/checkout/orders",
            json={
                "intent": "CAPTURE",
                "purchase_units": [{"amount": {"currency_code": currency, "value": f"{value:.2f}"}}],
            },
        )
        if response.is_error:
            logger.error("PayPal order creation failed", status_code=response.status_code)
            raise PaymentProviderUnavailable("PayPal", "failed to create order")

        data = response.json()
        return PaymentIntent(
            provider=self.name,
            payment_id=data["id"],
            status=data.get("status", ""),
            amount=value,
            currency=currency,
        )

    def capture_payment(self, payment_id: str) -> CaptureResult:
        response = self._request("POST", f"/v2/checkout/orders/{quote(payment_id, safe='')}/capture")
        if response.is_error:
            logger.warning("PayPal capture failed", payment_id=payment_id, status_code=response.status_code)
            raise PaymentVerificationFailed("Failed to capture PayPal payment")

        data = response.json()
        capture_id = None
        units = data.get("purchase_units") or []
        if units:
            captures = (units[0].get("payments") or {}).get("captures") or []
            if captures:
                capture_id = captures[0].get("id")

        logger.info("PayPal payment captured", payment_id=payment_id, status=data.get("status"), capture_id=capture_id)
        return CaptureResult(
            provider=self.name,
            payment_id=data.get("id", payment_id),
            status=data.get("status", ""),
            capture_id=capture_id,
        )
