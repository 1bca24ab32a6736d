"""Fake carrier adapter: deterministic carrier for testing and development.

Generates mock tracking numbers, labels and tracking events. Configurable
success/failure behavior for integration testing.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

from fulfillment.carrier.port import CarrierPort, Label, LabelRequest, Package, RateQuote
from shared.exceptions import CarrierError

_SERVICES = {
    "usps_priority_mail": ("USPS Priority Mail", 3, Decimal("8.95")),
    "usps_priority_mail_express": ("USPS Priority Mail Express", 1, Decimal("28.75")),
}


class FakeCarrier(CarrierPort):
    """Fake carrier that always succeeds by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.labels: list[LabelRequest] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Carrier unavailable"):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_label(self, request: LabelRequest) -> Label:
        if not self.should_succeed:
            raise CarrierError(self.failure_reason)

        self.labels.append(request)
        service_name, days, cost = _SERVICES.get(request.service_code, ("Ground", 5, Decimal("6.50")))
        label_id = f"se-{uuid4().hex[:10]}"
        tracking_number = f"FAKE-{uuid4().hex[:12].upper()}"
        return Label(
            label_id=label_id,
            shipment_id=f"ship-{uuid4().hex[:8]}",
            tracking_number=tracking_number,
            tracking_url=f"https://fake-carrier.example.com/track/{tracking_number}",
            carrier_code="fake_carrier",
            carrier_id=request.carrier_id or "fake-carrier-id",
            service_code=request.service_code,
            service_name=service_name,
            label_url=f"https://fake-carrier.example.com/labels/{label_id}.pdf",
            shipping_cost=cost,
            estimated_delivery=(datetime.now(UTC) + timedelta(days=days)).isoformat(),
        )

    def get_tracking(self, carrier_code: str, tracking_number: str) -> dict:
        if not self.should_succeed:
            raise CarrierError(self.failure_reason)

        return {
            "trackingNumber": tracking_number,
            "carrierCode": carrier_code,
            "statusCode": "IT",
            "statusDescription": "In Transit",
            "estimatedDelivery": None,
            "actualDelivery": None,
            "events": [
                {
                    "occurredAt": datetime.now(UTC).isoformat(),
                    "description": "Package picked up by carrier",
                    "city": "Austin",
                    "state": "TX",
                    "statusCode": "AC",
                },
                {
                    "occurredAt": datetime.now(UTC).isoformat(),
                    "description": "Package in transit",
                    "city": "Dallas",
                    "state": "TX",
                    "statusCode": "IT",
                },
            ],
        }

    def get_rates(self, ship_to: dict, ship_from: dict, packages: tuple[Package, ...]) -> list[RateQuote]:
        if not self.should_succeed:
            raise CarrierError(self.failure_reason)

        return [
            RateQuote(
                rate_id=f"rate-{code}",
                carrier_id="fake-carrier-id",
                carrier_code="fake_carrier",
                carrier_name="Fake Carrier",
                service_code=code,
                service_name=name,
                amount=cost,
                currency="usd",
                delivery_days=days,
            )
            for code, (name, days, cost) in _SERVICES.items()
        ]
