"""Carrier port: abstract interface for shipping carrier integrations.

All carrier adapters implement this interface. Fulfillment code programs
against the port; adapters are swapped via configuration. Adapters raise
``CarrierError`` on any failure, including timeouts.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Package:
    weight_ounces: int
    length: int = 12
    width: int = 8
    height: int = 4
    dimension_unit: str = "inch"


@dataclass(frozen=True)
class LabelRequest:
    ship_to: dict
    ship_from: dict
    service_code: str
    packages: tuple[Package, ...]
    carrier_id: str | None = None
    # A previously quoted rate; when present the label is bought from it
    rate_id: str | None = None


@dataclass(frozen=True)
class Label:
    label_id: str
    shipment_id: str | None
    tracking_number: str | None
    tracking_url: str | None
    carrier_code: str | None
    carrier_id: str | None
    service_code: str | None
    service_name: str | None
    label_url: str | None
    shipping_cost: Decimal
    estimated_delivery: str | None = None


@dataclass(frozen=True)
class RateQuote:
    rate_id: str
    carrier_id: str | None
    carrier_code: str | None
    carrier_name: str | None
    service_code: str | None
    service_name: str | None
    amount: Decimal
    currency: str
    delivery_days: int | None = None
    estimated_delivery: str | None = None


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def create_label(self, request: LabelRequest) -> Label:
        """Buy a shipping label."""
        ...

    @abstractmethod
    def get_tracking(self, carrier_code: str, tracking_number: str) -> dict:
        """Get current tracking status for a shipment.

        Returns:
            dict with keys: trackingNumber, statusCode, statusDescription,
            estimatedDelivery, actualDelivery, events (list of tracking events)
        """
        ...

    @abstractmethod
    def get_rates(self, ship_to: dict, ship_from: dict, packages: tuple[Package, ...]) -> list[RateQuote]:
        """Quote rates for a shipment."""
        ...
