"""ShipEngine adapter: rates, labels and tracking over the ShipEngine REST API."""

from decimal import Decimal, InvalidOperation

import httpx
import structlog

from fulfillment.carrier.port import CarrierPort, Label, LabelRequest, Package, RateQuote
from shared.exceptions import CarrierError

logger = structlog.get_logger(__name__)

_COUNTRY_CODES = {
    "united states": "US",
    "united states of america": "US",
    "usa": "US",
    "us": "US",
    "canada": "CA",
    "mexico": "MX",
    "united kingdom": "GB",
    "uk": "GB",
    "australia": "AU",
    "germany": "DE",
    "france": "FR",
    "morocco": "MA",
}


def country_code(country: str | None) -> str:
    """Map a country name to its ISO 3166 alpha-2 code."""
    if not country or not country.strip():
        return "US"
    normalized = country.strip().lower()
    return _COUNTRY_CODES.get(normalized, normalized[:2].upper())


def format_address(address: dict, residential: bool, default_name: str = "") -> dict:
    return {
        "name": address.get("fullName") or default_name,
        "phone": address.get("phone") or "",
        "address_line1": address.get("addressLine1") or "",
        "address_line2": address.get("addressLine2") or "",
        "city_locality": address.get("city") or "",
        "state_province": address.get("state") or "",
        "postal_code": address.get("postalCode") or "",
        "country_code": country_code(address.get("country")),
        "address_residential_indicator": "yes" if residential else "no",
    }


def _format_package(package: Package) -> dict:
    return {
        "weight": {"value": package.weight_ounces, "unit": "ounce"},
        "dimensions": {
            "length": package.length,
            "width": package.width,
            "height": package.height,
            "unit": package.dimension_unit,
        },
    }


def _amount(value) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0))
    except InvalidOperation:
        return Decimal("0")


class ShipEngineCarrier(CarrierPort):
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.shipengine.com",
        default_carrier_id: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.default_carrier_id = default_carrier_id
        self.timeout = httpx.Timeout(timeout_seconds)
        self.transport = transport

    def _request(self, method: str, path: str, json: dict | None = None, params: dict | None = None) -> dict:
        if not self.api_key:
            raise CarrierError("SHIPENGINE_API_KEY is not configured")

        try:
            with httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
                headers={"API-Key": self.api_key},
            ) as client:
                response = client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as exc:
            logger.warning("ShipEngine request timed out", path=path)
            raise CarrierError("ShipEngine request timed out") from exc
        except httpx.TransportError as exc:
            raise CarrierError(f"ShipEngine is unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            errors = data.get("errors") or []
            message = (errors[0].get("message") if errors else None) or data.get("message") or "ShipEngine API error"
            logger.warning("ShipEngine request failed", path=path, status_code=response.status_code, error=message)
            raise CarrierError(message)
        return data

    @staticmethod
    def _label_from_response(data: dict) -> Label:
        download = data.get("label_download") or {}
        return Label(
            label_id=data.get("label_id"),
            shipment_id=data.get("shipment_id"),
            tracking_number=data.get("tracking_number"),
            tracking_url=data.get("tracking_url"),
            carrier_code=data.get("carrier_code"),
            carrier_id=data.get("carrier_id"),
            service_code=data.get("service_code"),
            service_name=data.get("service_type"),
            label_url=download.get("pdf") or download.get("href"),
            shipping_cost=_amount((data.get("shipment_cost") or {}).get("amount")),
            estimated_delivery=data.get("estimated_delivery_date"),
        )

    def create_label(self, request: LabelRequest) -> Label:
        if request.rate_id:
            data = self._request(
                "POST",
                f"/v1/labels/rates/{request.rate_id}",
                json={"label_format": "pdf", "label_layout": "4x6"},
            )
            return self._label_from_response(data)

        carrier_id = request.carrier_id or self.default_carrier_id
        if not carrier_id:
            raise CarrierError("No carrier ID provided or configured")

        data = self._request(
            "POST",
            "/v1/labels",
            json={
                "label_format": "pdf",
                "label_layout": "4x6",
                "shipment": {
                    "carrier_id": carrier_id,
                    "service_code": request.service_code,
                    "ship_to": format_address(request.ship_to, residential=True),
                    "ship_from": format_address(request.ship_from, residential=False, default_name="Warehouse"),
                    "packages": [_format_package(package) for package in request.packages],
                },
            },
        )
        return self._label_from_response(data)

    def get_tracking(self, carrier_code: str, tracking_number: str) -> dict:
        if not carrier_code or not tracking_number:
            raise CarrierError("Carrier code and tracking number are required")

        data = self._request(
            "GET",
            "/v1/tracking",
            params={"carrier_code": carrier_code, "tracking_number": tracking_number},
        )
        return {
            "trackingNumber": data.get("tracking_number"),
            "trackingUrl": data.get("tracking_url"),
            "carrierCode": data.get("carrier_code"),
            "statusCode": data.get("status_code"),
            "statusDescription": data.get("status_description"),
            "shipDate": data.get("ship_date"),
            "estimatedDelivery": data.get("estimated_delivery_date"),
            "actualDelivery": data.get("actual_delivery_date"),
            "exceptionDescription": data.get("exception_description"),
            "events": [
                {
                    "occurredAt": event.get("occurred_at"),
                    "description": event.get("description"),
                    "city": event.get("city_locality"),
                    "state": event.get("state_province"),
                    "postalCode": event.get("postal_code"),
                    "country": event.get("country_code"),
                    "statusCode": event.get("status_code"),
                }
                for event in data.get("events") or []
            ],
        }

    def get_rates(self, ship_to: dict, ship_from: dict, packages: tuple[Package, ...]) -> list[RateQuote]:
        if not self.default_carrier_id:
            raise CarrierError("No carrier IDs configured")

        data = self._request(
            "POST",
            "/v1/rates",
            json={
                "rate_options": {"carrier_ids": [self.default_carrier_id]},
                "shipment": {
                    "validate_address": "no_validation",
                    "ship_to": format_address(ship_to, residential=True),
                    "ship_from": format_address(ship_from, residential=False, default_name="Warehouse"),
                    "packages": [_format_package(package) for package in packages],
                },
            },
        )
        rates = (data.get("rate_response") or {}).get("rates") or []
        return [
            RateQuote(
                rate_id=rate.get("rate_id"),
                carrier_id=rate.get("carrier_id"),
                carrier_code=rate.get("carrier_code"),
                carrier_name=rate.get("carrier_friendly_name"),
                service_code=rate.get("service_code"),
                service_name=rate.get("service_type"),
                amount=_amount((rate.get("shipping_amount") or {}).get("amount")),
                currency=(rate.get("shipping_amount") or {}).get("currency") or "usd",
                delivery_days=rate.get("delivery_days"),
                estimated_delivery=rate.get("estimated_delivery_date"),
            )
            for rate in rates
        ]
