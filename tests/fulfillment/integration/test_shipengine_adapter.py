"""Tests for the ShipEngine adapter against a mocked ShipEngine API."""

import json
from decimal import Decimal

import httpx
import pytest
from fulfillment.carrier.port import LabelRequest, Package
from fulfillment.carrier.shipengine_adapter import ShipEngineCarrier, country_code, format_address
from shared.exceptions import CarrierError

SHIP_TO = {
    "fullName": "Ada Buyer",
    "phone": "555-0100",
    "addressLine1": "1 Main St",
    "city": "Austin",
    "state": "TX",
    "postalCode": "78701",
    "country": "United States",
}
SHIP_FROM = {"fullName": "", "addressLine1": "9 Dock Rd", "city": "Dallas", "state": "TX", "country": "US"}

LABEL_RESPONSE = {
    "label_id": "se-label-1",
    "shipment_id": "se-ship-1",
    "tracking_number": "9400111899223197428490",
    "tracking_url": "https://tools.usps.com/go/TrackConfirmAction?tLabels=9400111899223197428490",
    "carrier_code": "stamps_com",
    "carrier_id": "se-123",
    "service_code": "usps_priority_mail",
    "service_type": "USPS Priority Mail",
    "shipment_cost": {"currency": "usd", "amount": 8.95},
    "estimated_delivery_date": "2026-06-04T00:00:00Z",
    "label_download": {"pdf": "https://api.shipengine.com/v1/downloads/label.pdf"},
}


def _carrier(handler, carrier_id="se-123", api_key="TEST_key"):
    return ShipEngineCarrier(
        api_key=api_key,
        base_url="https://shipengine.test",
        default_carrier_id=carrier_id,
        transport=httpx.MockTransport(handler),
    )


def _request(**overrides):
    fields = {
        "ship_to": SHIP_TO,
        "ship_from": SHIP_FROM,
        "service_code": "usps_priority_mail",
        "packages": (Package(weight_ounces=16),),
    }
    fields.update(overrides)
    return LabelRequest(**fields)


class TestAddressFormatting:
    @pytest.mark.parametrize(
        "country, expected",
        [("United States", "US"), ("usa", "US"), ("Canada", "CA"), ("morocco", "MA"), ("", "US"), ("Spain", "SP")],
    )
    def test_country_codes(self, country, expected):
        assert country_code(country) == expected

    def test_format_address(self):
        formatted = format_address(SHIP_TO, residential=True)
        assert formatted["name"] == "Ada Buyer"
        assert formatted["address_line1"] == "1 Main St"
        assert formatted["city_locality"] == "Austin"
        assert formatted["country_code"] == "US"
        assert formatted["address_residential_indicator"] == "yes"

    def test_missing_name_uses_default(self):
        assert format_address(SHIP_FROM, residential=False, default_name="Warehouse")["name"] == "Warehouse"


class TestCreateLabel:
    def test_label_from_shipment(self):
        captured = {}

        def handler(request):
            captured["path"] = request.url.path
            captured["api_key"] = request.headers["API-Key"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=LABEL_RESPONSE)

        label = _carrier(handler).create_label(_request())

        assert captured["path"] == "/v1/labels"
        assert captured["api_key"] == "TEST_key"
        shipment = captured["body"]["shipment"]
        assert shipment["carrier_id"] == "se-123"
        assert shipment["service_code"] == "usps_priority_mail"
        assert shipment["packages"][0]["weight"] == {"value": 16, "unit": "ounce"}
        assert shipment["ship_from"]["name"] == "Warehouse"
        assert label.tracking_number == "9400111899223197428490"
        assert label.shipping_cost == Decimal("8.95")
        assert label.label_url.endswith("label.pdf")

    def test_label_from_quoted_rate(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json=LABEL_RESPONSE)

        _carrier(handler).create_label(_request(rate_id="se-rate-9"))
        assert paths == ["/v1/labels/rates/se-rate-9"]

    def test_api_error_message_is_surfaced(self):
        def handler(request):
            return httpx.Response(400, json={"errors": [{"message": "Invalid postal code"}]})

        with pytest.raises(CarrierError) as exc:
            _carrier(handler).create_label(_request())
        assert exc.value.message == "Invalid postal code"

    def test_requires_a_carrier_id(self):
        with pytest.raises(CarrierError):
            _carrier(lambda request: httpx.Response(200, json={}), carrier_id=None).create_label(_request())

    def test_requires_an_api_key(self):
        with pytest.raises(CarrierError):
            _carrier(lambda request: httpx.Response(200, json={}), api_key="").create_label(_request())

    def test_timeout(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(CarrierError) as exc:
            _carrier(handler).create_label(_request())
        assert exc.value.message == "ShipEngine request timed out"


class TestTracking:
    def test_tracking_is_normalised(self):
        def handler(request):
            assert request.url.params["carrier_code"] == "stamps_com"
            assert request.url.params["tracking_number"] == "9400"
            return httpx.Response(
                200,
                json={
                    "tracking_number": "9400",
                    "status_code": "IT",
                    "status_description": "In Transit",
                    "carrier_code": "stamps_com",
                    "events": [
                        {
                            "occurred_at": "2026-06-02T10:00:00Z",
                            "description": "Arrived at facility",
                            "city_locality": "Dallas",
                            "state_province": "TX",
                            "status_code": "IT",
                        }
                    ],
                },
            )

        tracking = _carrier(handler).get_tracking("stamps_com", "9400")
        assert tracking["statusDescription"] == "In Transit"
        assert tracking["events"][0]["city"] == "Dallas"

    def test_requires_identifiers(self):
        with pytest.raises(CarrierError):
            _carrier(lambda request: httpx.Response(200, json={})).get_tracking("", "9400")


class TestRates:
    def test_rates_are_parsed(self):
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "rate_response": {
                        "rates": [
                            {
                                "rate_id": "se-rate-1",
                                "carrier_id": "se-123",
                                "carrier_code": "stamps_com",
                                "carrier_friendly_name": "Stamps.com",
                                "service_code": "usps_priority_mail",
                                "service_type": "USPS Priority Mail",
                                "shipping_amount": {"currency": "usd", "amount": 9.1},
                                "delivery_days": 2,
                            }
                        ]
                    }
                },
            )

        rates = _carrier(handler).get_rates(SHIP_TO, SHIP_FROM, (Package(weight_ounces=24),))

        assert captured["body"]["rate_options"] == {"carrier_ids": ["se-123"]}
        assert len(rates) == 1
        assert rates[0].amount == Decimal("9.1")
        assert rates[0].carrier_name == "Stamps.com"
        assert rates[0].delivery_days == 2
