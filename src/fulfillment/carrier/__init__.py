"""Carrier adapter registry: pluggable shipping carrier integration."""

from fulfillment.carrier.port import CarrierPort
from shared.config import CarrierSettings

_carrier_instance: CarrierPort | None = None


def get_carrier() -> CarrierPort:
    """Return the configured carrier adapter (singleton). Uses FakeCarrier by default."""
    global _carrier_instance
    if _carrier_instance is None:
        from fulfillment.carrier.fake_adapter import FakeCarrier

        _carrier_instance = FakeCarrier()
    return _carrier_instance


def set_carrier(carrier: CarrierPort) -> None:
    global _carrier_instance
    _carrier_instance = carrier


def configure_carrier(settings: CarrierSettings) -> CarrierPort:
    """Build the carrier adapter named by ``settings.adapter``."""
    if settings.adapter == "fake":
        from fulfillment.carrier.fake_adapter import FakeCarrier

        carrier = FakeCarrier()
    elif settings.adapter == "shipengine":
        from fulfillment.carrier.shipengine_adapter import ShipEngineCarrier

        carrier = ShipEngineCarrier(
            api_key=settings.shipengine_api_key,
            base_url=settings.shipengine_base_url,
            default_carrier_id=settings.carrier_id or None,
            timeout_seconds=settings.timeout_seconds,
        )
    else:
        raise ValueError(f"Unknown carrier adapter: {settings.adapter}")
    set_carrier(carrier)
    return carrier


def reset_carrier():
    """Reset the carrier singleton (useful for testing)."""
    global _carrier_instance
    _carrier_instance = None
