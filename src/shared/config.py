"""Runtime configuration.

Settings are read from the environment exactly once, by ``Settings.from_env``,
and then handed to the services that need them. Nothing below the app factory
and the worker runner looks at ``os.environ``.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

_TRUTHY = {"1", "true", "yes", "on"}
_EVENT_PROCESSING_MODES = {"sync", "async"}

DEFAULT_FALLBACK_SHIPPING_COSTS = {
    "standard": Decimal("0.00"),
    "express": Decimal("15.00"),
    "overnight": Decimal("30.00"),
}


def _flag(value: str | None, default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUTHY


def _csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _event_processing(value: str | None) -> str:
    mode = (value or "sync").strip().lower()
    if mode not in _EVENT_PROCESSING_MODES:
        raise ValueError(f"EVENT_PROCESSING must be one of {sorted(_EVENT_PROCESSING_MODES)}, got {value!r}")
    return mode


@dataclass(frozen=True)
class PaymentSettings:
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_mode: str = "sandbox"
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    timeout_seconds: float = 10.0

    @property
    def paypal_enabled(self) -> bool:
        return bool(self.paypal_client_id and self.paypal_client_secret)

    @property
    def stripe_enabled(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def paypal_base_url(self) -> str:
        if self.paypal_mode == "live":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"


@dataclass(frozen=True)
class CarrierSettings:
    adapter: str = "fake"
    shipengine_api_key: str = ""
    shipengine_base_url: str = "https://api.shipengine.com"
    carrier_id: str = ""
    ship_from: Mapping[str, str] = field(default_factory=dict)
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class NotificationSettings:
    email_adapter: str = "fake"
    sender: str = "orders@example.com"
    staff_recipients: tuple[str, ...] = ()
    smtp_host: str = "localhost"
    smtp_port: int = 25
    max_retries: int = 5
    backoff_seconds: int = 30
    poll_interval_seconds: float = 5.0
    batch_size: int = 50
    # Pending notifications older than this are picked up by the retry sweep
    stale_after_seconds: int = 300


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///checkout.db"
    environment: str = "development"
    log_level: str | None = None
    log_dir: str | None = None
    currency: str = "USD"
    reservation_ttl_seconds: int = 900
    sweep_interval_seconds: float = 60.0
    label_claim_timeout_seconds: int = 600
    event_processing: str = "sync"
    # message-db event store shared with the engine process; in-memory when unset
    event_store_url: str | None = None
    run_workers: bool = False
    fallback_shipping_costs: Mapping[str, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_SHIPPING_COSTS)
    )
    payment: PaymentSettings = field(default_factory=PaymentSettings)
    carrier: CarrierSettings = field(default_factory=CarrierSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables (or any mapping of them)."""
        env = os.environ if environ is None else environ

        payment = PaymentSettings(
            paypal_client_id=env.get("PAYPAL_CLIENT_ID", "").strip(),
            paypal_client_secret=env.get("PAYPAL_CLIENT_SECRET", "").strip(),
            paypal_mode=env.get("PAYPAL_MODE", "sandbox").strip().lower(),
            stripe_secret_key=env.get("STRIPE_SECRET_KEY", "").strip(),
            stripe_publishable_key=env.get("STRIPE_PUBLISHABLE_KEY", "").strip(),
            timeout_seconds=float(env.get("PAYMENT_TIMEOUT_SECONDS", "10")),
        )

        ship_from = {
            "fullName": env.get("SHIP_FROM_NAME", "Warehouse"),
            "phone": env.get("SHIP_FROM_PHONE", ""),
            "addressLine1": env.get("SHIP_FROM_ADDRESS_LINE1", ""),
            "addressLine2": env.get("SHIP_FROM_ADDRESS_LINE2", ""),
            "city": env.get("SHIP_FROM_CITY", ""),
            "state": env.get("SHIP_FROM_STATE", ""),
            "postalCode": env.get("SHIP_FROM_POSTAL_CODE", ""),
            "country": env.get("SHIP_FROM_COUNTRY", "US"),
        }
        carrier = CarrierSettings(
            adapter=env.get("CARRIER_ADAPTER", "fake").strip().lower(),
            shipengine_api_key=env.get("SHIPENGINE_API_KEY", "").strip(),
            shipengine_base_url=env.get("SHIPENGINE_BASE_URL", "https://api.shipengine.com"),
            carrier_id=env.get("SHIPENGINE_CARRIER_ID", "").strip(),
            ship_from=ship_from,
            timeout_seconds=float(env.get("CARRIER_TIMEOUT_SECONDS", "10")),
        )

        notifications = NotificationSettings(
            email_adapter=env.get("EMAIL_ADAPTER", "fake").strip().lower(),
            sender=env.get("EMAIL_SENDER", "orders@example.com"),
            staff_recipients=_csv(env.get("STAFF_NOTIFICATION_RECIPIENTS")),
            smtp_host=env.get("SMTP_HOST", "localhost"),
            smtp_port=int(env.get("SMTP_PORT", "25")),
            max_retries=int(env.get("NOTIFICATION_MAX_RETRIES", "5")),
            backoff_seconds=int(env.get("NOTIFICATION_BACKOFF_SECONDS", "30")),
            poll_interval_seconds=float(env.get("WORKER_POLL_SECONDS", "5")),
            stale_after_seconds=int(env.get("NOTIFICATION_STALE_SECONDS", "300")),
        )

        return cls(
            database_url=env.get("DATABASE_URL", "sqlite:///checkout.db"),
            environment=env.get("APP_ENV", "development").strip().lower(),
            log_level=env.get("LOG_LEVEL") or None,
            log_dir=env.get("LOG_DIR") or None,
            currency=env.get("STORE_CURRENCY", "USD").strip().upper(),
            reservation_ttl_seconds=int(env.get("RESERVATION_TTL_SECONDS", "900")),
            sweep_interval_seconds=float(env.get("RESERVATION_SWEEP_SECONDS", "60")),
            label_claim_timeout_seconds=int(env.get("LABEL_CLAIM_TIMEOUT_SECONDS", "600")),
            event_processing=_event_processing(env.get("EVENT_PROCESSING")),
            event_store_url=env.get("EVENT_STORE_URL") or None,
            run_workers=_flag(env.get("RUN_WORKERS")),
            payment=payment,
            carrier=carrier,
            notifications=notifications,
        )
