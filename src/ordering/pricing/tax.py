"""Tax rates and the tax resolver.

Rates are keyed by a normalised (country, state) pair. A state-specific rate
wins over the country default; with no country at all, a state-only rate is
used as a last resort.
"""

from dataclasses import dataclass
from decimal import Decimal

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, String
from protean.utils.globals import current_domain
from sqlalchemy import String as SQLString
from sqlalchemy import column, select, table

from shared.domain import checkout
from shared.utils.dates import db_timestamp
from shared.utils.db import sql_session


def normalize_location(value) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return trimmed.lower()


@dataclass(frozen=True)
class TaxLocation:
    country: str | None = None
    state: str | None = None


def extract_company_location(source: dict | None) -> TaxLocation:
    """Read a location from explicit country/state fields, else parse "..., state, country"."""
    if not isinstance(source, dict):
        return TaxLocation()
    if source.get("country") or source.get("state"):
        return TaxLocation(country=source.get("country") or None, state=source.get("state") or None)

    address = source.get("address") if isinstance(source.get("address"), str) else ""
    parts = [part.strip() for part in address.split(",") if part.strip()]
    if not parts:
        return TaxLocation()
    country = parts[-1]
    state = parts[-2] if len(parts) > 1 else None
    return TaxLocation(country=country, state=state)


def validate_rate(rate) -> Decimal:
    rate = Decimal(str(rate))
    if rate < 0 or rate > 100:
        raise ValidationError({"rate": ["Tax rate must be between 0 and 100"]})
    return rate


@checkout.aggregate(schema_name="tax_rates")
class TaxRate:
    country = String(max_length=100)
    state = String(max_length=100)
    country_key = String(max_length=100)
    state_key = String(max_length=100)
    rate = Float(required=True)
    updated_at = DateTime()

    @classmethod
    def create(cls, country, state, rate):
        country_key = normalize_location(country)
        state_key = normalize_location(state)
        if country_key is None and state_key is None:
            raise ValidationError({"country": ["A country or a state is required"]})
        return cls(
            country=country.strip() if country_key else None,
            state=state.strip() if state_key else None,
            country_key=country_key,
            state_key=state_key,
            rate=float(validate_rate(rate)),
            updated_at=db_timestamp(),
        )

    def change_rate(self, rate, country=None, state=None) -> None:
        self.rate = float(validate_rate(rate))
        if normalize_location(country):
            self.country = country.strip()
        if normalize_location(state):
            self.state = state.strip()
        self.updated_at = db_timestamp()

    def to_dict(self) -> dict:
        return {"id": str(self.id), "country": self.country, "state": self.state, "rate": self.rate}


tax_rates = table(
    "tax_rates",
    column("id", SQLString),
    column("country_key", SQLString),
    column("state_key", SQLString),
)


def _key_clause(key_column, key):
    return key_column.is_(None) if key is None else key_column == key


def find_tax_rate(country_key: str | None, state_key: str | None) -> TaxRate | None:
    """The rate stored for an exact normalised (country, state) pair."""
    # NULL never equals NULL, so missing keys are matched with IS NULL
    with sql_session() as session:
        rate_id = session.execute(
            select(tax_rates.c.id).where(
                _key_clause(tax_rates.c.country_key, country_key),
                _key_clause(tax_rates.c.state_key, state_key),
            )
        ).scalar()
    if rate_id is None:
        return None
    return current_domain.repository_for(TaxRate).get(rate_id)


def list_tax_rates() -> list[TaxRate]:
    with sql_session() as session:
        rate_ids = session.execute(
            select(tax_rates.c.id).order_by(tax_rates.c.country_key, tax_rates.c.state_key)
        ).scalars().all()
    repo = current_domain.repository_for(TaxRate)
    return [repo.get(rate_id) for rate_id in rate_ids]


class TaxResolver:
    def resolve(self, location: TaxLocation) -> TaxRate | None:
        """Return the most specific rate for a location, or None when nothing matches."""
        country_key = normalize_location(location.country)
        state_key = normalize_location(location.state)

        if country_key:
            if state_key:
                match = find_tax_rate(country_key, state_key)
                if match is not None:
                    return match
            return find_tax_rate(country_key, None)

        if state_key:
            return find_tax_rate(None, state_key)
        return None
