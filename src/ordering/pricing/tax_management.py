"""Tax rate management: commands and handler for the admin tax-rate endpoints."""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.pricing.tax import TaxRate, find_tax_rate, normalize_location
from shared.domain import checkout

logger = structlog.get_logger(__name__)


@checkout.command(part_of="TaxRate")
class SetTaxRate:
    """Create or replace the rate for a (country, state) pair."""

    country = String(max_length=100)
    state = String(max_length=100)
    rate = Float(required=True)


@checkout.command(part_of="TaxRate")
class DeleteTaxRate:
    tax_rate_id = Identifier(required=True)


@checkout.command_handler(part_of=TaxRate)
class TaxRateCommandHandler:
    @handle(SetTaxRate)
    def set_tax_rate(self, command):
        repo = current_domain.repository_for(TaxRate)
        existing = find_tax_rate(normalize_location(command.country), normalize_location(command.state))
        if existing is not None:
            existing.change_rate(command.rate, country=command.country, state=command.state)
            repo.add(existing)
            logger.info("Tax rate updated", country=existing.country_key, state=existing.state_key, rate=command.rate)
            return existing.to_dict()

        tax_rate = TaxRate.create(command.country, command.state, command.rate)
        repo.add(tax_rate)
        logger.info("Tax rate created", country=tax_rate.country_key, state=tax_rate.state_key, rate=command.rate)
        return tax_rate.to_dict()

    @handle(DeleteTaxRate)
    def delete_tax_rate(self, command):
        repo = current_domain.repository_for(TaxRate)
        tax_rate = repo.get(command.tax_rate_id)
        repo.remove(tax_rate)
        logger.info("Tax rate deleted", tax_rate_id=str(command.tax_rate_id))
