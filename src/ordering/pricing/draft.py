"""Pricing draft builder.

Turns requested cart lines into an immutable, fully priced draft: unit prices
(honouring active sales), coupon discount, tax and shipping, and the total.
Nothing here writes to the database.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from types import MappingProxyType

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from catalogue.product.product import Product
from identity.account.account import Account
from ordering.pricing.coupons import CouponEvaluation, CouponEvaluator, CouponLine
from ordering.pricing.tax import TaxLocation, TaxResolver, extract_company_location, normalize_location
from shared.config import Settings
from shared.exceptions import InvalidQuantity, ProductNotFound, ValidationError
from shared.money import ZERO, round_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RequestedItem:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class ShippingQuote:
    """A carrier rate previously quoted to the buyer and echoed back at checkout."""

    rate_id: str
    carrier_name: str
    service_name: str
    price: Decimal
    carrier_id: str | None = None
    carrier_code: str | None = None
    service_code: str | None = None
    currency: str | None = None
    delivery_days: int | None = None
    estimated_delivery: str | None = None

    @property
    def method_label(self) -> str:
        return f"{self.carrier_name} - {self.service_name}"

    def snapshot(self) -> dict:
        return {
            "rateId": self.rate_id,
            "carrierId": self.carrier_id,
            "carrierCode": self.carrier_code,
            "carrierName": self.carrier_name,
            "serviceCode": self.service_code,
            "serviceName": self.service_name,
            "deliveryDays": self.delivery_days,
            "estimatedDelivery": self.estimated_delivery,
        }


@dataclass(frozen=True)
class DraftLine:
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    categories: frozenset[str] = frozenset()

    @property
    def line_total(self) -> Decimal:
        return round_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class AppliedCoupon:
    code: str
    type: str
    amount: Decimal
    discount_amount: Decimal
    eligible_subtotal: Decimal

    @classmethod
    def from_evaluation(cls, evaluation: CouponEvaluation) -> "AppliedCoupon":
        return cls(
            code=evaluation.code,
            type=evaluation.type,
            amount=evaluation.amount,
            discount_amount=evaluation.discount_amount,
            eligible_subtotal=evaluation.eligible_subtotal,
        )

    def snapshot(self) -> dict:
        return {
            "code": self.code,
            "type": self.type,
            "amount": float(self.amount),
            "discountAmount": float(self.discount_amount),
            "eligibleSubtotal": float(self.eligible_subtotal),
        }


@dataclass(frozen=True)
class PricingDraft:
    lines: tuple[DraftLine, ...]
    subtotal: Decimal
    discount_amount: Decimal
    applied_coupon: AppliedCoupon | None
    tax_rate: Decimal
    tax_amount: Decimal
    tax_country: str | None
    tax_state: str | None
    shipping_method: str
    shipping_cost: Decimal
    shipping_quote: ShippingQuote | None
    total: Decimal
    currency: str
    _quantities: Mapping[str, int] = field(default_factory=dict, repr=False)

    @property
    def quantities(self) -> Mapping[str, int]:
        """Per-product quantities for stock reservation."""
        return MappingProxyType(dict(self._quantities))

    @property
    def product_ids(self) -> list[str]:
        return [line.product_id for line in self.lines]

    @property
    def taxable_amount(self) -> Decimal:
        return max(ZERO, self.subtotal - self.discount_amount)


def merge_items(items: Iterable[RequestedItem]) -> dict[str, int]:
    """Merge repeated products into one line, keeping first-seen order."""
    merged: dict[str, int] = {}
    for item in items:
        quantity = item.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantity(item.product_id, quantity)
        merged[str(item.product_id)] = merged.get(str(item.product_id), 0) + quantity
    if not merged:
        raise ValidationError({"products": ["At least one product is required"]})
    return merged


def compute_total(subtotal, discount_amount, tax_amount, shipping_cost) -> Decimal:
    return max(ZERO, round_money(subtotal - discount_amount + tax_amount + shipping_cost))


class PricingDraftBuilder:
    def __init__(self, settings: Settings):
        self.settings = settings

    def price_lines(self, items: Iterable[RequestedItem], now: datetime | None = None) -> tuple[DraftLine, ...]:
        """Resolve each product and snapshot its current unit price."""
        now = now or datetime.now(UTC)
        repo = current_domain.repository_for(Product)
        lines = []
        for product_id, quantity in merge_items(items).items():
            try:
                product = repo.get(product_id)
            except ObjectNotFoundError:
                raise ProductNotFound(product_id) from None
            lines.append(
                DraftLine(
                    product_id=str(product.id),
                    name=product.name,
                    quantity=quantity,
                    unit_price=product.unit_price(now),
                    categories=frozenset(product.category_memberships),
                )
            )
        return tuple(lines)

    def evaluate_coupon(self, code: str, lines: Iterable[DraftLine]) -> CouponEvaluation:
        coupon_lines = [CouponLine(line.product_id, line.line_total, line.categories) for line in lines]
        return CouponEvaluator().evaluate(code, coupon_lines)

    def _resolve_shipping(self, method: str, quote: ShippingQuote | None) -> tuple[str, Decimal]:
        if quote is not None:
            return quote.method_label, max(ZERO, round_money(quote.price))

        costs = self.settings.fallback_shipping_costs
        if method not in costs:
            raise ValidationError({"shipping_method": [f"Unknown shipping method: {method}"]})
        return method, max(ZERO, round_money(costs[method]))

    def _resolve_tax_location(self, account: Account | None, explicit: TaxLocation | None) -> TaxLocation | None:
        if account is not None and not account.is_taxable:
            return None
        if explicit is not None:
            return explicit
        if account is None:
            return None
        return extract_company_location(account.tax_location_source)

    def build(
        self,
        account: Account | None,
        items: Iterable[RequestedItem],
        coupon_code: str | None = None,
        shipping_method: str = "standard",
        shipping_quote: ShippingQuote | None = None,
        tax_location: TaxLocation | None = None,
        tax_override=None,
        now: datetime | None = None,
    ) -> PricingDraft:
        lines = self.price_lines(items, now=now)
        subtotal = round_money(sum((line.line_total for line in lines), ZERO))

        applied_coupon = None
        discount_amount = ZERO
        if coupon_code:
            applied_coupon = AppliedCoupon.from_evaluation(self.evaluate_coupon(coupon_code, lines))
            discount_amount = applied_coupon.discount_amount

        taxable = max(ZERO, subtotal - discount_amount)
        tax_rate = Decimal("0")
        tax_amount = ZERO
        tax_country = None
        tax_state = None

        location = self._resolve_tax_location(account, tax_location)
        if location is not None:
            match = TaxResolver().resolve(location)
            if match is not None:
                tax_rate = Decimal(str(match.rate))
                tax_country = match.country
                tax_state = match.state
            tax_amount = round_money(taxable * tax_rate / Decimal(100))

        if tax_override is not None:
            tax_amount = round_money(tax_override)
            if tax_amount < 0:
                raise ValidationError({"tax_amount": ["Tax override cannot be negative"]})
            if location is not None and tax_country is None:
                tax_country = normalize_location(location.country)
                tax_state = normalize_location(location.state)

        method_label, shipping_cost = self._resolve_shipping(shipping_method, shipping_quote)

        draft = PricingDraft(
            lines=lines,
            subtotal=subtotal,
            discount_amount=discount_amount,
            applied_coupon=applied_coupon,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            tax_country=tax_country,
            tax_state=tax_state,
            shipping_method=method_label,
            shipping_cost=shipping_cost,
            shipping_quote=shipping_quote,
            total=compute_total(subtotal, discount_amount, tax_amount, shipping_cost),
            currency=self.settings.currency,
            _quantities={line.product_id: line.quantity for line in lines},
        )
        logger.debug(
            "Pricing draft built",
            subtotal=str(draft.subtotal),
            discount=str(draft.discount_amount),
            tax=str(draft.tax_amount),
            shipping=str(draft.shipping_cost),
            total=str(draft.total),
        )
        return draft
