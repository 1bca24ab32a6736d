"""Coupons and the coupon evaluator.

A coupon either applies to the whole cart (no restrictions) or to the lines
whose product, or one of whose categories, it names. The discount is computed
on the eligible part of the cart only.
"""

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, String, Text
from protean.utils.globals import current_domain

from shared.domain import checkout
from shared.exceptions import CouponInvalid, CouponNotApplicable
from shared.money import ZERO, round_money
from shared.utils.dates import db_timestamp

_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,40}$")


class CouponType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_coupon_code(code: str) -> str:
    """Trim and upper-case a coupon code, rejecting malformed ones."""
    cleaned = (code or "").strip()
    if not _CODE_PATTERN.match(cleaned):
        raise ValidationError(
            {
                "coupon_code": [
                    "Coupon codes must be 3-40 characters and may only contain letters, numbers, hyphens, and underscores"
                ]
            }
        )
    return cleaned.upper()


def _coupon_type(value) -> CouponType:
    try:
        return CouponType(value)
    except ValueError:
        raise ValidationError({"type": [f"Unknown coupon type: {value}"]}) from None


def _checked_amount(coupon_type: CouponType, amount) -> Decimal:
    amount = round_money(amount)
    if amount <= 0:
        raise ValidationError({"amount": ["Coupon amount must be positive"]})
    if coupon_type == CouponType.PERCENTAGE and amount > 100:
        raise ValidationError({"amount": ["Percentage discounts cannot exceed 100"]})
    return amount


def _id_list(values) -> str:
    return json.dumps([str(value) for value in values or []])


@checkout.aggregate(schema_name="coupons")
class Coupon:
    code = String(max_length=40, required=True)
    type = String(max_length=20, choices=CouponType, required=True)
    amount = Float(required=True)
    is_active = Boolean(default=True)
    category_ids_data = Text()
    product_ids_data = Text()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, code, type, amount, is_active=True, category_ids=None, product_ids=None):
        coupon_type = _coupon_type(type)
        amount = _checked_amount(coupon_type, amount)
        now = db_timestamp()
        return cls(
            code=normalize_coupon_code(code),
            type=coupon_type.value,
            amount=float(amount),
            is_active=is_active,
            category_ids_data=_id_list(category_ids),
            product_ids_data=_id_list(product_ids),
            created_at=now,
            updated_at=now,
        )

    def revise(self, code=None, type=None, amount=None, is_active=None, category_ids=None, product_ids=None):
        """Apply a partial update; type and amount are validated together."""
        coupon_type = _coupon_type(type if type is not None else self.type)
        checked = _checked_amount(coupon_type, amount if amount is not None else self.amount)

        if code is not None:
            self.code = normalize_coupon_code(code)
        self.type = coupon_type.value
        self.amount = float(checked)
        if is_active is not None:
            self.is_active = is_active
        if category_ids is not None:
            self.category_ids_data = _id_list(category_ids)
        if product_ids is not None:
            self.product_ids_data = _id_list(product_ids)
        self.updated_at = db_timestamp()

    @property
    def category_ids(self) -> list[str]:
        return json.loads(self.category_ids_data) if self.category_ids_data else []

    @property
    def product_ids(self) -> list[str]:
        return json.loads(self.product_ids_data) if self.product_ids_data else []

    @property
    def applies_to_all(self) -> bool:
        return not self.category_ids and not self.product_ids

    def covers(self, product_id: str, categories: Iterable[str]) -> bool:
        if self.applies_to_all:
            return True
        if str(product_id) in set(self.product_ids):
            return True
        return bool(set(self.category_ids) & {str(c) for c in categories})

    def discount_for(self, eligible_subtotal: Decimal) -> Decimal:
        amount = round_money(self.amount)
        if self.type == CouponType.PERCENTAGE.value:
            discount = eligible_subtotal * amount / Decimal(100)
        else:
            discount = min(amount, eligible_subtotal)
        return round_money(discount)


def list_coupons() -> list[Coupon]:
    """Every coupon, newest first."""
    return current_domain.repository_for(Coupon)._dao.query.order_by("-created_at").all().items


def find_by_code(code: str) -> Coupon | None:
    """The coupon stored under an already normalised code, if any."""
    matches = current_domain.repository_for(Coupon)._dao.query.filter(code=code).all().items
    return matches[0] if matches else None


@dataclass(frozen=True)
class CouponLine:
    """One priced cart line as the evaluator needs to see it."""

    product_id: str
    line_total: Decimal
    categories: frozenset[str] = frozenset()


@dataclass(frozen=True)
class CouponEvaluation:
    code: str
    type: str
    amount: Decimal
    eligible_subtotal: Decimal
    discount_amount: Decimal
    eligible_product_ids: frozenset[str]


class CouponEvaluator:
    """Validates a coupon against a set of cart lines and computes its discount."""

    def find_active(self, code: str) -> Coupon:
        coupon = find_by_code(normalize_coupon_code(code))
        if coupon is None or not coupon.is_active:
            raise CouponInvalid()
        return coupon

    def evaluate(self, code: str, lines: Iterable[CouponLine]) -> CouponEvaluation:
        coupon = self.find_active(code)

        eligible_subtotal = ZERO
        eligible_ids = set()
        for line in lines:
            if coupon.covers(line.product_id, line.categories):
                eligible_subtotal += line.line_total
                eligible_ids.add(str(line.product_id))

        if eligible_subtotal <= 0:
            raise CouponNotApplicable()

        return CouponEvaluation(
            code=coupon.code,
            type=coupon.type,
            amount=round_money(coupon.amount),
            eligible_subtotal=round_money(eligible_subtotal),
            discount_amount=coupon.discount_for(eligible_subtotal),
            eligible_product_ids=frozenset(eligible_ids),
        )

