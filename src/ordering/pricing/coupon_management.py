"""Coupon management: commands and handler for the admin coupon endpoints."""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, String, Text
from protean.utils.globals import current_domain
from sqlalchemy.exc import IntegrityError

from ordering.pricing.coupons import Coupon, find_by_code
from shared.domain import checkout
from shared.utils.db import current_session

logger = structlog.get_logger(__name__)


@checkout.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=100)
    type = String(required=True, max_length=20)
    amount = Float(required=True)
    is_active = Boolean(default=True)
    category_ids = Text()  # JSON: list of category ids
    product_ids = Text()  # JSON: list of product ids


@checkout.command(part_of="Coupon")
class UpdateCoupon:
    """Partial update: fields left as None keep their stored value."""

    coupon_id = Identifier(required=True)
    code = String(max_length=100)
    type = String(max_length=20)
    amount = Float()
    is_active = Boolean()
    category_ids = Text()
    product_ids = Text()


@checkout.command(part_of="Coupon")
class DeleteCoupon:
    coupon_id = Identifier(required=True)


def _id_list(value):
    return json.loads(value) if value is not None else None


def _code_taken(code: str, exclude_id: str | None = None) -> bool:
    existing = find_by_code(code)
    return existing is not None and str(existing.id) != str(exclude_id)


def _duplicate_code(code: str) -> ValidationError:
    return ValidationError({"code": [f"Coupon {code} already exists"]})


def _store(coupon: Coupon) -> None:
    """Persist and flush, so a concurrent insert of the same code fails here."""
    try:
        current_domain.repository_for(Coupon).add(coupon)
        current_session().flush()
    except IntegrityError:
        logger.info("Coupon code collided on write", code=coupon.code)
        raise _duplicate_code(coupon.code) from None


@checkout.command_handler(part_of=Coupon)
class CouponCommandHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        coupon = Coupon.create(
            code=command.code,
            type=command.type,
            amount=command.amount,
            is_active=command.is_active,
            category_ids=_id_list(command.category_ids),
            product_ids=_id_list(command.product_ids),
        )
        if _code_taken(coupon.code):
            raise _duplicate_code(coupon.code)
        _store(coupon)

        logger.info("Coupon created", code=coupon.code, type=coupon.type, amount=coupon.amount)
        return str(coupon.id)

    @handle(UpdateCoupon)
    def update_coupon(self, command):
        coupon = current_domain.repository_for(Coupon).get(command.coupon_id)
        coupon.revise(
            code=command.code,
            type=command.type,
            amount=command.amount,
            is_active=command.is_active,
            category_ids=_id_list(command.category_ids),
            product_ids=_id_list(command.product_ids),
        )
        if _code_taken(coupon.code, exclude_id=coupon.id):
            raise _duplicate_code(coupon.code)
        _store(coupon)

        logger.info("Coupon updated", coupon_id=str(coupon.id), code=coupon.code)
        return str(coupon.id)

    @handle(DeleteCoupon)
    def delete_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(command.coupon_id)
        repo.remove(coupon)
        logger.info("Coupon deleted", coupon_id=str(command.coupon_id), code=coupon.code)
