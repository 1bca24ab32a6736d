"""FastAPI routes for the Ordering domain: orders, coupons and tax rates.

Handlers are plain functions; FastAPI runs them in its threadpool, so the
blocking database and provider calls never stall the event loop. Writes go
through domain commands processed synchronously.
"""

import json

from fastapi import APIRouter, Depends, Response
from protean.utils.globals import current_domain

from fulfillment.fulfillment.tracking import tracking_for
from identity.account.account import Account
from ordering.api.schemas import (
    ApplyCouponRequest,
    CouponPreviewResponse,
    CouponResponse,
    CreateCouponRequest,
    CreateOrderRequest,
    TaxRateRequest,
    TaxRateResponse,
    UpdateCouponRequest,
    UpdateOrderRequest,
)
from ordering.checkout.checkout import CheckoutRequest, place_order
from ordering.order.fulfillment import update_order_status
from ordering.order.queries import get_order, list_orders
from ordering.pricing.coupon_management import CreateCoupon, DeleteCoupon, UpdateCoupon
from ordering.pricing.coupons import Coupon, list_coupons
from ordering.pricing.draft import PricingDraftBuilder
from ordering.pricing.tax import TaxLocation, TaxResolver, list_tax_rates
from ordering.pricing.tax_management import DeleteTaxRate, SetTaxRate
from shared.api import admin_account, current_account, get_settings
from shared.config import Settings
from shared.money import ZERO, round_money


def _json_list(values: list[str] | None) -> str | None:
    return json.dumps([str(value) for value in values]) if values is not None else None


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201)
def create_order(
    body: CreateOrderRequest,
    account: Account = Depends(current_account),
    settings: Settings = Depends(get_settings),
) -> dict:
    request = CheckoutRequest(
        account_id=str(account.id),
        items=tuple(item.to_requested() for item in body.products),
        coupon_code=body.coupon_code,
        shipping_method=body.shipping_method,
        shipping_address_id=body.shipping_address_id,
        shipping_quote=body.shipping_rate.to_quote() if body.shipping_rate else None,
        payment_method=body.payment_method,
        payment_id=body.payment_id,
    )
    order = place_order(settings, request)
    return {"order": order.to_dict()}


@order_router.get("")
def list_account_orders(account: Account = Depends(current_account)) -> dict:
    return {"orders": [order.to_dict() for order in list_orders(account)]}


@order_router.get("/{order_id}")
def get_account_order(order_id: str, account: Account = Depends(current_account)) -> dict:
    return {"order": get_order(account, order_id).to_dict()}


@order_router.patch("/{order_id}")
def update_order(
    order_id: str,
    body: UpdateOrderRequest,
    _admin: Account = Depends(admin_account),
    settings: Settings = Depends(get_settings),
) -> dict:
    order = update_order_status(settings, order_id, body.status)
    return {"order": order.to_dict()}


@order_router.get("/{order_id}/tracking")
def get_order_tracking(order_id: str, account: Account = Depends(current_account)) -> dict:
    return tracking_for(get_order(account, order_id))


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("", status_code=201, response_model=CouponResponse)
def create_coupon(body: CreateCouponRequest, _admin: Account = Depends(admin_account)) -> CouponResponse:
    coupon_id = current_domain.process(
        CreateCoupon(
            code=body.code,
            type=body.type,
            amount=float(body.amount),
            is_active=body.is_active,
            category_ids=_json_list(body.category_ids),
            product_ids=_json_list(body.product_ids),
        ),
        asynchronous=False,
    )
    return CouponResponse.from_coupon(current_domain.repository_for(Coupon).get(coupon_id))


@coupon_router.get("")
def get_coupons(_admin: Account = Depends(admin_account)) -> dict:
    coupons = [CouponResponse.from_coupon(coupon).model_dump(by_alias=True) for coupon in list_coupons()]
    return {"coupons": coupons}


@coupon_router.put("/{coupon_id}")
def update_coupon(coupon_id: str, body: UpdateCouponRequest, _admin: Account = Depends(admin_account)) -> dict:
    current_domain.process(
        UpdateCoupon(
            coupon_id=coupon_id,
            code=body.code,
            type=body.type,
            amount=float(body.amount) if body.amount is not None else None,
            is_active=body.is_active,
            category_ids=_json_list(body.category_ids),
            product_ids=_json_list(body.product_ids),
        ),
        asynchronous=False,
    )
    coupon = current_domain.repository_for(Coupon).get(coupon_id)
    return {"coupon": CouponResponse.from_coupon(coupon).model_dump(by_alias=True)}


@coupon_router.delete("/{coupon_id}", status_code=204)
def delete_coupon(coupon_id: str, _admin: Account = Depends(admin_account)) -> Response:
    current_domain.process(DeleteCoupon(coupon_id=coupon_id), asynchronous=False)
    return Response(status_code=204)


@coupon_router.post("/apply", response_model=CouponPreviewResponse)
def apply_coupon(
    body: ApplyCouponRequest,
    _account: Account = Depends(current_account),
    settings: Settings = Depends(get_settings),
) -> CouponPreviewResponse:
    """Preview a coupon against a product list without placing an order."""
    builder = PricingDraftBuilder(settings)
    lines = builder.price_lines([item.to_requested() for item in body.products])
    evaluation = builder.evaluate_coupon(body.code, lines)
    subtotal = round_money(sum((line.line_total for line in lines), ZERO))
    return CouponPreviewResponse(
        code=evaluation.code,
        type=evaluation.type,
        amount=float(evaluation.amount),
        subtotal=float(subtotal),
        eligible_subtotal=float(evaluation.eligible_subtotal),
        discount_amount=float(evaluation.discount_amount),
        eligible_product_ids=sorted(evaluation.eligible_product_ids),
    )


# ---------------------------------------------------------------------------
# Tax Rate Router
# ---------------------------------------------------------------------------
tax_router = APIRouter(prefix="/tax-rates", tags=["tax-rates"])


@tax_router.put("", response_model=TaxRateResponse)
def put_tax_rate(body: TaxRateRequest, _admin: Account = Depends(admin_account)) -> TaxRateResponse:
    stored = current_domain.process(
        SetTaxRate(country=body.country, state=body.state, rate=float(body.rate)),
        asynchronous=False,
    )
    return TaxRateResponse(**stored)


@tax_router.get("", response_model=list[TaxRateResponse])
def get_tax_rates(_admin: Account = Depends(admin_account)) -> list[TaxRateResponse]:
    return [TaxRateResponse.from_tax_rate(rate) for rate in list_tax_rates()]


@tax_router.get("/lookup")
def lookup_tax_rate(
    country: str | None = None,
    state: str | None = None,
    _account: Account = Depends(current_account),
) -> dict:
    match = TaxResolver().resolve(TaxLocation(country=country, state=state))
    if match is None:
        return {"rate": None}
    return {"rate": TaxRateResponse.from_tax_rate(match).model_dump(by_alias=True)}


@tax_router.delete("/{tax_rate_id}", status_code=204)
def delete_tax_rate(tax_rate_id: str, _admin: Account = Depends(admin_account)) -> Response:
    current_domain.process(DeleteTaxRate(tax_rate_id=tax_rate_id), asynchronous=False)
    return Response(status_code=204)
