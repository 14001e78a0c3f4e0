# src/db/checkout.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from db.cart import CartLedger
from db.coupons import CouponEvaluator, normalize_code
from db.models import Coupon, CouponCheck, CustomerInfo, Order, Rejection
from db.orders import OrderRecorder
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass(frozen=True)
class CheckoutPreview:
    subtotal: float
    discount: float
    total: float
    coupon: Optional[CouponCheck] = None


@dataclass(frozen=True)
class CheckoutResult:
    ok: bool
    order: Optional[Order] = None
    coupon: Optional[CouponCheck] = None
    rejection: Optional[Rejection] = None
    message: Optional[str] = None
    redeemed: bool = False


class Checkout:
    """
    Order of events when the shopper presses "place order":

    1. re-validate the coupon against its current state
    2. store the order (lines snapshot the live products) and delete the
       cart lines in the same transaction
    3. count the coupon redemption, only if the order was stored
    4. reload the cart; its stock now belongs to the order
    """

    def __init__(
        self, cart: CartLedger, coupons: CouponEvaluator, orders: OrderRecorder
    ) -> None:
        self.cart = cart
        self.coupons = coupons
        self.orders = orders

    async def preview(
        self, coupon_code: Optional[str] = None, now: Optional[datetime] = None
    ) -> CheckoutPreview:
        await self.cart.reload()
        subtotal = self.cart.total_price
        if not normalize_code(coupon_code):
            return CheckoutPreview(subtotal=subtotal, discount=0.0, total=subtotal)
        check = await self.coupons.validate(coupon_code, subtotal, now=now)
        discount = check.discount if check.is_valid else 0.0
        return CheckoutPreview(
            subtotal=subtotal, discount=discount, total=subtotal - discount, coupon=check
        )

    async def submit(
        self,
        customer: CustomerInfo,
        coupon_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CheckoutResult:
        await self.cart.reload()
        if self.cart.is_empty:
            return CheckoutResult(False, rejection=Rejection.EMPTY_CART, message="Cart is empty.")

        missing = customer.missing_fields()
        if missing:
            return CheckoutResult(
                False,
                rejection=Rejection.INVALID_CUSTOMER,
                message="Please fill in: " + ", ".join(f.replace("_", " ") for f in missing),
            )

        subtotal = self.cart.total_price
        check: Optional[CouponCheck] = None
        applied: Optional[Coupon] = None
        discount = 0.0
        if normalize_code(coupon_code):
            # never trust an earlier check, the coupon may have changed since
            check = await self.coupons.validate(coupon_code, subtotal, now=now)
            if not check.is_valid:
                return CheckoutResult(
                    False,
                    coupon=check,
                    rejection=Rejection.INVALID_COUPON,
                    message=check.message,
                )
            applied = check.applied
            discount = check.discount

        placed = await self.orders.place_order(
            self.cart.lines,
            subtotal - discount,
            customer,
            coupon_code=applied.code if applied else None,
            discount_amount=discount,
            now=now,
            consume_lines=True,
        )
        if not placed.ok:
            # nothing redeemed, cart and reservations stay as they are
            return CheckoutResult(
                False, coupon=check, rejection=placed.rejection, message=placed.message
            )

        redeemed = False
        if applied is not None:
            outcome = await self.coupons.commit_redemption(applied)
            redeemed = outcome.ok
            if not outcome.ok:
                _logger.warning(
                    f"Order {placed.order.id} placed but coupon {applied.code} "
                    f"was not counted: {outcome.message}"
                )

        await self.cart.reload()
        return CheckoutResult(True, order=placed.order, coupon=check, redeemed=redeemed)
