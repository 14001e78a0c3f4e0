# src/db/coupons.py
from __future__ import annotations

from datetime import datetime
from sqlite3 import Row
from typing import List, Optional, Union

from db.database import PersistenceError, Store, from_iso, new_id, now_iso, to_iso
from db.models import (
    Coupon,
    CouponCheck,
    CouponRejection,
    DiscountType,
    Outcome,
    Rejection,
)
from utils.logger import get_logger
from utils.pure import format_currency

_logger = get_logger(__name__)

MSG_NOT_FOUND = "Coupon code not found."
MSG_INACTIVE = "This coupon is no longer active."
MSG_EXPIRED = "This coupon has expired."
MSG_EXHAUSTED = "This coupon has already been redeemed."
MSG_MINIMUM = "Minimum order value: {amount}"
MSG_APPLIED = "Coupon applied! You save {amount}"

COUPON_COLUMNS = """
    id, code, discount_type, discount_value, minimum_order_amount, max_usage,
    usage_count, is_active, expiry_date, created_at
"""


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def coupon_from_row(row: Row) -> Coupon:
    return Coupon(
        id=row["id"],
        code=row["code"],
        discount_type=DiscountType(row["discount_type"]),
        discount_value=float(row["discount_value"]),
        minimum_order_amount=float(row["minimum_order_amount"]),
        max_usage=int(row["max_usage"]),
        usage_count=int(row["usage_count"]),
        is_active=bool(row["is_active"]),
        expiry_date=from_iso(row["expiry_date"]),
        created_at=from_iso(row["created_at"]),
    )


def _invalid(rejection: CouponRejection, message: Optional[str]) -> CouponCheck:
    return CouponCheck(is_valid=False, message=message, rejection=rejection)


class CouponEvaluator:
    """Coupon checks at checkout, redemption bookkeeping and coupon admin."""

    def __init__(self, store: Store) -> None:
        self.store = store
        self.error_message: Optional[str] = None

    # ---------------------------
    # Checkout
    # ---------------------------

    @staticmethod
    def compute_discount(coupon: Coupon, order_subtotal: float) -> float:
        """
        Discount for a subtotal; never negative and never more than the subtotal.
        """
        if order_subtotal <= 0:
            return 0.0
        if coupon.discount_type == DiscountType.PERCENT:
            discount = order_subtotal * (coupon.discount_value / 100.0)
        else:
            discount = coupon.discount_value
        return max(0.0, min(discount, order_subtotal))

    async def get_by_code(self, code: str) -> Optional[Coupon]:
        """Exact, case-insensitive match."""
        row = await self.store.fetch_one(
            f"SELECT {COUPON_COLUMNS} FROM coupons WHERE code = ? COLLATE NOCASE LIMIT 1;",
            (normalize_code(code),),
        )
        return coupon_from_row(row) if row else None

    async def validate(
        self, code: str, order_subtotal: float, now: Optional[datetime] = None
    ) -> CouponCheck:
        """
        Run the whole rule chain against the coupon's current state.
        Nothing is redeemed here; see commit_redemption.
        """
        normalized = normalize_code(code)
        if not normalized:
            return _invalid(CouponRejection.EMPTY, None)

        try:
            coupon = await self.get_by_code(normalized)
        except PersistenceError as e:
            _logger.warning(f"Coupon lookup failed: {e}")
            self.error_message = str(e)
            return _invalid(CouponRejection.NOT_FOUND, MSG_NOT_FOUND)

        if coupon is None:
            return _invalid(CouponRejection.NOT_FOUND, MSG_NOT_FOUND)
        if not coupon.is_active:
            return _invalid(CouponRejection.INACTIVE, MSG_INACTIVE)
        now = now or datetime.now()
        if coupon.expiry_date is not None and coupon.expiry_date < now:
            return _invalid(CouponRejection.EXPIRED, MSG_EXPIRED)
        if coupon.is_exhausted:
            return _invalid(CouponRejection.EXHAUSTED, MSG_EXHAUSTED)
        if coupon.minimum_order_amount > 0 and order_subtotal < coupon.minimum_order_amount:
            return _invalid(
                CouponRejection.BELOW_MINIMUM,
                MSG_MINIMUM.format(amount=format_currency(coupon.minimum_order_amount)),
            )

        discount = self.compute_discount(coupon, order_subtotal)
        return CouponCheck(
            is_valid=True,
            applied=coupon,
            message=MSG_APPLIED.format(amount=format_currency(discount)),
            discount=discount,
        )

    async def commit_redemption(self, coupon: Coupon) -> Outcome:
        """
        Count one use of the coupon. Call once, after the order that used it
        has been saved. The update refuses to go past max_usage.
        """
        try:
            async with self.store.transaction() as conn:
                cur = await conn.execute(
                    """
                    UPDATE coupons
                    SET usage_count = usage_count + 1
                    WHERE id = ?
                      AND (max_usage = 0 OR usage_count < max_usage);
                    """,
                    (coupon.id,),
                )
                updated = cur.rowcount
                await cur.close()
        except PersistenceError as e:
            return self._failed("Coupon redemption could not be saved.", e)
        if updated == 0:
            _logger.warning(f"Coupon {coupon.code} could not be redeemed (exhausted or gone)")
            return Outcome(False, Rejection.EXHAUSTED, MSG_EXHAUSTED)
        _logger.info(f"Redeemed coupon {coupon.code}")
        return Outcome(True)

    def _failed(self, message: str, error: PersistenceError) -> Outcome:
        _logger.warning(f"{message} ({error})")
        self.error_message = f"{message} {error}"
        return Outcome(False, Rejection.PERSISTENCE, self.error_message)

    # ---------------------------
    # Atelier: manage coupons
    # ---------------------------

    async def list_coupons(self) -> List[Coupon]:
        """Newest first."""
        rows = await self.store.fetch_all(
            f"SELECT {COUPON_COLUMNS} FROM coupons ORDER BY created_at DESC, rowid DESC;"
        )
        return [coupon_from_row(r) for r in rows]

    async def create_coupon(
        self,
        code: str,
        discount_type: Union[DiscountType, str],
        discount_value: float,
        minimum_order_amount: float = 0.0,
        max_usage: int = 0,
        expiry_date: Optional[datetime] = None,
    ) -> Outcome:
        code = normalize_code(code)
        try:
            discount_type = DiscountType(discount_type)
        except ValueError:
            return Outcome(False, Rejection.INVALID_COUPON, "Unknown discount type.")
        if not code:
            return Outcome(False, Rejection.INVALID_COUPON, "Coupon code is required.")
        if discount_value <= 0:
            return Outcome(False, Rejection.INVALID_COUPON, "Discount must be positive.")
        if discount_type == DiscountType.PERCENT and discount_value > 100:
            return Outcome(False, Rejection.INVALID_COUPON, "Percent discount is at most 100.")
        if minimum_order_amount < 0 or max_usage < 0:
            return Outcome(
                False, Rejection.INVALID_COUPON, "Minimum and usage limit cannot be negative."
            )

        coupon_id = new_id()
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO coupons(id, code, discount_type, discount_value,
                                        minimum_order_amount, max_usage, usage_count,
                                        is_active, expiry_date, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, 0, 1, ?, ?);
                    """,
                    (
                        coupon_id,
                        code,
                        discount_type.value,
                        discount_value,
                        minimum_order_amount,
                        max_usage,
                        to_iso(expiry_date),
                        now_iso(),
                    ),
                )
        except PersistenceError as e:
            return self._failed("Coupon could not be saved.", e)
        _logger.info(f"Created coupon {code}")
        return Outcome(True, id=coupon_id)

    async def toggle_active(self, coupon: Coupon) -> Outcome:
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    "UPDATE coupons SET is_active = 1 - is_active WHERE id = ?;",
                    (coupon.id,),
                )
        except PersistenceError as e:
            return self._failed("Coupon could not be updated.", e)
        return Outcome(True)

    async def delete_coupon(self, coupon: Coupon) -> Outcome:
        try:
            async with self.store.transaction() as conn:
                await conn.execute("DELETE FROM coupons WHERE id = ?;", (coupon.id,))
        except PersistenceError as e:
            return self._failed("Coupon could not be deleted.", e)
        _logger.info(f"Deleted coupon {coupon.code}")
        return Outcome(True)
