# src/db/orders.py
from __future__ import annotations

from datetime import datetime
from sqlite3 import Row
from typing import Iterable, List, Optional

from db.database import PersistenceError, Store, from_iso, new_id, to_iso
from db.models import (
    CartLine,
    CustomerInfo,
    Order,
    OrderLine,
    OrderStatus,
    Outcome,
    PaymentStatus,
    PlacedOrder,
    Rejection,
    SalesSummary,
)
from utils.logger import get_logger

_logger = get_logger(__name__)

ORDER_COLUMNS = """
    id, created_at, total_amount, status, payment_status, first_name, last_name,
    email, phone, street, zip, city, coupon_code, discount_amount, carrier,
    tracking_number
"""

# forward moves an administrator may make; refund/cancel are allowed from any open state
_FORWARD = {
    OrderStatus.PLACED: {OrderStatus.SHIPPED, OrderStatus.DELIVERED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
}


def order_from_row(row: Row) -> Order:
    return Order(
        id=row["id"],
        created_at=from_iso(row["created_at"]),
        total_amount=float(row["total_amount"]),
        status=OrderStatus(row["status"]),
        payment_status=PaymentStatus(row["payment_status"]),
        customer=CustomerInfo(
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            phone=row["phone"],
            street=row["street"],
            zip=row["zip"],
            city=row["city"],
        ),
        coupon_code=row["coupon_code"],
        discount_amount=float(row["discount_amount"]),
        carrier=row["carrier"],
        tracking_number=row["tracking_number"],
    )


def line_from_row(row: Row) -> OrderLine:
    return OrderLine(
        id=row["id"],
        order_id=row["order_id"],
        product_id=row["product_id"],
        product_name=row["product_name"],
        price_at_purchase=float(row["price_at_purchase"]),
        quantity=int(row["quantity"]),
    )


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current == target:
        return True
    if current.is_terminal:
        return False
    if target.is_terminal:
        return True
    return target in _FORWARD[current]


class OrderRecorder:
    """
    Turns a cart snapshot into a stored order and keeps the few fields an
    order may change afterwards: tracking, status and payment status.
    """

    def __init__(self, store: Store) -> None:
        self.store = store
        self.orders: List[Order] = []
        self.error_message: Optional[str] = None

    def _failed(self, message: str, error: PersistenceError) -> Outcome:
        _logger.warning(f"{message} ({error})")
        self.error_message = f"{message} {error}"
        return Outcome(False, Rejection.PERSISTENCE, self.error_message)

    async def _refresh(self) -> None:
        try:
            await self.list_orders()
        except PersistenceError as e:
            self.error_message = f"Orders could not be loaded: {e}"
            _logger.warning(self.error_message)

    # ---------------------------
    # Reads
    # ---------------------------

    async def list_orders(self) -> List[Order]:
        """Newest first; also kept on ``self.orders``."""
        rows = await self.store.fetch_all(
            f"SELECT {ORDER_COLUMNS} FROM orders ORDER BY created_at DESC, rowid DESC;"
        )
        self.orders = [order_from_row(r) for r in rows]
        return self.orders

    async def get_order(self, order_id: str) -> Optional[Order]:
        row = await self.store.fetch_one(
            f"SELECT {ORDER_COLUMNS} FROM orders WHERE id = ?;", (order_id,)
        )
        return order_from_row(row) if row else None

    async def order_items(self, order: Order) -> List[OrderLine]:
        """Lines of an order, sorted by product name."""
        rows = await self.store.fetch_all(
            """
            SELECT id, order_id, product_id, product_name, price_at_purchase, quantity
            FROM order_lines
            WHERE order_id = ?
            ORDER BY product_name COLLATE NOCASE;
            """,
            (order.id,),
        )
        return [line_from_row(r) for r in rows]

    async def sales_summary(self) -> SalesSummary:
        row = await self.store.fetch_one(
            """
            SELECT COUNT(*),
                   COALESCE(SUM(total_amount), 0.0),
                   COALESCE(SUM(discount_amount), 0.0),
                   COALESCE(SUM(CASE WHEN status = ? THEN 1 ELSE 0 END), 0)
            FROM orders
            WHERE status NOT IN (?, ?);
            """,
            (
                OrderStatus.PLACED.value,
                OrderStatus.CANCELLED.value,
                OrderStatus.REFUNDED.value,
            ),
        )
        units = await self.store.fetch_one(
            """
            SELECT COALESCE(SUM(ol.quantity), 0)
            FROM order_lines ol
            JOIN orders o ON o.id = ol.order_id
            WHERE o.status NOT IN (?, ?);
            """,
            (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value),
        )
        return SalesSummary(
            order_count=int(row[0]),
            revenue=float(row[1]),
            discount_total=float(row[2]),
            open_orders=int(row[3]),
            units_sold=int(units[0]),
        )

    # ---------------------------
    # Place order
    # ---------------------------

    async def place_order(
        self,
        lines: Iterable[CartLine],
        final_total: float,
        customer: CustomerInfo,
        coupon_code: Optional[str] = None,
        discount_amount: float = 0.0,
        now: Optional[datetime] = None,
        consume_lines: bool = False,
    ) -> PlacedOrder:
        """
        Store one order with a line per cart line, all in one transaction.

        Name and price of every line are read from the live product row at
        this moment, so later catalog edits leave the order untouched.
        Stock is not touched: the cart already reserved it. With
        ``consume_lines`` the cart lines are deleted in the same transaction,
        so their reservation passes to the order or stays in the cart.
        """
        lines = list(lines)
        if not lines:
            return PlacedOrder(False, rejection=Rejection.EMPTY_CART, message="Cart is empty.")

        order = Order(
            id=new_id(),
            created_at=now or datetime.now(),
            total_amount=final_total,
            status=OrderStatus.PLACED,
            payment_status=PaymentStatus.PENDING,
            customer=customer,
            coupon_code=coupon_code,
            discount_amount=discount_amount,
        )
        order_lines: List[OrderLine] = []
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO orders({ORDER_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL);
                    """,
                    (
                        order.id,
                        to_iso(order.created_at),
                        order.total_amount,
                        order.status.value,
                        order.payment_status.value,
                        customer.first_name,
                        customer.last_name,
                        customer.email,
                        customer.phone,
                        customer.street,
                        customer.zip,
                        customer.city,
                        order.coupon_code,
                        order.discount_amount,
                    ),
                )
                for cart_line in lines:
                    cur = await conn.execute(
                        "SELECT name, price FROM products WHERE id = ?;",
                        (cart_line.product.id,),
                    )
                    live = await cur.fetchone()
                    await cur.close()
                    if live:
                        name, price = live["name"], float(live["price"])
                        product_id = cart_line.product.id
                    else:
                        name, price = cart_line.product.name, cart_line.product.price
                        product_id = None
                    order_line = OrderLine(
                        id=new_id(),
                        order_id=order.id,
                        product_id=product_id,
                        product_name=name,
                        price_at_purchase=price,
                        quantity=cart_line.quantity,
                    )
                    await conn.execute(
                        """
                        INSERT INTO order_lines(id, order_id, product_id, product_name,
                                                price_at_purchase, quantity)
                        VALUES (?, ?, ?, ?, ?, ?);
                        """,
                        (
                            order_line.id,
                            order_line.order_id,
                            order_line.product_id,
                            order_line.product_name,
                            order_line.price_at_purchase,
                            order_line.quantity,
                        ),
                    )
                    order_lines.append(order_line)
                    if consume_lines:
                        await conn.execute(
                            "DELETE FROM cart_lines WHERE id = ?;", (cart_line.id,)
                        )
        except PersistenceError as e:
            failed = self._failed("Order could not be saved.", e)
            return PlacedOrder(False, rejection=failed.rejection, message=failed.message)

        _logger.info(
            f"Placed order {order.id}: {len(order_lines)} line(s), total {final_total:.2f}"
        )
        await self._refresh()
        return PlacedOrder(True, order=order, lines=order_lines)

    # ---------------------------
    # After placement
    # ---------------------------

    async def update_tracking(
        self, order: Order, carrier: str, tracking_number: str
    ) -> Outcome:
        """
        Store carrier and tracking number. A freshly placed order counts as
        shipped from here on; any other status is kept.
        """
        carrier = (carrier or "").strip()
        tracking_number = (tracking_number or "").strip()
        if not tracking_number:
            return Outcome(False, Rejection.INVALID_TRACKING, "Tracking number is required.")
        try:
            async with self.store.transaction() as conn:
                cur = await conn.execute(
                    """
                    UPDATE orders
                    SET carrier = ?,
                        tracking_number = ?,
                        status = CASE WHEN status = ? THEN ? ELSE status END
                    WHERE id = ?;
                    """,
                    (
                        carrier or None,
                        tracking_number,
                        OrderStatus.PLACED.value,
                        OrderStatus.SHIPPED.value,
                        order.id,
                    ),
                )
                updated = cur.rowcount
                await cur.close()
        except PersistenceError as e:
            return self._failed("Tracking could not be saved.", e)
        if updated == 0:
            return Outcome(False, Rejection.NOT_FOUND, "Order no longer exists.")
        _logger.info(f"Tracking for order {order.id}: {carrier} {tracking_number}")
        await self._refresh()
        return Outcome(True)

    async def set_status(self, order: Order, status: OrderStatus) -> Outcome:
        """Manual status change from the Atelier."""
        status = OrderStatus(status)
        try:
            async with self.store.transaction() as conn:
                cur = await conn.execute("SELECT status FROM orders WHERE id = ?;", (order.id,))
                row = await cur.fetchone()
                await cur.close()
                if not row:
                    return Outcome(False, Rejection.NOT_FOUND, "Order no longer exists.")
                current = OrderStatus(row[0])
                if not can_transition(current, status):
                    return Outcome(
                        False,
                        Rejection.INVALID_STATUS,
                        f"Cannot change status from {current.value} to {status.value}.",
                    )
                await conn.execute(
                    "UPDATE orders SET status = ? WHERE id = ?;", (status.value, order.id)
                )
        except PersistenceError as e:
            return self._failed("Status could not be saved.", e)
        await self._refresh()
        return Outcome(True)

    async def set_payment_status(self, order: Order, status: PaymentStatus) -> Outcome:
        status = PaymentStatus(status)
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    "UPDATE orders SET payment_status = ? WHERE id = ?;",
                    (status.value, order.id),
                )
        except PersistenceError as e:
            return self._failed("Payment status could not be saved.", e)
        await self._refresh()
        return Outcome(True)
