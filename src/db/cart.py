# src/db/cart.py
from __future__ import annotations

from typing import List, Optional

import aiosqlite

from db.catalog import PRODUCT_COLUMNS, PRODUCT_FROM, product_from_row
from db.database import PersistenceError, Store, new_id, now_iso
from db.models import CartLine, Outcome, Product, Rejection
from utils.logger import get_logger

_logger = get_logger(__name__)

DEFAULT_CART = "local"


# ---------------------------
# Row access inside a transaction
# ---------------------------


async def _live_product(conn: aiosqlite.Connection, product_id: str) -> Optional[Product]:
    cur = await conn.execute(
        f"SELECT {PRODUCT_COLUMNS} FROM {PRODUCT_FROM} WHERE p.id = ?;",
        (product_id,),
    )
    row = await cur.fetchone()
    await cur.close()
    return product_from_row(row) if row else None


async def _line_qty(conn: aiosqlite.Connection, line_id: str) -> Optional[int]:
    cur = await conn.execute("SELECT quantity FROM cart_lines WHERE id = ?;", (line_id,))
    row = await cur.fetchone()
    await cur.close()
    return int(row[0]) if row else None


async def _move_stock(
    conn: aiosqlite.Connection, product_id: str, line_id: str, delta: int
) -> None:
    """
    Move ``delta`` units from stock into the line (negative moves them back).
    Both rows change in the same transaction, so stock + reserved is conserved.
    """
    await conn.execute(
        "UPDATE cart_lines SET quantity = quantity + ? WHERE id = ?;", (delta, line_id)
    )
    await conn.execute(
        "UPDATE products SET quantity = quantity - ? WHERE id = ?;", (delta, product_id)
    )


class CartLedger:
    """
    The shopper's cart. Stock is reserved when a line is created or grows
    and released when it shrinks or is removed; checkout commits it for good.

    Mutations never raise for business rules: they return an Outcome and
    leave cart and stock untouched. Call sites read ``lines`` after a mutation,
    each mutation reloads it.
    """

    def __init__(self, store: Store, cart_id: str = DEFAULT_CART) -> None:
        self.store = store
        self.cart_id = cart_id
        self.lines: List[CartLine] = []
        self.error_message: Optional[str] = None

    # ---------------------------
    # Derived values
    # ---------------------------

    @property
    def total_price(self) -> float:
        return sum(line.product.price * line.quantity for line in self.lines)

    @property
    def total_item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line_for(self, product: Product) -> Optional[CartLine]:
        for line in self.lines:
            if line.product.id == product.id:
                return line
        return None

    async def reload(self) -> List[CartLine]:
        """Re-read all lines of this cart, ordered by product name."""
        try:
            rows = await self.store.fetch_all(
                f"""
                SELECT cl.id AS line_id, cl.cart_id, cl.quantity AS line_qty, {PRODUCT_COLUMNS}
                FROM cart_lines cl
                JOIN products p ON p.id = cl.product_id
                LEFT JOIN categories c ON c.id = p.category_id
                WHERE cl.cart_id = ?
                ORDER BY p.name COLLATE NOCASE, cl.created_at;
                """,
                (self.cart_id,),
            )
        except PersistenceError as e:
            self.error_message = f"Cart could not be loaded: {e}"
            _logger.warning(self.error_message)
            return self.lines
        self.lines = [
            CartLine(
                id=r["line_id"],
                cart_id=r["cart_id"],
                product=product_from_row(r),
                quantity=int(r["line_qty"]),
            )
            for r in rows
        ]
        self.error_message = None
        return self.lines

    def _failed(self, message: str, error: PersistenceError) -> Outcome:
        _logger.warning(f"{message} ({error})")
        self.error_message = f"{message} {error}"
        return Outcome(False, Rejection.PERSISTENCE, self.error_message)

    # ---------------------------
    # Mutations
    # ---------------------------

    async def add_to_cart(self, product: Product, requested_qty: int = 1) -> Outcome:
        """
        Reserve ``requested_qty`` units of the product.

        No-op when the live stock cannot cover the request, or when the
        product is a unique piece that already sits in a cart.
        An existing line grows, otherwise a new line is created.
        """
        if requested_qty < 1:
            return Outcome(False, Rejection.INVALID_QUANTITY, "Quantity must be at least 1.")
        try:
            async with self.store.transaction() as conn:
                outcome = await self._add(conn, product, requested_qty)
        except PersistenceError as e:
            outcome = self._failed("Product could not be added to the cart.", e)
        await self.reload()
        return outcome

    async def _add(
        self, conn: aiosqlite.Connection, product: Product, requested_qty: int
    ) -> Outcome:
        live = await _live_product(conn, product.id)
        if live is None:
            return Outcome(False, Rejection.NOT_FOUND, "Product no longer exists.")
        if live.quantity <= 0 or requested_qty > live.quantity:
            return Outcome(False, Rejection.OUT_OF_STOCK)

        if live.is_unique:
            # unique pieces may be reserved by one line, in any cart
            cur = await conn.execute(
                "SELECT 1 FROM cart_lines WHERE product_id = ? LIMIT 1;", (live.id,)
            )
            taken = await cur.fetchone()
            await cur.close()
            if taken:
                return Outcome(False, Rejection.UNIQUE_ITEM)

        cur = await conn.execute(
            "SELECT id FROM cart_lines WHERE cart_id = ? AND product_id = ?;",
            (self.cart_id, live.id),
        )
        existing = await cur.fetchone()
        await cur.close()

        if existing:
            await _move_stock(conn, live.id, existing[0], requested_qty)
        else:
            await conn.execute(
                """
                INSERT INTO cart_lines(id, cart_id, product_id, quantity, created_at)
                VALUES (?, ?, ?, ?, ?);
                """,
                (new_id(), self.cart_id, live.id, requested_qty, now_iso()),
            )
            await conn.execute(
                "UPDATE products SET quantity = quantity - ? WHERE id = ?;",
                (requested_qty, live.id),
            )
        _logger.info(f"Reserved {requested_qty} x {live.name!r} in cart {self.cart_id}")
        return Outcome(True)

    async def increase_quantity(self, line: CartLine) -> Outcome:
        """One more unit; only for non-unique products with stock left."""
        try:
            async with self.store.transaction() as conn:
                live = await _live_product(conn, line.product.id)
                current = await _line_qty(conn, line.id)
                if live is None or current is None:
                    outcome = Outcome(False, Rejection.NOT_IN_CART)
                elif live.is_unique:
                    outcome = Outcome(False, Rejection.UNIQUE_ITEM)
                elif live.quantity <= 0:
                    outcome = Outcome(False, Rejection.OUT_OF_STOCK)
                else:
                    await _move_stock(conn, live.id, line.id, 1)
                    outcome = Outcome(True)
        except PersistenceError as e:
            outcome = self._failed("Quantity could not be changed.", e)
        await self.reload()
        return outcome

    async def decrease_quantity(self, line: CartLine) -> Outcome:
        """One unit less; the last unit removes the line."""
        try:
            async with self.store.transaction() as conn:
                current = await _line_qty(conn, line.id)
                if current is None:
                    outcome = Outcome(False, Rejection.NOT_IN_CART)
                elif current <= 1:
                    outcome = await self._remove(conn, line)
                else:
                    await _move_stock(conn, line.product.id, line.id, -1)
                    outcome = Outcome(True)
        except PersistenceError as e:
            outcome = self._failed("Quantity could not be changed.", e)
        await self.reload()
        return outcome

    async def remove_from_cart(self, line: CartLine) -> Outcome:
        """Release the whole line back into stock and delete it."""
        try:
            async with self.store.transaction() as conn:
                outcome = await self._remove(conn, line)
        except PersistenceError as e:
            outcome = self._failed("Item could not be removed from the cart.", e)
        await self.reload()
        return outcome

    async def _remove(self, conn: aiosqlite.Connection, line: CartLine) -> Outcome:
        current = await _line_qty(conn, line.id)
        if current is None:
            return Outcome(False, Rejection.NOT_IN_CART)
        await conn.execute(
            "UPDATE products SET quantity = quantity + ? WHERE id = ?;",
            (current, line.product.id),
        )
        await conn.execute("DELETE FROM cart_lines WHERE id = ?;", (line.id,))
        _logger.info(f"Released {current} x {line.product.name!r} from cart {self.cart_id}")
        return Outcome(True)

    async def release_all(self) -> Outcome:
        """Empty the cart and put every reserved unit back into stock."""
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    """
                    UPDATE products
                    SET quantity = quantity + (
                        SELECT cl.quantity FROM cart_lines cl
                        WHERE cl.product_id = products.id AND cl.cart_id = ?
                    )
                    WHERE id IN (SELECT product_id FROM cart_lines WHERE cart_id = ?);
                    """,
                    (self.cart_id, self.cart_id),
                )
                await conn.execute(
                    "DELETE FROM cart_lines WHERE cart_id = ?;", (self.cart_id,)
                )
        except PersistenceError as e:
            outcome = self._failed("Cart could not be emptied.", e)
        else:
            outcome = Outcome(True)
            _logger.info(f"Released all lines of cart {self.cart_id}")
        await self.reload()
        return outcome

    async def clear_cart(self) -> List[CartLine]:
        """
        Delete every line of this cart WITHOUT releasing stock; only used once
        the lines have been turned into an order. Returns the cleared lines.
        """
        cleared = list(await self.reload())
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    "DELETE FROM cart_lines WHERE cart_id = ?;", (self.cart_id,)
                )
        except PersistenceError as e:
            self._failed("Cart could not be cleared.", e)
            await self.reload()
            return []
        self.lines = []
        _logger.info(f"Cleared {len(cleared)} line(s) from cart {self.cart_id}")
        return cleared
