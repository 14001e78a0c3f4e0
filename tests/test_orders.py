import os
import sqlite3
import sys
import unittest
from datetime import datetime, timedelta

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.cart import CartLedger  # noqa: E402
from db.catalog import CatalogStore  # noqa: E402
from db.database import MEMORY, Store  # noqa: E402
from db.models import CustomerInfo, OrderStatus, PaymentStatus, Rejection  # noqa: E402
from db.orders import OrderRecorder, can_transition  # noqa: E402

CUSTOMER = CustomerInfo(
    first_name="Ada",
    last_name="Lovelace",
    email="ada@example.com",
    street="Werkstattweg 3",
    zip="10115",
    city="Berlin",
)


class FailingStore(Store):
    """Store whose next commits fail like a full disk would."""

    fail_commits = False

    async def _commit(self, conn):
        if self.fail_commits:
            raise sqlite3.OperationalError("database or disk is full")
        await super()._commit(conn)


class OrderTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = await FailingStore(MEMORY).open()
        self.catalog = CatalogStore(self.store)
        self.cart = CartLedger(self.store)
        self.orders = OrderRecorder(self.store)

    async def asyncTearDown(self):
        await self.store.close()

    async def make_product(self, name, price, quantity=5):
        outcome = await self.catalog.create_product(name, price, quantity)
        return await self.catalog.get_product(outcome.id)

    async def fill_cart(self):
        a = await self.make_product("Becher", 10.0)
        b = await self.make_product("Schale", 20.0)
        await self.cart.add_to_cart(a)
        await self.cart.add_to_cart(b)
        return a, b

    async def count(self, table):
        return (await self.store.fetch_one(f"SELECT COUNT(*) FROM {table};"))[0]

    # ---------- place_order ----------

    async def test_lines_snapshot_price_and_name(self):
        a, b = await self.fill_cart()
        placed = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)

        self.assertTrue(placed.ok)
        self.assertAlmostEqual(placed.order.total_amount, 30.0)
        self.assertEqual(placed.order.status, OrderStatus.PLACED)
        self.assertEqual(placed.order.payment_status, PaymentStatus.PENDING)
        self.assertEqual(sorted(line.price_at_purchase for line in placed.lines), [10.0, 20.0])

        await self.catalog.update_product(a, price=99.0, name="Becher XL")
        items = await self.orders.order_items(placed.order)
        self.assertEqual([(i.product_name, i.price_at_purchase) for i in items],
                         [("Becher", 10.0), ("Schale", 20.0)])

    async def test_snapshot_reads_live_price_at_placement(self):
        a = await self.make_product("Becher", 10.0)
        await self.cart.add_to_cart(a)
        await self.catalog.update_product(a, price=12.0)  # after the cart was loaded

        placed = await self.orders.place_order(self.cart.lines, 12.0, CUSTOMER)
        self.assertEqual(placed.lines[0].price_at_purchase, 12.0)

    async def test_order_survives_product_deletion(self):
        a, _ = await self.fill_cart()
        placed = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)
        await self.catalog.delete_product(a)

        items = await self.orders.order_items(placed.order)
        becher = [i for i in items if i.product_name == "Becher"][0]
        self.assertIsNone(becher.product_id)
        self.assertEqual(becher.price_at_purchase, 10.0)

    async def test_empty_cart_is_refused(self):
        placed = await self.orders.place_order([], 0.0, CUSTOMER)
        self.assertFalse(placed.ok)
        self.assertEqual(placed.rejection, Rejection.EMPTY_CART)
        self.assertEqual(await self.count("orders"), 0)

    async def test_coupon_fields_are_stored_as_given(self):
        await self.fill_cart()
        plain = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)
        stored = await self.orders.get_order(plain.order.id)
        self.assertIsNone(stored.coupon_code)
        self.assertEqual(stored.discount_amount, 0.0)
        self.assertEqual(stored.customer, CUSTOMER)

        placed = await self.orders.place_order(
            self.cart.lines, 25.0, CUSTOMER, coupon_code="SAVE5", discount_amount=5.0
        )
        stored = await self.orders.get_order(placed.order.id)
        self.assertEqual((stored.coupon_code, stored.discount_amount), ("SAVE5", 5.0))

        unusual = await self.orders.place_order(
            self.cart.lines, 28.0, CUSTOMER, discount_amount=2.0
        )
        stored = await self.orders.get_order(unusual.order.id)
        self.assertEqual((stored.coupon_code, stored.discount_amount), (None, 2.0))

    async def test_consumed_lines_leave_the_cart_with_the_order(self):
        a, b = await self.fill_cart()
        placed = await self.orders.place_order(
            self.cart.lines, 30.0, CUSTOMER, consume_lines=True
        )
        self.assertTrue(placed.ok)
        self.assertEqual(await self.count("cart_lines"), 0)
        self.assertEqual(await self.cart.reload(), [])
        # reserved units stay with the order
        self.assertEqual((await self.catalog.get_product(a.id)).quantity, 4)
        self.assertEqual((await self.catalog.get_product(b.id)).quantity, 4)

    async def test_failed_save_keeps_consumed_lines(self):
        await self.fill_cart()
        self.store.fail_commits = True
        placed = await self.orders.place_order(
            self.cart.lines, 30.0, CUSTOMER, consume_lines=True
        )
        self.store.fail_commits = False

        self.assertFalse(placed.ok)
        self.assertEqual(await self.count("orders"), 0)
        self.assertEqual(await self.count("cart_lines"), 2)

    async def test_failed_save_stores_nothing(self):
        await self.fill_cart()
        self.store.fail_commits = True
        placed = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)
        self.store.fail_commits = False

        self.assertFalse(placed.ok)
        self.assertEqual(placed.rejection, Rejection.PERSISTENCE)
        self.assertIsNotNone(self.orders.error_message)
        self.assertEqual(await self.count("orders"), 0)
        self.assertEqual(await self.count("order_lines"), 0)
        await self.cart.reload()
        self.assertEqual(len(self.cart.lines), 2)

    async def test_orders_newest_first(self):
        await self.fill_cart()
        t0 = datetime(2026, 10, 1, 9, 0)
        first = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER, now=t0)
        second = await self.orders.place_order(
            self.cart.lines, 30.0, CUSTOMER, now=t0 + timedelta(hours=1)
        )
        ids = [o.id for o in await self.orders.list_orders()]
        self.assertEqual(ids, [second.order.id, first.order.id])
        self.assertEqual([o.id for o in self.orders.orders], ids)

    # ---------- tracking & status ----------

    async def test_tracking_marks_placed_order_shipped(self):
        await self.fill_cart()
        placed = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)

        self.assertTrue(await self.orders.update_tracking(placed.order, "DHL", " 0034 1234 "))
        order = await self.orders.get_order(placed.order.id)
        self.assertEqual(order.status, OrderStatus.SHIPPED)
        self.assertEqual(order.tracking_number, "0034 1234")
        self.assertTrue(order.has_tracking)

        # second update only changes tracking
        await self.orders.set_status(order, OrderStatus.DELIVERED)
        await self.orders.update_tracking(order, "DPD", "XYZ")
        order = await self.orders.get_order(order.id)
        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertEqual((order.carrier, order.tracking_number), ("DPD", "XYZ"))

    async def test_tracking_requires_a_number(self):
        await self.fill_cart()
        placed = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)
        outcome = await self.orders.update_tracking(placed.order, "DHL", "   ")
        self.assertEqual(outcome.rejection, Rejection.INVALID_TRACKING)
        self.assertEqual((await self.orders.get_order(placed.order.id)).status, OrderStatus.PLACED)

    async def test_status_rules(self):
        self.assertTrue(can_transition(OrderStatus.PLACED, OrderStatus.SHIPPED))
        self.assertTrue(can_transition(OrderStatus.SHIPPED, OrderStatus.REFUNDED))
        self.assertTrue(can_transition(OrderStatus.DELIVERED, OrderStatus.REFUNDED))
        self.assertFalse(can_transition(OrderStatus.DELIVERED, OrderStatus.SHIPPED))
        self.assertFalse(can_transition(OrderStatus.CANCELLED, OrderStatus.PLACED))
        self.assertFalse(can_transition(OrderStatus.REFUNDED, OrderStatus.CANCELLED))

        await self.fill_cart()
        placed = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)
        self.assertTrue(await self.orders.set_status(placed.order, OrderStatus.CANCELLED))
        refused = await self.orders.set_status(placed.order, OrderStatus.SHIPPED)
        self.assertEqual(refused.rejection, Rejection.INVALID_STATUS)

    async def test_payment_status(self):
        await self.fill_cart()
        placed = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)
        self.assertTrue(await self.orders.set_payment_status(placed.order, PaymentStatus.PAID))
        self.assertEqual(
            (await self.orders.get_order(placed.order.id)).payment_status, PaymentStatus.PAID
        )

    # ---------- reporting ----------

    async def test_sales_summary_skips_cancelled_orders(self):
        await self.fill_cart()
        kept = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)
        dropped = await self.orders.place_order(self.cart.lines, 30.0, CUSTOMER)
        await self.orders.update_tracking(kept.order, "DHL", "1")
        await self.orders.set_status(dropped.order, OrderStatus.CANCELLED)

        summary = await self.orders.sales_summary()
        self.assertEqual(summary.order_count, 1)
        self.assertAlmostEqual(summary.revenue, 30.0)
        self.assertEqual(summary.units_sold, 2)
        self.assertEqual(summary.open_orders, 0)


if __name__ == "__main__":
    unittest.main()
