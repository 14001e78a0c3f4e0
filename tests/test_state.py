import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.database import MEMORY, Store  # noqa: E402
from utils.config import Settings  # noqa: E402
from utils.state import GlobalState  # noqa: E402


class GlobalStateTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncTearDown(self):
        await self.state.close()

    async def test_components_share_the_store(self):
        self.state = GlobalState(Settings(db_path=MEMORY))
        store = self.state.store
        self.assertEqual(store.path, MEMORY)
        for component in (
            self.state.catalog,
            self.state.cart,
            self.state.coupons,
            self.state.orders,
        ):
            self.assertIs(component.store, store)
        self.assertIs(self.state.checkout.cart, self.state.cart)

    async def test_open_seeds_demo_catalog(self):
        self.state = GlobalState(Settings(db_path=MEMORY))
        await self.state.open()
        self.assertTrue(self.state.store.is_open)
        self.assertEqual(len(await self.state.catalog.list_products()), 12)
        self.assertTrue(self.state.cart.is_empty)
        self.assertEqual(self.state.orders.orders, [])

    async def test_open_without_seed(self):
        self.state = GlobalState(Settings(db_path=MEMORY, seed_demo_data=False))
        await self.state.open()
        self.assertEqual(await self.state.catalog.list_products(), [])

    async def test_injected_store_is_used(self):
        store = Store(MEMORY)
        self.state = GlobalState(Settings(seed_demo_data=False), store=store)
        await self.state.open()
        self.assertIs(self.state.store, store)
        self.state.role = "shopper"
        await self.state.close()
        self.assertFalse(store.is_open)
        self.assertIsNone(self.state.role)


if __name__ == "__main__":
    unittest.main()
