import json
import os
import sys
import tempfile
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.cart import CartLedger  # noqa: E402
from db.catalog import CatalogStore  # noqa: E402
from db.database import MEMORY, Store  # noqa: E402
from db.sync import SyncError, export_catalog, import_catalog, load_snapshot  # noqa: E402

BECHER = "p0a1e5f0000000000000000000000002"


class SyncTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.temp_dir.name, "catalog.json")

    def tearDown(self):
        self.temp_dir.cleanup()

    async def asyncSetUp(self):
        self.source = await Store(MEMORY).open()
        self.target = await Store(MEMORY).open()
        self.src_catalog = CatalogStore(self.source)
        self.dst_catalog = CatalogStore(self.target)
        await self.src_catalog.seed_if_needed()

    async def asyncTearDown(self):
        await self.source.close()
        await self.target.close()

    def write(self, payload):
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f)

    async def test_export_then_import_into_empty_catalog(self):
        becher = await self.src_catalog.get_product(BECHER)
        await self.src_catalog.add_image(becher, "img/becher.jpg")

        self.assertEqual(await export_catalog(self.src_catalog, self.path), 12)
        report = await import_catalog(self.dst_catalog, self.path)

        self.assertEqual(report.categories_created, 4)
        self.assertEqual(report.products_created, 12)
        self.assertEqual(report.images_added, 1)
        copied = await self.dst_catalog.get_product(BECHER)
        self.assertEqual((copied.name, copied.price, copied.quantity), ("Steinzeug-Becher", 24.5, 8))
        self.assertEqual(copied.category_name, "Keramik")

        again = await import_catalog(self.dst_catalog, self.path)
        self.assertEqual((again.products_created, again.products_updated), (0, 12))
        self.assertEqual(again.images_added, 0)

    async def test_reserved_stock_is_kept(self):
        await self.dst_catalog.seed_if_needed()
        cart = CartLedger(self.target)
        await cart.add_to_cart(await self.dst_catalog.get_product(BECHER), requested_qty=2)

        becher = await self.src_catalog.get_product(BECHER)
        await self.src_catalog.update_product(becher, price=26.0, quantity=20)
        await export_catalog(self.src_catalog, self.path)

        report = await import_catalog(self.dst_catalog, self.path)
        self.assertEqual(report.stock_kept, 1)
        local = await self.dst_catalog.get_product(BECHER)
        self.assertEqual(local.price, 26.0)
        self.assertEqual(local.quantity, 6)

    async def test_categories_match_by_name(self):
        await self.dst_catalog.create_category("keramik")
        await export_catalog(self.src_catalog, self.path)
        report = await import_catalog(self.dst_catalog, self.path)
        self.assertEqual(report.categories_created, 3)
        names = [c.name for c in await self.dst_catalog.list_categories()]
        self.assertEqual(sorted(n.lower() for n in names), ["holz", "keramik", "schmuck", "textil"])

    async def test_malformed_snapshot_changes_nothing(self):
        self.write({"version": 1, "products": [
            {"id": "ok", "name": "Fine", "price": 1.0, "quantity": 1},
            {"id": "bad", "name": "Broken"},  # no price
        ]})
        with self.assertRaises(SyncError):
            await import_catalog(self.dst_catalog, self.path)
        self.assertEqual(await self.dst_catalog.list_products(), [])

    def test_load_snapshot_rejects_garbage(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("not json")
        with self.assertRaises(SyncError):
            load_snapshot(self.path)
        self.write({"version": 99, "products": []})
        with self.assertRaises(SyncError):
            load_snapshot(self.path)
        with self.assertRaises(SyncError):
            load_snapshot(os.path.join(self.temp_dir.name, "missing.json"))


if __name__ == "__main__":
    unittest.main()
