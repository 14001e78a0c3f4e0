import os
import sqlite3
import sys
import tempfile
import unittest
from datetime import datetime

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.database import MEMORY, PersistenceError, Store, from_iso, new_id, to_iso  # noqa: E402


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_open_creates_file_and_schema(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "nested", "shop.sqlite")
            async with Store(path) as store:
                rows = await store.fetch_all(
                    "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name;"
                )
                tables = {r["name"] for r in rows}
            self.assertTrue(os.path.exists(path))
            self.assertTrue(
                {"products", "categories", "cart_lines", "coupons", "orders", "order_lines"}
                <= tables
            )
            # reopening keeps existing data
            async with Store(path) as store:
                async with store.transaction() as conn:
                    await conn.execute(
                        "INSERT INTO categories(id, name, created_at) VALUES ('c', 'Glas', '');"
                    )
            async with Store(path) as store:
                self.assertEqual((await store.fetch_one("SELECT COUNT(*) FROM categories;"))[0], 1)

    async def test_transaction_rolls_back_on_error(self):
        async with Store(MEMORY) as store:
            with self.assertRaises(PersistenceError):
                async with store.transaction() as conn:
                    await conn.execute(
                        "INSERT INTO categories(id, name, created_at) VALUES ('a', 'Glas', '');"
                    )
                    await conn.execute(
                        "INSERT INTO categories(id, name, created_at) VALUES ('b', 'glas', '');"
                    )
            self.assertEqual((await store.fetch_one("SELECT COUNT(*) FROM categories;"))[0], 0)

            with self.assertRaises(RuntimeError):
                async with store.transaction() as conn:
                    await conn.execute(
                        "INSERT INTO categories(id, name, created_at) VALUES ('a', 'Glas', '');"
                    )
                    raise RuntimeError("abort")
            self.assertIsNone(await store.fetch_one("SELECT id FROM categories;"))

    async def test_check_constraints_hold(self):
        async with Store(MEMORY) as store:
            with self.assertRaises(PersistenceError):
                async with store.transaction() as conn:
                    await conn.execute(
                        """
                        INSERT INTO products(id, name, price, quantity, is_unique, created_at)
                        VALUES ('p', 'Vase', 10, 2, 1, '');
                        """
                    )
            with self.assertRaises(PersistenceError):
                async with store.transaction() as conn:
                    await conn.execute(
                        """
                        INSERT INTO products(id, name, price, quantity, created_at)
                        VALUES ('p', 'Vase', 10, -1, '');
                        """
                    )

    async def test_closed_store(self):
        store = Store(MEMORY)
        with self.assertRaises(PersistenceError):
            await store.fetch_all("SELECT 1;")
        await store.open()
        await store.close()
        self.assertFalse(store.is_open)
        with self.assertRaises(PersistenceError):
            async with store.transaction():
                pass

    async def test_commit_failure_is_a_persistence_error(self):
        class BrokenCommit(Store):
            async def _commit(self, conn):
                raise sqlite3.OperationalError("database is locked")

        async with BrokenCommit(MEMORY) as store:
            with self.assertRaises(PersistenceError):
                async with store.transaction() as conn:
                    await conn.execute(
                        "INSERT INTO categories(id, name, created_at) VALUES ('a', 'Glas', '');"
                    )
            self.assertIsNone(await store.fetch_one("SELECT id FROM categories;"))

    def test_helpers(self):
        self.assertEqual(len(new_id()), 32)
        self.assertNotEqual(new_id(), new_id())
        stamp = datetime(2026, 10, 19, 14, 5, 0, 12)
        self.assertEqual(to_iso(stamp), "2026-10-19T14:05:00.000012")
        self.assertEqual(from_iso(to_iso(stamp)), stamp)
        self.assertIsNone(to_iso(None))
        self.assertIsNone(from_iso(""))


if __name__ == "__main__":
    unittest.main()
