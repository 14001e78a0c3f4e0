import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.cart import CartLedger  # noqa: E402
from db.catalog import CatalogStore  # noqa: E402
from db.database import MEMORY, Store  # noqa: E402
from db.models import Rejection  # noqa: E402

KERAMIK = "c0a1e5f0000000000000000000000001"
BECHER = "p0a1e5f0000000000000000000000002"
VASE = "p0a1e5f0000000000000000000000003"


class CatalogTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = await Store(MEMORY).open()
        self.catalog = CatalogStore(self.store)

    async def asyncTearDown(self):
        await self.store.close()

    # ---------- seed ----------

    async def test_seed_only_once(self):
        self.assertTrue(await self.catalog.seed_if_needed())
        self.assertFalse(await self.catalog.seed_if_needed())
        self.assertEqual(len(await self.catalog.list_products()), 12)
        self.assertEqual(len(await self.catalog.list_categories()), 4)

        becher = await self.catalog.get_product(BECHER)
        self.assertEqual((becher.name, becher.price, becher.quantity), ("Steinzeug-Becher", 24.5, 8))
        self.assertEqual(becher.category_name, "Keramik")
        vase = await self.catalog.get_product(VASE)
        self.assertTrue(vase.is_unique)

    async def test_filter_by_category_and_search(self):
        await self.catalog.seed_if_needed()
        keramik = await self.catalog.list_products(category_id=KERAMIK)
        self.assertEqual(len(keramik), 3)
        self.assertTrue(all(p.category_id == KERAMIK for p in keramik))

        found = await self.catalog.list_products(search="  SCHALE ")
        self.assertEqual(
            [p.name for p in found], ["Raku-Schale Aschegrau", "Schale Nussbaum"]
        )
        self.assertEqual(len(await self.catalog.list_products(KERAMIK, "schale")), 1)

    # ---------- products ----------

    async def test_create_validation(self):
        bad = [
            ("", 10.0, 1, False),
            ("Ring", -1.0, 1, False),
            ("Ring", 10.0, -1, False),
            ("Ring", 10.0, 2, True),
        ]
        for name, price, qty, unique in bad:
            outcome = await self.catalog.create_product(name, price, qty, unique)
            self.assertEqual(outcome.rejection, Rejection.INVALID_PRODUCT, name)
        self.assertEqual(await self.catalog.list_products(), [])

    async def test_update_only_given_fields(self):
        created = await self.catalog.create_product("Ring", 40.0, 3, descr="Silber")
        ring = await self.catalog.get_product(created.id)

        self.assertTrue(await self.catalog.update_product(ring, price=45.0))
        ring = await self.catalog.get_product(ring.id)
        self.assertEqual((ring.name, ring.price, ring.quantity, ring.descr), ("Ring", 45.0, 3, "Silber"))

        refused = await self.catalog.update_product(ring, is_unique=True)  # stock 3
        self.assertEqual(refused.rejection, Rejection.INVALID_PRODUCT)

        with self.assertRaises(TypeError):
            await self.catalog.update_product(ring, is_favorite=True)

    async def test_unique_flag_respects_reservations(self):
        created = await self.catalog.create_product("Schale", 30.0, 5)
        bowl = await self.catalog.get_product(created.id)
        local, second = CartLedger(self.store), CartLedger(self.store, "second")
        await local.add_to_cart(bowl, requested_qty=2)
        await second.add_to_cart(bowl)

        refused = await self.catalog.update_product(bowl, is_unique=True, quantity=1)
        self.assertFalse(refused.ok)
        self.assertEqual(refused.rejection, Rejection.INVALID_PRODUCT)
        unchanged = await self.catalog.get_product(bowl.id)
        self.assertEqual((unchanged.is_unique, unchanged.quantity), (False, 2))

        # one reserved piece in one cart: no stock may be left beside it
        await local.release_all()
        self.assertFalse(await self.catalog.update_product(bowl, is_unique=True, quantity=1))
        self.assertTrue(await self.catalog.update_product(bowl, is_unique=True, quantity=0))
        self.assertTrue((await self.catalog.get_product(bowl.id)).is_unique)

        # the reserved piece does not block edits of other fields
        self.assertTrue(await self.catalog.update_product(bowl, price=32.0))

    async def test_delete_product_cascades(self):
        created = await self.catalog.create_product("Ring", 40.0, 3)
        ring = await self.catalog.get_product(created.id)
        await self.catalog.add_image(ring, "img/ring.jpg")
        await self.catalog.add_review(ring, 5, "schön")
        cart = CartLedger(self.store)
        await cart.add_to_cart(ring)

        self.assertTrue(await self.catalog.delete_product(ring))
        self.assertIsNone(await self.catalog.get_product(ring.id))
        self.assertEqual(await self.catalog.images(ring), [])
        self.assertEqual(await self.catalog.reviews(ring), [])
        self.assertEqual(await cart.reload(), [])

    # ---------- categories ----------

    async def test_categories(self):
        created = await self.catalog.create_category(" Glas ")
        self.assertTrue(created.ok)
        duplicate = await self.catalog.create_category("glas")
        self.assertEqual(duplicate.rejection, Rejection.PERSISTENCE)
        self.assertEqual((await self.catalog.create_category("  ")).rejection, Rejection.INVALID_PRODUCT)

        product = await self.catalog.create_product("Karaffe", 60.0, 2, category_id=created.id)
        glas = (await self.catalog.list_categories())[0]
        self.assertEqual(glas.name, "Glas")
        await self.catalog.delete_category(glas)
        karaffe = await self.catalog.get_product(product.id)
        self.assertIsNone(karaffe.category_id)
        self.assertIsNone(karaffe.category_name)

    # ---------- favorites, reviews, images ----------

    async def test_favorites(self):
        await self.catalog.seed_if_needed()
        becher = await self.catalog.get_product(BECHER)
        await self.catalog.toggle_favorite(becher)
        self.assertEqual([p.id for p in await self.catalog.favorite_products()], [BECHER])
        await self.catalog.toggle_favorite(becher)
        self.assertEqual(await self.catalog.favorite_products(), [])

    async def test_reviews_and_average(self):
        await self.catalog.seed_if_needed()
        becher = await self.catalog.get_product(BECHER)
        self.assertIsNone(await self.catalog.average_rating(becher))

        self.assertTrue(await self.catalog.add_review(becher, 5, "Toll", "Ada"))
        self.assertTrue(await self.catalog.add_review(becher, 2, "Zu klein", "Bob"))
        refused = await self.catalog.add_review(becher, 6)
        self.assertEqual(refused.rejection, Rejection.INVALID_REVIEW)

        self.assertAlmostEqual(await self.catalog.average_rating(becher), 3.5)
        self.assertEqual([r.author_name for r in await self.catalog.reviews(becher)], ["Bob", "Ada"])

    async def test_images_append_and_reorder(self):
        await self.catalog.seed_if_needed()
        becher = await self.catalog.get_product(BECHER)
        for name in ("front", "side", "top"):
            await self.catalog.add_image(becher, f"img/{name}.jpg")
        images = await self.catalog.images(becher)
        self.assertEqual([i.sort_order for i in images], [0, 1, 2])

        await self.catalog.reorder_images(list(reversed(images)))
        self.assertEqual(
            [i.location for i in await self.catalog.images(becher)],
            ["img/top.jpg", "img/side.jpg", "img/front.jpg"],
        )
        await self.catalog.delete_image(images[0])
        self.assertEqual(len(await self.catalog.images(becher)), 2)


if __name__ == "__main__":
    unittest.main()
