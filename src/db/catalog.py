# src/db/catalog.py
from __future__ import annotations

from sqlite3 import Row
from typing import Dict, List, Optional

from db.database import (
    SEED_SCRIPT,
    PersistenceError,
    Store,
    from_iso,
    new_id,
    now_iso,
    run_script,
)
from db.models import Category, Outcome, Product, ProductImage, Rejection, Review
from utils.logger import get_logger

_logger = get_logger(__name__)

PRODUCT_COLUMNS = """
    p.id, p.name, p.descr, p.price, p.quantity, p.is_unique, p.is_favorite,
    p.category_id, c.name AS category_name, p.created_at
"""
PRODUCT_FROM = "products p LEFT JOIN categories c ON c.id = p.category_id"

_EDITABLE = ("name", "descr", "price", "quantity", "is_unique", "category_id")


def product_from_row(row: Row) -> Product:
    return Product(
        id=row["id"],
        name=row["name"],
        descr=row["descr"],
        price=float(row["price"]),
        quantity=int(row["quantity"]),
        is_unique=bool(row["is_unique"]),
        is_favorite=bool(row["is_favorite"]),
        category_id=row["category_id"],
        category_name=row["category_name"],
        created_at=from_iso(row["created_at"]),
    )


def check_product_fields(
    name: str, price: float, quantity: int, is_unique: bool
) -> Optional[str]:
    """Return a reason if the values would break a product invariant."""
    if not (name or "").strip():
        return "Product name is required."
    if price is None or price < 0:
        return "Price cannot be negative."
    if quantity is None or quantity < 0:
        return "Stock cannot be negative."
    if is_unique and quantity not in (0, 1):
        return "A unique piece has a stock of 0 or 1."
    return None


class CatalogStore:
    """Products, categories, images and reviews.

    Read-mostly from the cart's point of view; the Atelier screens write here.
    """

    def __init__(self, store: Store) -> None:
        self.store = store
        self.error_message: Optional[str] = None

    def _failed(self, message: str, error: PersistenceError) -> Outcome:
        _logger.warning(f"{message} ({error})")
        self.error_message = f"{message} {error}"
        return Outcome(False, Rejection.PERSISTENCE, self.error_message)

    # ---------------------------
    # Categories
    # ---------------------------

    async def list_categories(self) -> List[Category]:
        rows = await self.store.fetch_all(
            "SELECT id, name, created_at FROM categories ORDER BY name COLLATE NOCASE;"
        )
        return [
            Category(id=r["id"], name=r["name"], created_at=from_iso(r["created_at"]))
            for r in rows
        ]

    async def create_category(self, name: str) -> Outcome:
        name = (name or "").strip()
        if not name:
            return Outcome(False, Rejection.INVALID_PRODUCT, "Category name is required.")
        category_id = new_id()
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    "INSERT INTO categories(id, name, created_at) VALUES (?, ?, ?);",
                    (category_id, name, now_iso()),
                )
        except PersistenceError as e:
            return self._failed("Category could not be saved.", e)
        _logger.info(f"Created category {name!r}")
        return Outcome(True, id=category_id)

    async def delete_category(self, category: Category) -> Outcome:
        """Products of the category stay in the catalog without a category."""
        try:
            async with self.store.transaction() as conn:
                await conn.execute("DELETE FROM categories WHERE id = ?;", (category.id,))
        except PersistenceError as e:
            return self._failed("Category could not be deleted.", e)
        return Outcome(True)

    # ---------------------------
    # Products
    # ---------------------------

    async def list_products(
        self, category_id: Optional[str] = None, search: Optional[str] = None
    ) -> List[Product]:
        """
        Products sorted by name, optionally filtered by category and by a
        case-insensitive substring of the name.
        """
        where = []
        params: List[str] = []
        if category_id:
            where.append("p.category_id = ?")
            params.append(category_id)
        term = (search or "").strip().lower()
        if term:
            where.append("LOWER(p.name) LIKE ?")
            params.append(f"%{term}%")
        where_clause = f"WHERE {' AND '.join(where)}" if where else ""
        rows = await self.store.fetch_all(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM {PRODUCT_FROM}
            {where_clause}
            ORDER BY p.name COLLATE NOCASE;
            """,
            params,
        )
        return [product_from_row(r) for r in rows]

    async def get_product(self, product_id: str) -> Optional[Product]:
        row = await self.store.fetch_one(
            f"SELECT {PRODUCT_COLUMNS} FROM {PRODUCT_FROM} WHERE p.id = ?;",
            (product_id,),
        )
        return product_from_row(row) if row else None

    async def create_product(
        self,
        name: str,
        price: float,
        quantity: int,
        is_unique: bool = False,
        category_id: Optional[str] = None,
        descr: str = "",
    ) -> Outcome:
        reason = check_product_fields(name, price, quantity, is_unique)
        if reason:
            return Outcome(False, Rejection.INVALID_PRODUCT, reason)
        product_id = new_id()
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO products(id, name, descr, price, quantity, is_unique,
                                         category_id, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        product_id,
                        name.strip(),
                        descr,
                        price,
                        quantity,
                        int(is_unique),
                        category_id,
                        now_iso(),
                    ),
                )
        except PersistenceError as e:
            return self._failed("Product could not be saved.", e)
        _logger.info(f"Created product {name!r} ({product_id})")
        return Outcome(True, id=product_id)

    async def update_product(self, product: Product, **changes) -> Outcome:
        """
        Update only the given fields (name, descr, price, quantity, is_unique,
        category_id). Stock set here is the live, unreserved stock.
        A unique product counts its cart reservations against the single piece.
        """
        unknown = set(changes) - set(_EDITABLE)
        if unknown:
            raise TypeError(f"Cannot update product fields: {sorted(unknown)}")
        if not changes:
            return Outcome(True)
        try:
            async with self.store.transaction() as conn:
                cur = await conn.execute(
                    f"SELECT {PRODUCT_COLUMNS} FROM {PRODUCT_FROM} WHERE p.id = ?;",
                    (product.id,),
                )
                row = await cur.fetchone()
                await cur.close()
                if not row:
                    return Outcome(False, Rejection.NOT_FOUND, "Product no longer exists.")
                live = product_from_row(row)
                merged: Dict[str, object] = {f: getattr(live, f) for f in _EDITABLE}
                merged.update(changes)
                reason = check_product_fields(
                    merged["name"], merged["price"], merged["quantity"], merged["is_unique"]
                )
                if reason:
                    return Outcome(False, Rejection.INVALID_PRODUCT, reason)
                if merged["is_unique"]:
                    cur = await conn.execute(
                        "SELECT COUNT(*), COALESCE(SUM(quantity), 0) "
                        "FROM cart_lines WHERE product_id = ?;",
                        (product.id,),
                    )
                    held_lines, reserved = await cur.fetchone()
                    await cur.close()
                    # stock plus every reservation must still be a single piece
                    if held_lines > 1 or reserved + merged["quantity"] > 1:
                        return Outcome(
                            False,
                            Rejection.INVALID_PRODUCT,
                            f"{reserved} unit(s) are reserved in carts; "
                            "a unique piece exists only once.",
                        )
                await conn.execute(
                    """
                    UPDATE products
                    SET name = ?, descr = ?, price = ?, quantity = ?, is_unique = ?, category_id = ?
                    WHERE id = ?;
                    """,
                    (
                        str(merged["name"]).strip(),
                        merged["descr"],
                        merged["price"],
                        merged["quantity"],
                        int(bool(merged["is_unique"])),
                        merged["category_id"],
                        product.id,
                    ),
                )
        except PersistenceError as e:
            return self._failed("Product could not be updated.", e)
        _logger.info(f"Updated product {product.id}: {sorted(changes)}")
        return Outcome(True)

    async def delete_product(self, product: Product) -> Outcome:
        """
        Removes the product with its images, reviews and cart lines.
        Past order lines keep their name/price snapshot.
        """
        try:
            async with self.store.transaction() as conn:
                await conn.execute("DELETE FROM products WHERE id = ?;", (product.id,))
        except PersistenceError as e:
            return self._failed("Product could not be deleted.", e)
        _logger.info(f"Deleted product {product.id}")
        return Outcome(True)

    # ---------------------------
    # Favorites
    # ---------------------------

    async def toggle_favorite(self, product: Product) -> Outcome:
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    "UPDATE products SET is_favorite = 1 - is_favorite WHERE id = ?;",
                    (product.id,),
                )
        except PersistenceError as e:
            return self._failed("Favorite could not be saved.", e)
        return Outcome(True)

    async def favorite_products(self) -> List[Product]:
        rows = await self.store.fetch_all(
            f"""
            SELECT {PRODUCT_COLUMNS}
            FROM {PRODUCT_FROM}
            WHERE p.is_favorite = 1
            ORDER BY p.name COLLATE NOCASE;
            """
        )
        return [product_from_row(r) for r in rows]

    # ---------------------------
    # Reviews
    # ---------------------------

    async def add_review(
        self, product: Product, rating: int, body: str = "", author_name: str = ""
    ) -> Outcome:
        if not 1 <= int(rating) <= 5:
            return Outcome(False, Rejection.INVALID_REVIEW, "Choose 1 to 5 stars.")
        try:
            async with self.store.transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO reviews(id, product_id, rating, body, author_name, created_at)
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    (
                        new_id(),
                        product.id,
                        int(rating),
                        (body or "").strip(),
                        (author_name or "").strip(),
                        now_iso(),
                    ),
                )
        except PersistenceError as e:
            return self._failed("Review could not be saved.", e)
        return Outcome(True)

    async def reviews(self, product: Product) -> List[Review]:
        """Newest first."""
        rows = await self.store.fetch_all(
            """
            SELECT id, product_id, rating, body, author_name, created_at
            FROM reviews
            WHERE product_id = ?
            ORDER BY created_at DESC, rowid DESC;
            """,
            (product.id,),
        )
        return [
            Review(
                id=r["id"],
                product_id=r["product_id"],
                rating=int(r["rating"]),
                body=r["body"],
                author_name=r["author_name"],
                created_at=from_iso(r["created_at"]),
            )
            for r in rows
        ]

    async def average_rating(self, product: Product) -> Optional[float]:
        row = await self.store.fetch_one(
            "SELECT AVG(rating), COUNT(*) FROM reviews WHERE product_id = ?;",
            (product.id,),
        )
        if not row or not row[1]:
            return None
        return float(row[0])

    # ---------------------------
    # Images
    # ---------------------------

    async def images(self, product: Product) -> List[ProductImage]:
        rows = await self.store.fetch_all(
            """
            SELECT id, product_id, location, sort_order
            FROM product_images
            WHERE product_id = ?
            ORDER BY sort_order, id;
            """,
            (product.id,),
        )
        return [
            ProductImage(
                id=r["id"],
                product_id=r["product_id"],
                location=r["location"],
                sort_order=int(r["sort_order"]),
            )
            for r in rows
        ]

    async def add_image(
        self,
        product: Product,
        location: str,
        sort_order: Optional[int] = None,
        image_id: Optional[str] = None,
    ) -> Outcome:
        """Appends after the existing images unless a sort order is given."""
        try:
            async with self.store.transaction() as conn:
                if sort_order is None:
                    cur = await conn.execute(
                        "SELECT COUNT(*) FROM product_images WHERE product_id = ?;",
                        (product.id,),
                    )
                    sort_order = int((await cur.fetchone())[0])
                    await cur.close()
                await conn.execute(
                    """
                    INSERT INTO product_images(id, product_id, location, sort_order)
                    VALUES (?, ?, ?, ?);
                    """,
                    (image_id or new_id(), product.id, location, sort_order),
                )
        except PersistenceError as e:
            return self._failed("Image could not be saved.", e)
        return Outcome(True)

    async def delete_image(self, image: ProductImage) -> Outcome:
        try:
            async with self.store.transaction() as conn:
                await conn.execute("DELETE FROM product_images WHERE id = ?;", (image.id,))
        except PersistenceError as e:
            return self._failed("Image could not be deleted.", e)
        return Outcome(True)

    async def reorder_images(self, images: List[ProductImage]) -> Outcome:
        """Sort order becomes the position in the given list."""
        try:
            async with self.store.transaction() as conn:
                await conn.executemany(
                    "UPDATE product_images SET sort_order = ? WHERE id = ?;",
                    [(idx, img.id) for idx, img in enumerate(images)],
                )
        except PersistenceError as e:
            return self._failed("Image order could not be saved.", e)
        return Outcome(True)

    # ---------------------------
    # Demo data
    # ---------------------------

    async def seed_if_needed(self) -> bool:
        """Load the demo catalog into an empty catalog. True if seeded."""
        row = await self.store.fetch_one("SELECT COUNT(*) FROM products;")
        if row and row[0]:
            return False
        try:
            async with self.store.transaction() as conn:
                await run_script(conn, SEED_SCRIPT)
        except PersistenceError as e:
            self._failed("Demo catalog could not be loaded.", e)
            return False
        _logger.info("Seeded demo catalog.")
        return True
