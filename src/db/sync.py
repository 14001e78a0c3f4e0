# src/db/sync.py
# catalog snapshots: export the catalog to JSON, reconcile a snapshot into the local catalog
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List

from db.catalog import CatalogStore
from db.database import PersistenceError, from_iso, new_id, now_iso, to_iso
from utils.logger import get_logger

_logger = get_logger(__name__)

SNAPSHOT_VERSION = 1


class SyncError(Exception):
    """The snapshot file is unreadable or does not look like a catalog."""


@dataclass
class SyncReport:
    categories_created: int = 0
    products_created: int = 0
    products_updated: int = 0
    stock_kept: int = 0  # products whose stock was left alone because of cart reservations
    images_added: int = 0


async def export_catalog(catalog: CatalogStore, path: str) -> int:
    """Write categories, products and images to ``path``. Returns product count."""
    categories = await catalog.list_categories()
    products = await catalog.list_products()
    payload: Dict[str, Any] = {
        "version": SNAPSHOT_VERSION,
        "exported_at": now_iso(),
        "categories": [
            {"id": c.id, "name": c.name, "created_at": to_iso(c.created_at)}
            for c in categories
        ],
        "products": [],
    }
    for p in products:
        images = await catalog.images(p)
        payload["products"].append(
            {
                "id": p.id,
                "name": p.name,
                "descr": p.descr,
                "price": p.price,
                "quantity": p.quantity,
                "is_unique": p.is_unique,
                "category_id": p.category_id,
                "created_at": to_iso(p.created_at),
                "images": [
                    {"id": i.id, "location": i.location, "sort_order": i.sort_order}
                    for i in images
                ],
            }
        )
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    _logger.info(f"Exported {len(products)} product(s) to {path}")
    return len(products)


def load_snapshot(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SyncError(f"Cannot read snapshot {path}: {e}") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("products"), list):
        raise SyncError(f"{path} is not a catalog snapshot.")
    if payload.get("version", SNAPSHOT_VERSION) != SNAPSHOT_VERSION:
        raise SyncError(f"Unsupported snapshot version {payload.get('version')}.")
    return payload


async def import_catalog(catalog: CatalogStore, path: str) -> SyncReport:
    """
    Reconcile a snapshot into the local catalog in one transaction.

    Categories match by id, then by name; products match by id. Matching
    products take over name, description, price, uniqueness and category.
    Stock is only overwritten when no cart currently reserves the product.
    """
    payload = load_snapshot(path)
    report = SyncReport()
    try:
        async with catalog.store.transaction() as conn:
            category_ids: Dict[str, str] = {}
            for rec in payload.get("categories", []):
                remote_id, name = rec.get("id"), (rec.get("name") or "").strip()
                if not name:
                    continue
                cur = await conn.execute(
                    "SELECT id FROM categories WHERE id = ? OR name = ? COLLATE NOCASE "
                    "ORDER BY id = ? DESC LIMIT 1;",
                    (remote_id, name, remote_id),
                )
                row = await cur.fetchone()
                await cur.close()
                if row:
                    local_id = row[0]
                else:
                    local_id = remote_id or new_id()
                    await conn.execute(
                        "INSERT INTO categories(id, name, created_at) VALUES (?, ?, ?);",
                        (local_id, name, rec.get("created_at") or now_iso()),
                    )
                    report.categories_created += 1
                if remote_id:
                    category_ids[remote_id] = local_id

            for rec in payload["products"]:
                await _reconcile_product(conn, rec, category_ids, report)
    except PersistenceError as e:
        _logger.warning(f"Catalog import failed: {e}")
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise SyncError(f"Malformed product record: {e}") from e
    _logger.info(
        f"Imported catalog: {report.products_created} new, "
        f"{report.products_updated} updated, {report.categories_created} new categories"
    )
    return report


async def _reconcile_product(
    conn, rec: Dict[str, Any], category_ids: Dict[str, str], report: SyncReport
) -> None:
    product_id = rec["id"]
    is_unique = bool(rec.get("is_unique", False))
    quantity = int(rec.get("quantity", 0))
    if quantity < 0 or (is_unique and quantity > 1):
        raise ValueError(f"invalid stock {quantity} for {product_id}")
    category_id = category_ids.get(rec.get("category_id"))

    cur = await conn.execute("SELECT id FROM products WHERE id = ?;", (product_id,))
    exists = await cur.fetchone()
    await cur.close()

    if not exists:
        await conn.execute(
            """
            INSERT INTO products(id, name, descr, price, quantity, is_unique, category_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                product_id,
                rec["name"],
                rec.get("descr", ""),
                float(rec["price"]),
                quantity,
                int(is_unique),
                category_id,
                to_iso(from_iso(rec.get("created_at"))) or now_iso(),
            ),
        )
        report.products_created += 1
    else:
        cur = await conn.execute(
            "SELECT COUNT(*) FROM cart_lines WHERE product_id = ?;", (product_id,)
        )
        reserved = (await cur.fetchone())[0]
        await cur.close()
        if reserved:
            # keep live stock so reserved + stock stays balanced
            await conn.execute(
                """
                UPDATE products
                SET name = ?, descr = ?, price = ?, category_id = ?
                WHERE id = ?;
                """,
                (rec["name"], rec.get("descr", ""), float(rec["price"]), category_id, product_id),
            )
            report.stock_kept += 1
        else:
            await conn.execute(
                """
                UPDATE products
                SET name = ?, descr = ?, price = ?, quantity = ?, is_unique = ?, category_id = ?
                WHERE id = ?;
                """,
                (
                    rec["name"],
                    rec.get("descr", ""),
                    float(rec["price"]),
                    quantity,
                    int(is_unique),
                    category_id,
                    product_id,
                ),
            )
        report.products_updated += 1

    images: List[Dict[str, Any]] = rec.get("images", [])
    for img in images:
        cur = await conn.execute("SELECT 1 FROM product_images WHERE id = ?;", (img["id"],))
        known = await cur.fetchone()
        await cur.close()
        if known:
            continue
        await conn.execute(
            "INSERT INTO product_images(id, product_id, location, sort_order) VALUES (?, ?, ?, ?);",
            (img["id"], product_id, img["location"], int(img.get("sort_order", 0))),
        )
        report.images_added += 1
