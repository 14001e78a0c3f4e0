from typing import List

from db.models import Product
from views.scr_catalog import CatalogScreen


class FavoritesScreen(CatalogScreen):
    """The catalog, narrowed down to the products marked as favorite."""

    SEARCH_PLACEHOLDER = "Search your favorites..."

    async def fetch_products(self) -> List[Product]:
        favorites = await self.app.state.catalog.favorite_products()
        term = self.query_one("#input-search").value.strip().lower()
        category_id = self.query_one("#select-category").value
        return [
            p
            for p in favorites
            if term in p.name.lower()
            and (not category_id or p.category_id == category_id)
        ]
