from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.widgets import DataTable, Input, Label, Select

from db.models import Product
from utils.messages import CartChangedMessage, CatalogChangedMessage
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal

ALL_CATEGORIES = ""


class CatalogScreen(BaseScreen):
    """
    Product browser for shoppers: free text search on the name plus a
    category filter. Enter opens the product detail.
    """

    # bindings here are only shown in the footer, the table handles enter
    BINDINGS = [
        Binding("enter", "noop", "View Product", show=True, key_display="⏎"),
        Binding("ctrl+f", "focus_search", "Search", show=True),
    ]

    SEARCH_PLACEHOLDER = "Search by name..."

    def __init__(self):
        super().__init__()
        self._products: List[Product] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-catalog-filter"):
            yield Input(id="input-search", placeholder=self.SEARCH_PLACEHOLDER)
            yield Select(
                [("All categories", ALL_CATEGORIES)],
                value=ALL_CATEGORIES,
                allow_blank=False,
                id="select-category",
            )
        yield DataTable(id="table-products")
        yield Label("", id="label-result-cnt")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Category", "Price", "Stock", "")
        self.load_categories()
        self.query_one("#input-search").focus()

    def action_focus_search(self) -> None:
        self.query_one("#input-search").focus()

    def action_noop(self) -> None:
        pass

    @work(exclusive=True, group="categories")
    async def load_categories(self) -> None:
        categories = await self.app.state.catalog.list_categories()
        select = self.query_one("#select-category", Select)
        current = select.value
        select.set_options(
            [("All categories", ALL_CATEGORIES)] + [(c.name, c.id) for c in categories]
        )
        if current in {c.id for c in categories}:
            select.value = current
        else:
            select.value = ALL_CATEGORIES
        self.reload_products()

    @on(Input.Changed, "#input-search")
    @on(Select.Changed, "#select-category")
    @on(CatalogChangedMessage)
    @on(CartChangedMessage)
    @on(ScreenResume)
    def handle_filter_change(self) -> None:
        self.reload_products()

    async def fetch_products(self) -> List[Product]:
        search = self.query_one("#input-search", Input).value
        category_id = self.query_one("#select-category", Select).value or None
        return await self.app.state.catalog.list_products(
            category_id=category_id, search=search
        )

    @work(exclusive=True, group="products")
    async def reload_products(self) -> None:
        self._products = await self.fetch_products()

        table = self.query_one(DataTable)
        table.clear()
        for p in self._products:
            stock = "sold out" if not p.in_stock else str(p.quantity)
            if p.is_unique and p.in_stock:
                stock = "unique"
            table.add_row(
                p.name,
                p.category_name or "-",
                self.money(p.price),
                stock,
                "♥" if p.is_favorite else "",
                key=p.id,
            )
        self.query_one("#label-result-cnt", Label).update(
            f"{len(self._products)} product(s)"
        )

    @on(DataTable.RowSelected)
    @work()
    async def handle_row_selected(self, event: DataTable.RowSelected) -> None:
        product_id = event.row_key.value
        if await self.app.push_screen_wait(ProdDetailModal(product_id)):
            self.post_message(CartChangedMessage())
        self.reload_products()
