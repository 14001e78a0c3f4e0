from __future__ import annotations

from typing import List, Optional, Set

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import (
    Button,
    Checkbox,
    Input,
    Label,
    OptionList,
    Select,
    TextArea,
)
from textual.widgets.option_list import Option

from db.database import PersistenceError
from db.models import Product, ProductImage
from db.sync import SyncError, export_catalog, import_catalog
from utils.messages import CatalogChangedMessage
from views.base_screen import BaseScreen, explain
from views.modal_dialog import ConfirmDialogModal

NO_CATEGORY = ""
SNAPSHOT_PATH = "data/catalog.json"
IMAGE_CONTROLS = "#input-image, #btn-image-add, #btn-image-up, #btn-image-remove"


class AtelierProductsScreen(BaseScreen):
    """
    Catalog maintenance: search a product, edit it in the form on the right,
    manage its images. Categories and catalog snapshots live at the bottom.
    """

    current: Optional[Product] = None

    def __init__(self) -> None:
        super().__init__()
        self._images: List[ProductImage] = []
        self._category_ids: Set[str] = set()

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-products"):
            with Vertical(id="vert-product-list"):
                yield Input(id="input-search", placeholder="Search for product...")
                yield OptionList(id="optlist-prods")
                yield Button("New Product", id="btn-new", variant="success")
            with VerticalScroll(id="vert-product-form"):
                yield Label("", id="label-form-title")
                yield Label("Name")
                yield Input(id="input-name")
                with Horizontal(classes="form-row"):
                    with Vertical():
                        yield Label("Price")
                        yield Input(
                            id="input-price",
                            type="number",
                            validators=[Number(minimum=0.0)],
                        )
                    with Vertical():
                        yield Label("Stock")
                        yield Input(
                            id="input-stock",
                            type="integer",
                            validators=[Number(minimum=0)],
                        )
                    yield Checkbox("Unique piece", id="check-unique")
                yield Label("Category")
                yield Select(
                    [("No category", NO_CATEGORY)],
                    value=NO_CATEGORY,
                    allow_blank=False,
                    id="select-category",
                )
                yield Label("Description")
                yield TextArea(id="textarea-descr")
                with Horizontal(classes="form-row"):
                    yield Button("Delete", id="btn-delete", variant="error")
                    yield Button("Save", id="btn-save", variant="primary")

                yield Label("Images", classes="section")
                yield OptionList(id="optlist-images")
                with Horizontal(classes="form-row"):
                    yield Input(placeholder="images/vase-front.jpg", id="input-image")
                    yield Button("Add", id="btn-image-add")
                    yield Button("Up", id="btn-image-up")
                    yield Button("Remove", id="btn-image-remove")

        with Horizontal(id="hort-catalog-tools"):
            yield Input(placeholder="New category", id="input-category")
            yield Button("Add Category", id="btn-category-add")
            yield Button("Delete Selected Category", id="btn-category-delete")
            yield Input(SNAPSHOT_PATH, id="input-snapshot")
            yield Button("Export", id="btn-export")
            yield Button("Import", id="btn-import", variant="warning")

    async def on_mount(self) -> None:
        self.query_one("#input-search", Input).focus()
        self.load_categories()
        self.update_optlist("")
        await self.show_product(None)

    @on(ScreenResume)
    @on(CatalogChangedMessage)
    def handle_catalog_change(self) -> None:
        self.update_optlist(self.query_one("#input-search", Input).value)

    @on(Input.Changed, "#input-search")
    def handle_search(self, message: Input.Changed) -> None:
        self.update_optlist(message.value)

    @work(exclusive=True, group="list")
    async def update_optlist(self, query: str):
        """
        fill option list with search results
        """
        products = await self.app.state.catalog.list_products(search=query)
        opt_list = self.query_one("#optlist-prods", OptionList)
        opt_list.clear_options()
        opt_list.add_options(
            [Option(f"{p.name}  ({p.quantity})", id=p.id) for p in products]
        )

    @work(exclusive=True, group="categories")
    async def load_categories(self) -> None:
        categories = await self.app.state.catalog.list_categories()
        select = self.query_one("#select-category", Select)
        select.set_options(
            [("No category", NO_CATEGORY)] + [(c.name, c.id) for c in categories]
        )
        self._category_ids = {c.id for c in categories}
        self._select_category(self.current.category_id if self.current else None)

    def _select_category(self, category_id: Optional[str]) -> None:
        select = self.query_one("#select-category", Select)
        if category_id in self._category_ids:
            select.value = category_id
        else:
            select.value = NO_CATEGORY

    @on(OptionList.OptionSelected, "#optlist-prods")
    @work(exclusive=True, group="form")
    async def handle_product_selected(self, message: OptionList.OptionSelected):
        product = await self.app.state.catalog.get_product(message.option.id)
        await self.show_product(product)

    @on(Button.Pressed, "#btn-new")
    async def handle_new(self) -> None:
        await self.show_product(None)
        self.query_one("#input-name", Input).focus()

    async def show_product(self, product: Optional[Product]) -> None:
        """Fill the form; None gives an empty form for a new product."""
        self.current = product
        self.query_one("#label-form-title", Label).update(
            f"Edit: {product.name}" if product else "New product"
        )
        self.query_one("#input-name", Input).value = product.name if product else ""
        self.query_one("#input-price", Input).value = (
            f"{product.price:.2f}" if product else ""
        )
        self.query_one("#input-stock", Input).value = (
            str(product.quantity) if product else "1"
        )
        self.query_one("#check-unique", Checkbox).value = bool(
            product and product.is_unique
        )
        self.query_one("#textarea-descr", TextArea).text = (
            product.descr if product else ""
        )
        self._select_category(product.category_id if product else None)
        self.query_one("#btn-delete", Button).disabled = product is None
        await self.load_images()

    async def load_images(self) -> None:
        self._images = (
            await self.app.state.catalog.images(self.current) if self.current else []
        )
        opt_list = self.query_one("#optlist-images", OptionList)
        opt_list.clear_options()
        opt_list.add_options([Option(i.location, id=i.id) for i in self._images])
        for widget in self.query(IMAGE_CONTROLS):
            widget.disabled = self.current is None

    def _selected_image(self) -> Optional[ProductImage]:
        index = self.query_one("#optlist-images", OptionList).highlighted
        if index is None or index >= len(self._images):
            return None
        return self._images[index]

    # ---------------------------
    # Product form
    # ---------------------------

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True, group="form")
    async def handle_save(self) -> None:
        price_input = self.query_one("#input-price", Input)
        stock_input = self.query_one("#input-stock", Input)
        for field in (price_input, stock_input):
            if not field.value or not field.is_valid:
                field.focus()
                field.add_class("-invalid")
                self.notify("Please enter a valid number.", severity="error")
                return

        fields = dict(
            name=self.query_one("#input-name", Input).value,
            price=float(price_input.value),
            quantity=int(stock_input.value),
            is_unique=self.query_one("#check-unique", Checkbox).value,
            category_id=self.query_one("#select-category", Select).value or None,
            descr=self.query_one("#textarea-descr", TextArea).text,
        )
        catalog = self.app.state.catalog
        if self.current is None:
            outcome = await catalog.create_product(**fields)
            product_id = outcome.id
        else:
            outcome = await catalog.update_product(self.current, **fields)
            product_id = self.current.id
        if not outcome:
            self.notify(explain(outcome), severity="error")
            return

        self.notify("Product saved.")
        await self.show_product(await catalog.get_product(product_id))
        self.post_message(CatalogChangedMessage())

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True, group="form")
    async def handle_delete(self) -> None:
        if self.current is None:
            return
        if not await self.app.push_screen_wait(
            ConfirmDialogModal(
                f"Delete {self.current.name}? Carts holding it lose the line.",
                tone="error",
            )
        ):
            return
        outcome = await self.app.state.catalog.delete_product(self.current)
        if not outcome:
            self.notify(explain(outcome), severity="error")
            return
        self.notify("Product deleted.")
        await self.show_product(None)
        self.post_message(CatalogChangedMessage())

    # ---------------------------
    # Images
    # ---------------------------

    @on(Button.Pressed, "#btn-image-add")
    @on(Input.Submitted, "#input-image")
    @work(exclusive=True, group="images")
    async def handle_image_add(self) -> None:
        location = self.query_one("#input-image", Input).value.strip()
        if not location or self.current is None:
            return
        outcome = await self.app.state.catalog.add_image(self.current, location)
        if not outcome:
            self.notify(explain(outcome), severity="error")
        self.query_one("#input-image", Input).value = ""
        await self.load_images()

    @on(Button.Pressed, "#btn-image-up")
    @work(exclusive=True, group="images")
    async def handle_image_up(self) -> None:
        image = self._selected_image()
        if image is None:
            return
        index = self._images.index(image)
        if index == 0:
            return
        order = list(self._images)
        order[index - 1], order[index] = order[index], order[index - 1]
        outcome = await self.app.state.catalog.reorder_images(order)
        if not outcome:
            self.notify(explain(outcome), severity="error")
        await self.load_images()
        self.query_one("#optlist-images", OptionList).highlighted = index - 1

    @on(Button.Pressed, "#btn-image-remove")
    @work(exclusive=True, group="images")
    async def handle_image_remove(self) -> None:
        image = self._selected_image()
        if image is None:
            return
        outcome = await self.app.state.catalog.delete_image(image)
        if not outcome:
            self.notify(explain(outcome), severity="error")
        await self.load_images()

    # ---------------------------
    # Categories and snapshots
    # ---------------------------

    @on(Button.Pressed, "#btn-category-add")
    @on(Input.Submitted, "#input-category")
    @work(exclusive=True, group="categories")
    async def handle_category_add(self) -> None:
        name_input = self.query_one("#input-category", Input)
        outcome = await self.app.state.catalog.create_category(name_input.value)
        if not outcome:
            self.notify(explain(outcome), severity="error")
            return
        name_input.value = ""
        self.notify("Category added.")
        self.load_categories()

    @on(Button.Pressed, "#btn-category-delete")
    @work(exclusive=True, group="category-delete")
    async def handle_category_delete(self) -> None:
        catalog = self.app.state.catalog
        category_id = self.query_one("#select-category", Select).value
        category = next(
            (c for c in await catalog.list_categories() if c.id == category_id), None
        )
        if category is None:
            self.notify("Select a category in the form first.", severity="warning")
            return
        if not await self.app.push_screen_wait(
            ConfirmDialogModal(
                f"Delete category {category.name}? Its products are kept.", tone="error"
            )
        ):
            return
        outcome = await catalog.delete_category(category)
        if not outcome:
            self.notify(explain(outcome), severity="error")
        self.load_categories()
        self.post_message(CatalogChangedMessage())

    @on(Button.Pressed, "#btn-export")
    @work(exclusive=True, group="snapshot")
    async def handle_export(self) -> None:
        path = self.query_one("#input-snapshot", Input).value.strip() or SNAPSHOT_PATH
        try:
            count = await export_catalog(self.app.state.catalog, path)
        except (OSError, PersistenceError) as e:
            self.notify(f"Export failed: {e}", severity="error")
            return
        self.notify(f"Exported {count} product(s) to {path}.")

    @on(Button.Pressed, "#btn-import")
    @work(exclusive=True, group="snapshot")
    async def handle_import(self) -> None:
        path = self.query_one("#input-snapshot", Input).value.strip() or SNAPSHOT_PATH
        if not await self.app.push_screen_wait(
            ConfirmDialogModal(f"Import {path}? Matching products are overwritten.")
        ):
            return
        try:
            report = await import_catalog(self.app.state.catalog, path)
        except (SyncError, PersistenceError) as e:
            self.notify(str(e), severity="error")
            return
        self.notify(
            f"{report.products_created} new, {report.products_updated} updated"
            + (f", stock kept for {report.stock_kept}" if report.stock_kept else "")
        )
        self.load_categories()
        self.post_message(CatalogChangedMessage())
