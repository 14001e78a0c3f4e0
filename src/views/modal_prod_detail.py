from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from db.models import CartLine, Product
from utils.messages import CartChangedMessage, CatalogChangedMessage
from utils.pure import display, format_datetime, generate_markdown_table, stars
from views.base_screen import explain
from views.modal_review import ReviewModal


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail with images and reviews, plus ordering.
    Dismisses with True if the cart changed, False if not.
    """

    order_qty = reactive(1)

    def __init__(self, product_id: str) -> None:
        super().__init__()

        self._product_id = product_id
        self._prod: Optional[Product] = None
        self._line: Optional[CartLine] = None
        self._cart_changed = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="vert-prod-actions"):
                yield Label("Quantity")
                with Horizontal(id="hort-qty"):
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                yield Label("", id="label-in-cart")
                yield Button("Add to Cart", id="btn-addcart", variant="primary")
                yield Button("♡ Favorite", id="btn-favorite")
                yield Button("Write a Review", id="btn-review")
                yield Button("Go Back", id="btn-quit")

    async def on_mount(self):
        await self.render_product()
        self.query_one("#input-order-qty").focus()

    async def render_product(self) -> None:
        state = self.app.state
        self._prod = await state.catalog.get_product(self._product_id)
        if self._prod is None:
            self.notify("This product no longer exists.", severity="error")
            self.dismiss(self._cart_changed)
            return
        prod = self._prod
        await state.cart.reload()
        self._line = state.cart.line_for(prod)

        images = await state.catalog.images(prod)
        reviews = await state.catalog.reviews(prod)
        rating = await state.catalog.average_rating(prod)

        rows = [
            ["Price", self.app.money(prod.price)],
            ["Category", display(prod.category_name)],
            ["In stock", prod.quantity],
            ["Unique piece", "yes" if prod.is_unique else "no"],
            ["Rating", stars(rating)],
        ]
        md = f"### {prod.name}\n\n{display(prod.descr, '')}\n\n"
        md += generate_markdown_table(["", ""], rows, ["l", "l"])
        if images:
            md += "\n\n#### Images\n\n" + "\n".join(f"- `{i.location}`" for i in images)
        md += f"\n\n#### Reviews ({len(reviews)})\n\n"
        if not reviews:
            md += "_No reviews yet._"
        for r in reviews:
            md += (
                f"**{'★' * r.rating}{'☆' * (5 - r.rating)}** "
                f"{display(r.author_name, 'anonymous')}, {format_datetime(r.created_at)}  \n"
                f"{display(r.body, '')}\n\n"
            )
        await self.query_one(MarkdownViewer).document.update(md)

        self.query_one("#btn-favorite", Button).label = (
            "♥ Favorite" if prod.is_favorite else "♡ Favorite"
        )
        in_cart = self.query_one("#label-in-cart", Label)
        in_cart.update(f"In cart: {self._line.quantity}" if self._line else "")

        order_btn = self.query_one("#btn-addcart", Button)
        order_btn.disabled = False
        order_btn.label = "Add to Cart"
        order_btn.variant = "primary"
        if not prod.in_stock:
            order_btn.label = "Sold Out" if prod.is_unique else "Out of Stock"
            order_btn.disabled = True
            order_btn.variant = "warning"

        self.query_one("#input-order-qty").validators = [
            Number(minimum=1, maximum=max(prod.quantity, 1))
        ]
        self.order_qty = 1
        self.watch_order_qty(self.order_qty)

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(self._cart_changed)

    async def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.value
            and message.input.is_valid
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        if self._prod is None:
            return
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#btn-add-qty").disabled = (
            self._prod.is_unique or qty >= self._prod.quantity
        )
        input_order_qty = self.query_one("#input-order-qty", Input)
        if input_order_qty.value != str(qty):
            input_order_qty.value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        if self.order_qty > 1:
            self.order_qty -= 1

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(self._cart_changed)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        outcome = await self.app.state.cart.add_to_cart(self._prod, self.order_qty)
        if not outcome:
            self.notify(explain(outcome), severity="error")
            await self.render_product()
            return

        self._cart_changed = True
        self.app.notify(f"{self.order_qty} x {self._prod.name} added to cart.")
        self.app.post_message(CartChangedMessage())
        self.dismiss(True)

    @on(Button.Pressed, "#btn-favorite")
    @work(exclusive=True)
    async def handle_favorite(self):
        outcome = await self.app.state.catalog.toggle_favorite(self._prod)
        if not outcome:
            self.notify(explain(outcome), severity="error")
        self.app.post_message(CatalogChangedMessage())
        await self.render_product()

    @on(Button.Pressed, "#btn-review")
    @work(exclusive=True)
    async def handle_review(self):
        if await self.app.push_screen_wait(ReviewModal(self._prod)):
            await self.render_product()
