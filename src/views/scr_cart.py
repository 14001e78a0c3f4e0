from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.events import ScreenResume
from textual.message import Message
from textual.widgets import Button, Label, Rule

from db.models import CartLine
from utils.messages import CartChangedMessage, ModeSwitchedMessage, NewOrderMessage
from views.base_screen import BaseScreen, Sidebar, explain
from views.modal_checkout import CheckoutModal
from views.modal_dialog import ConfirmDialogModal
from views.modal_prod_detail import ProdDetailModal


class CartLineActionDetailsMessage(Message):
    bubble = True


class CartLineActionRemoveMessage(Message):
    bubble = True


class CartLineActionLabel(Label):
    def action_details(self):
        self.post_message(CartLineActionDetailsMessage())

    def action_remove(self):
        self.post_message(CartLineActionRemoveMessage())


class CartLineWidget(HorizontalGroup):
    """One cart line: name, unit price, quantity controls and line total."""

    def __init__(self, line: CartLine):
        super().__init__()
        self.line = line

    def compose(self):
        line = self.line
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                yield Label(line.product.name, id="label-item-name")
                yield Label(self.app.money(line.product.price), id="label-item-price")
                with Horizontal(id="hort-item-qty"):
                    yield Button("-", id="btn-line-sub")
                    yield Label(str(line.quantity), id="label-item-qty")
                    yield Button(
                        "+", id="btn-line-add", disabled=line.product.is_unique
                    )
                yield Label(self.app.money(line.line_total), id="label-item-total")
            with Container(id="div-actions"):
                yield CartLineActionLabel(
                    "[@click=details()]Details[/]", id="link-item-details"
                )
                yield CartLineActionLabel(
                    "[@click=remove()]Remove[/]", id="link-item-remove"
                )

    @on(Button.Pressed, "#btn-line-add")
    @work(exclusive=True)
    async def handle_increase(self):
        outcome = await self.app.state.cart.increase_quantity(self.line)
        if not outcome:
            self.notify(explain(outcome), severity="warning")
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-line-sub")
    @work(exclusive=True)
    async def handle_decrease(self):
        if self.line.quantity <= 1 and not await self.app.push_screen_wait(
            ConfirmDialogModal(f"Remove {self.line.product.name} from the cart?")
        ):
            return
        outcome = await self.app.state.cart.decrease_quantity(self.line)
        if not outcome:
            self.notify(explain(outcome), severity="warning")
        self.post_message(CartChangedMessage())

    @on(CartLineActionDetailsMessage)
    @work()
    async def handle_details(self):
        if await self.app.push_screen_wait(ProdDetailModal(self.line.product.id)):
            self.post_message(CartChangedMessage())

    @on(CartLineActionRemoveMessage)
    @work()
    async def handle_remove(self):
        remove_confirmed = await self.app.push_screen_wait(
            ConfirmDialogModal("Do you really want to remove this item from the cart?")
        )
        if remove_confirmed:
            outcome = await self.app.state.cart.remove_from_cart(self.line)
            if outcome:
                self.notify("Item removed from cart.", severity="information")
            else:
                self.notify(explain(outcome), severity="warning")
            self.post_message(CartChangedMessage())


class CartScreen(BaseScreen):
    """
    Cart lines with quantity controls, the running total and checkout.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Label("", id="label-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Empty Cart", id="btn-clear-cart")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    def on_mount(self):
        self.handle_cart_change()

    @on(CartChangedMessage)
    @on(NewOrderMessage)
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @work(exclusive=True)  # must be exclusive, two reloads would mount duplicates
    async def handle_cart_change(self):
        cart = self.app.state.cart
        lines = await cart.reload()
        if cart.error_message:
            self.notify(cart.error_message, severity="error")

        content = self.query_one("#vertscroll-content")
        await content.remove_children()
        await content.mount_all([CartLineWidget(line) for line in lines])
        content.set_class(not lines, "no-items")

        self.query_one("#label-cart-total", Label).update(
            f"{cart.total_item_count} item(s), total {self.money(cart.total_price)}"
        )
        self.query_one("#btn-checkout", Button).disabled = not lines
        for sidebar in self.query(Sidebar):
            await sidebar.refresh_info()

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if self.app.state.cart.is_empty:
            self.app.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(
            ConfirmDialogModal("Put all items back and empty the cart?", tone="error")
        ):
            outcome = await self.app.state.cart.release_all()
            if not outcome:
                self.notify(explain(outcome), severity="error")
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        if self.app.state.cart.is_empty:
            self.app.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(CheckoutModal()):
            self.post_message(NewOrderMessage())
        self.post_message(CartChangedMessage())
