from typing import Dict, Optional, Tuple

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer

from db.checkout import CheckoutResult
from db.models import CustomerInfo, Rejection
from utils.messages import CartChangedMessage, CouponsChangedMessage, NewOrderMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import ConfirmDialogModal, NoticeModal

# input id suffix -> (label, placeholder)
CUSTOMER_FIELDS: Dict[str, Tuple[str, str]] = {
    "first_name": ("First name", "Erika"),
    "last_name": ("Last name", "Mustermann"),
    "email": ("Email", "erika@example.com"),
    "phone": ("Phone (optional)", "+49 30 1234567"),
    "street": ("Street", "Werkstattweg 3"),
    "zip": ("ZIP", "10115"),
    "city": ("City", "Berlin"),
}


def save_failure_text(result: CheckoutResult) -> Optional[str]:
    """Alert text for a checkout the database refused; None for inline refusals."""
    if result.rejection != Rejection.PERSISTENCE:
        return None
    return (
        "Your order could not be saved. The cart is unchanged, please try again.\n\n"
        f"{result.message}"
    )


class CheckoutModal(ModalScreen[bool]):
    """
    Order summary, customer details and an optional coupon.
    Dismisses with True when the order was placed.
    """

    def __init__(self):
        super().__init__()
        self._coupon_code: Optional[str] = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-checkout"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with VerticalScroll(id="vert-customer"):
                for key, (label, placeholder) in CUSTOMER_FIELDS.items():
                    yield Label(label)
                    yield Input(placeholder=placeholder, id=f"input-{key}")
                yield Label("Coupon code")
                with Horizontal(id="hort-coupon"):
                    yield Input(placeholder="SAVE10", id="input-coupon")
                    yield Button("Apply", id="btn-coupon")
                yield Label("", id="label-coupon-msg")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        await self.render_summary()
        self.query_one("#input-first_name").focus()

    async def render_summary(self) -> None:
        state = self.app.state
        preview = await state.checkout.preview(self._coupon_code)
        money = self.app.money

        headers = ["Product", "Unit Price", "Qty", "Total"]
        rows = [
            [
                line.product.name,
                money(line.product.price),
                line.quantity,
                money(line.line_total),
            ]
            for line in state.cart.lines
        ]
        md = "### Order Summary\n\n"
        md += generate_markdown_table(headers, rows, ["l", "r", "r", "r"])
        md += f"\n\n**Subtotal:** {money(preview.subtotal)}  \n"
        if preview.discount:
            code = preview.coupon.applied.code
            md += f"**Coupon {code}:** -{money(preview.discount)}  \n"
        md += f"**Total:** {money(preview.total)}"
        await self.query_one(MarkdownViewer).document.update(md)

        msg = self.query_one("#label-coupon-msg", Label)
        msg.update((preview.coupon.message or "") if preview.coupon else "")
        msg.set_class(bool(preview.coupon and not preview.coupon.is_valid), "-invalid")

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-coupon")
    @on(Input.Submitted, "#input-coupon")
    @work(exclusive=True)
    async def handle_coupon(self):
        self._coupon_code = self.query_one("#input-coupon", Input).value.strip() or None
        await self.render_summary()

    def read_customer(self) -> CustomerInfo:
        values = {
            key: self.query_one(f"#input-{key}", Input).value.strip()
            for key in CUSTOMER_FIELDS
        }
        values["phone"] = values["phone"] or None
        return CustomerInfo(**values)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        customer = self.read_customer()
        missing = customer.missing_fields()
        for key in CUSTOMER_FIELDS:
            self.query_one(f"#input-{key}", Input).set_class(key in missing, "-invalid")
        if missing:
            self.query_one(f"#input-{missing[0]}", Input).focus()
            self.notify("Please fill in all required fields.", severity="error")
            return

        if not await self.app.push_screen_wait(
            ConfirmDialogModal("Place order? This cannot be undone.", tone="positive")
        ):
            return

        # the code in the field counts, even if Apply was not pressed
        self._coupon_code = self.query_one("#input-coupon", Input).value.strip() or None
        result = await self.app.state.checkout.submit(customer, self._coupon_code)
        if not result.ok:
            alert = save_failure_text(result)
            if alert:
                await self.app.push_screen_wait(NoticeModal(alert, tone="error"))
                return
            self.notify(result.message or "Order could not be placed.", severity="error")
            if result.rejection == Rejection.INVALID_COUPON:
                await self.render_summary()
            return

        self.app.post_message(NewOrderMessage())
        self.app.post_message(CartChangedMessage())
        if result.redeemed:
            self.app.post_message(CouponsChangedMessage())
        await self.app.push_screen_wait(
            NoticeModal(
                f"Thank you! Order {result.order.id[:8]} placed, "
                f"total {self.app.money(result.order.total_amount)}."
            )
        )
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
