from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Input, Label, Select

from db.models import Order, OrderStatus, PaymentStatus
from utils.messages import OrderUpdatedMessage
from views.base_screen import explain
from views.scr_orders import OrdersScreen


class AtelierOrdersScreen(OrdersScreen):
    """
    Orders as seen from the atelier: enter tracking, move the status along,
    record payments.
    """

    def compose_controls(self) -> ComposeResult:
        carriers = self.app.state.settings.carriers
        with Horizontal(id="hort-order-controls"):
            with Vertical():
                yield Label("Carrier")
                yield Select(
                    [(c, c) for c in carriers],
                    value=carriers[0],
                    allow_blank=False,
                    id="select-carrier",
                )
            with Vertical():
                yield Label("Tracking number")
                yield Input(placeholder="00340434161234567890", id="input-tracking")
            yield Button("Save Tracking", id="btn-tracking", variant="success")
            with Vertical():
                yield Label("Status")
                yield Select(
                    [(s.value, s.value) for s in OrderStatus],
                    value=OrderStatus.PLACED.value,
                    allow_blank=False,
                    id="select-status",
                )
            with Vertical():
                yield Label("Payment")
                yield Select(
                    [(s.value, s.value) for s in PaymentStatus],
                    value=PaymentStatus.PENDING.value,
                    allow_blank=False,
                    id="select-payment",
                )
            yield Button("Save Status", id="btn-status", variant="primary")

    def on_order_selected(self, order: Optional[Order]) -> None:
        controls = self.query_one("#hort-order-controls")
        controls.disabled = order is None
        if order is None:
            return
        carrier = self.query_one("#select-carrier", Select)
        if order.carrier in self.app.state.settings.carriers:
            carrier.value = order.carrier
        self.query_one("#input-tracking", Input).value = order.tracking_number or ""
        self.query_one("#select-status", Select).value = order.status.value
        self.query_one("#select-payment", Select).value = order.payment_status.value

    @on(Button.Pressed, "#btn-tracking")
    @on(Input.Submitted, "#input-tracking")
    @work(exclusive=True)
    async def handle_tracking(self) -> None:
        if self.selected is None:
            return
        outcome = await self.app.state.orders.update_tracking(
            self.selected,
            str(self.query_one("#select-carrier", Select).value),
            self.query_one("#input-tracking", Input).value,
        )
        if outcome:
            self.notify("Tracking saved.")
            self.post_message(OrderUpdatedMessage(self.selected.id))
        else:
            self.notify(explain(outcome), severity="error")

    @on(Button.Pressed, "#btn-status")
    @work(exclusive=True)
    async def handle_status(self) -> None:
        if self.selected is None:
            return
        orders = self.app.state.orders
        order = self.selected
        status = OrderStatus(self.query_one("#select-status", Select).value)
        payment = PaymentStatus(self.query_one("#select-payment", Select).value)

        if status != order.status:
            outcome = await orders.set_status(order, status)
            if not outcome:
                self.notify(explain(outcome), severity="error")
                self.on_order_selected(order)
                return
        if payment != order.payment_status:
            outcome = await orders.set_payment_status(order, payment)
            if not outcome:
                self.notify(explain(outcome), severity="error")
                return
        self.notify("Order updated.")
        self.post_message(OrderUpdatedMessage(order.id))
