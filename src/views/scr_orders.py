from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label, MarkdownViewer

from db.models import Order, OrderLine
from utils.messages import ModeSwitchedMessage, NewOrderMessage, OrderUpdatedMessage
from utils.pure import display, format_datetime, generate_markdown_table
from views.base_screen import BaseScreen


class OrdersScreen(BaseScreen):
    """
    Order history, newest first, with the selected order in detail above.

    Layout:
    - Markdown detail view at the top, showing the selected order.
    - Orders table below.
    - Subclasses add their own controls below the table.
    """

    BINDINGS = [
        Binding("enter", "noop", "View Order Detail", show=True, key_display="⏎"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._orders: List[Order] = []
        self.selected: Optional[Order] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="vert-orders"):
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        yield from self.compose_controls()
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Label("", id="label-order-cnt")

    def compose_controls(self) -> ComposeResult:
        yield from ()

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Date", "Order", "Customer", "Status", "Payment", "Total")

    def action_noop(self) -> None:
        pass

    @on(Button.Pressed, "#btn-refresh")
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @on(NewOrderMessage)
    @on(OrderUpdatedMessage)
    def handle_refresh(self):
        self._load_orders()

    @work(exclusive=True, group="orders")
    async def _load_orders(self) -> None:
        recorder = self.app.state.orders
        self._orders = await recorder.list_orders()

        table = self.query_one(DataTable)
        keep = self.selected.id if self.selected else None
        table.clear()
        for o in self._orders:
            table.add_row(
                format_datetime(o.created_at),
                o.id[:8],
                f"{o.customer.first_name} {o.customer.last_name}",
                o.status.value,
                o.payment_status.value,
                self.money(o.total_amount),
                key=o.id,
            )
        self.query_one("#label-order-cnt", Label).update(f"{len(self._orders)} order(s)")

        if not self._orders:
            self.selected = None
            await self._render_detail(None, [])
            return
        row = next((i for i, o in enumerate(self._orders) if o.id == keep), 0)
        table.move_cursor(row=row)
        self._load_and_render_detail(self._orders[row].id)

    @on(DataTable.RowHighlighted, "#table-orders")
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is not None and event.row_key.value:
            self._load_and_render_detail(event.row_key.value)

    @work(exclusive=True, group="detail")
    async def _load_and_render_detail(self, order_id: str) -> None:
        recorder = self.app.state.orders
        order = await recorder.get_order(order_id)
        lines = await recorder.order_items(order) if order else []
        self.selected = order
        await self._render_detail(order, lines)
        self.on_order_selected(order)

    def on_order_selected(self, order: Optional[Order]) -> None:
        """Hook for subclasses; called after the detail view changed."""

    async def _render_detail(self, order: Optional[Order], lines: List[OrderLine]) -> None:
        viewer = self.query_one("#md-order-detail", MarkdownViewer)
        if not order:
            await viewer.document.update("### Select an order to view its details.")
            return

        c = order.customer
        header = (
            f"### Order {order.id[:8]}\n\n"
            f"Date: {format_datetime(order.created_at)}  \n"
            f"Status: **{order.status.value}**, payment {order.payment_status.value}  \n"
            f"Ship to: {c.first_name} {c.last_name}, {c.street}, {c.zip} {c.city}  \n"
            f"Contact: {c.email}, {display(c.phone)}  \n"
            f"Shipping: {display(order.carrier)} {display(order.tracking_number, '')}\n\n"
        )
        rows = [
            [
                ol.product_name,
                ol.quantity,
                self.money(ol.price_at_purchase),
                self.money(ol.line_total),
            ]
            for ol in lines
        ]
        table = generate_markdown_table(
            ["Product", "Qty", "Unit Price", "Line Total"], rows, ["l", "r", "r", "r"]
        )
        footer = ""
        if order.coupon_code:
            footer += (
                f"\n\n**Coupon {order.coupon_code}:** -{self.money(order.discount_amount)}"
            )
        footer += f"\n\n**Grand Total:** {self.money(order.total_amount)}"
        await viewer.document.update(header + table + footer)
