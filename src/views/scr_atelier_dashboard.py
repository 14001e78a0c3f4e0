from collections import Counter

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import MarkdownViewer

from db.models import OrderStatus
from utils.messages import ModeSwitchedMessage, NewOrderMessage, OrderUpdatedMessage
from utils.pure import format_datetime, generate_markdown_table
from views.base_screen import BaseScreen

LOW_STOCK = 2


class AtelierDashboardScreen(BaseScreen):
    """
    Sales figures, orders waiting for shipment and products running low.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-dashboard", show_table_of_contents=False)

    def on_mount(self) -> None:
        self.handle_reload()

    @on(NewOrderMessage)
    @on(OrderUpdatedMessage)
    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        state = self.app.state
        summary = await state.orders.sales_summary()
        orders = await state.orders.list_orders()
        products = await state.catalog.list_products()

        by_status = Counter(o.status for o in orders)
        status_rows = [[s.value, by_status.get(s, 0)] for s in OrderStatus]

        waiting = [o for o in orders if o.status == OrderStatus.PLACED]
        waiting_rows = [
            [
                format_datetime(o.created_at),
                o.id[:8],
                f"{o.customer.first_name} {o.customer.last_name}",
                self.money(o.total_amount),
            ]
            for o in waiting
        ]
        low = [p for p in products if p.quantity <= LOW_STOCK and not p.is_unique]
        low_rows = [[p.name, p.category_name or "-", p.quantity] for p in low]

        status_md = generate_markdown_table(["Status", "Orders"], status_rows, ["l", "r"])
        waiting_md = generate_markdown_table(
            ["Date", "Order", "Customer", "Total"], waiting_rows, ["l", "l", "l", "r"]
        )
        low_md = generate_markdown_table(
            ["Product", "Category", "Stock"], low_rows, ["l", "l", "r"]
        )

        md = (
            "### Sales\n\n"
            f"- Orders: {summary.order_count}\n"
            f"- Revenue: {self.money(summary.revenue)}\n"
            f"- Items sold: {summary.units_sold}\n"
            f"- Coupon discounts: {self.money(summary.discount_total)}\n"
            f"- Waiting for shipment: {summary.open_orders}\n\n"
            "_Cancelled and refunded orders are not counted._\n\n"
            f"### Orders by Status\n\n{status_md}\n\n"
            f"### To Ship\n\n{waiting_md or '_Nothing to ship._'}\n\n"
            f"### Low Stock (≤ {LOW_STOCK})\n\n{low_md or '_All stocked up._'}"
        )
        await self.query_one("#md-dashboard", MarkdownViewer).document.update(md)
