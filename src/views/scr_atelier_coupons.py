from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, Select

from db.models import Coupon, DiscountType
from utils.messages import CouponsChangedMessage
from utils.pure import format_datetime, parse_expiry
from views.base_screen import BaseScreen, explain
from views.modal_dialog import ConfirmDialogModal


class AtelierCouponsScreen(BaseScreen):
    """
    Coupon list with usage counters; create, switch on/off and delete.
    """

    def __init__(self) -> None:
        super().__init__()
        self._coupons: List[Coupon] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield DataTable(id="table-coupons")
        with Horizontal(id="hort-coupon-actions"):
            yield Button("Switch On/Off", id="btn-coupon-toggle")
            yield Button("Delete", id="btn-coupon-delete", variant="error")
        with Horizontal(id="hort-coupon-form"):
            with Vertical():
                yield Label("Code")
                yield Input(placeholder="SAVE10", id="input-code")
            with Vertical():
                yield Label("Type")
                yield Select(
                    [
                        ("Percent", DiscountType.PERCENT.value),
                        ("Fixed", DiscountType.FIXED.value),
                    ],
                    value=DiscountType.PERCENT.value,
                    allow_blank=False,
                    id="select-type",
                )
            with Vertical():
                yield Label("Value")
                yield Input(
                    id="input-value", type="number", validators=[Number(minimum=0.01)]
                )
            with Vertical():
                yield Label("Minimum order")
                yield Input("0", id="input-minimum", type="number")
            with Vertical():
                yield Label("Max uses (0 = unlimited)")
                yield Input("0", id="input-max-usage", type="integer")
            with Vertical():
                yield Label("Expires")
                yield Input(placeholder="31.12.2026", id="input-expiry")
            yield Button("Create", id="btn-coupon-create", variant="success")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Code", "Discount", "Minimum", "Used", "Expires", "Active")

    @on(ScreenResume)
    @on(CouponsChangedMessage)
    @work(exclusive=True, group="coupons")
    async def handle_reload(self) -> None:
        self._coupons = await self.app.state.coupons.list_coupons()
        table = self.query_one(DataTable)
        table.clear()
        for c in self._coupons:
            if c.discount_type == DiscountType.PERCENT:
                discount = f"{c.discount_value:g} %"
            else:
                discount = self.money(c.discount_value)
            used = f"{c.usage_count} / {c.max_usage}" if c.max_usage else str(c.usage_count)
            table.add_row(
                c.code,
                discount,
                self.money(c.minimum_order_amount) if c.minimum_order_amount else "-",
                used,
                format_datetime(c.expiry_date),
                "yes" if c.is_active else "no",
                key=c.id,
            )

    def _selected(self) -> Optional[Coupon]:
        table = self.query_one(DataTable)
        if not self._coupons or table.cursor_row is None:
            return None
        if table.cursor_row >= len(self._coupons):
            return None
        return self._coupons[table.cursor_row]

    @on(Button.Pressed, "#btn-coupon-toggle")
    @work(exclusive=True)
    async def handle_toggle(self) -> None:
        coupon = self._selected()
        if coupon is None:
            return
        outcome = await self.app.state.coupons.toggle_active(coupon)
        if not outcome:
            self.notify(explain(outcome), severity="error")
        self.post_message(CouponsChangedMessage())

    @on(Button.Pressed, "#btn-coupon-delete")
    @work(exclusive=True)
    async def handle_delete(self) -> None:
        coupon = self._selected()
        if coupon is None:
            return
        if not await self.app.push_screen_wait(
            ConfirmDialogModal(f"Delete coupon {coupon.code}?", tone="error")
        ):
            return
        outcome = await self.app.state.coupons.delete_coupon(coupon)
        if not outcome:
            self.notify(explain(outcome), severity="error")
        self.post_message(CouponsChangedMessage())

    @on(Button.Pressed, "#btn-coupon-create")
    @work(exclusive=True)
    async def handle_create(self) -> None:
        try:
            value = float(self.query_one("#input-value", Input).value)
            minimum = float(self.query_one("#input-minimum", Input).value or 0)
            max_usage = int(self.query_one("#input-max-usage", Input).value or 0)
            expiry = parse_expiry(self.query_one("#input-expiry", Input).value)
        except ValueError as e:
            self.notify(f"Please check the form: {e}", severity="error")
            return

        outcome = await self.app.state.coupons.create_coupon(
            self.query_one("#input-code", Input).value,
            self.query_one("#select-type", Select).value,
            value,
            minimum_order_amount=minimum,
            max_usage=max_usage,
            expiry_date=expiry,
        )
        if not outcome:
            self.notify(explain(outcome), severity="error")
            return
        self.notify("Coupon created.")
        for input_id in ("#input-code", "#input-value", "#input-expiry"):
            self.query_one(input_id, Input).value = ""
        self.post_message(CouponsChangedMessage())
