from typing import Literal

from textual import on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Label, Static

from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal

WELCOME_TEXT = """\
Handmade ceramics, jewellery, textiles and woodwork.

[b]Shop[/b]     browse the catalog, keep favorites, fill the cart and check out.
[b]Atelier[/b]  manage products, coupons and orders, see the sales figures."""


class WelcomeScreen(BaseScreen):
    """
    Entry point: the user picks a role. Dismisses with "shopper" or "atelier".
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Welcome", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-welcome"):
            yield Label("Atelier Shop", id="label-welcome-title")
            yield Static(WELCOME_TEXT, id="static-welcome-text")
            with Horizontal(id="div-welcome-btns"):
                yield Button("Quit", id="btn-quit")
                yield Button("Atelier", id="btn-atelier", variant="warning")
                yield Button("Shop", id="btn-shop", variant="primary")

    def on_mount(self):
        self.query_one("#btn-shop").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "s":
            self._enter("shopper")
        elif event.key == "a":
            self._enter("atelier")

    @on(Button.Pressed, "#btn-shop")
    def handle_shop(self) -> None:
        self._enter("shopper")

    @on(Button.Pressed, "#btn-atelier")
    def handle_atelier(self) -> None:
        self._enter("atelier")

    def _enter(self, role: Literal["shopper", "atelier"]) -> None:
        self.app.state.role = role
        if role == "shopper":
            self.notify("Welcome to the shop!")
        else:
            self.notify("Welcome back to the atelier.")
        self.dismiss(role)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
