from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import Resize, ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from db.models import OrderStatus, Outcome, Rejection
from utils.messages import LeaveRequestedMessage, ModeSwitchedMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import ConfirmDialogModal, QuitDialogModal
from views.modal_resize import ResizeScreenPromptModal

REJECTION_TEXT = {
    Rejection.OUT_OF_STOCK: "Not enough stock left.",
    Rejection.UNIQUE_ITEM: "This unique piece is already in a cart.",
    Rejection.INVALID_QUANTITY: "Quantity must be at least 1.",
    Rejection.NOT_IN_CART: "This item is no longer in the cart.",
    Rejection.NOT_FOUND: "This item no longer exists.",
    Rejection.EMPTY_CART: "Cart is empty.",
    Rejection.EXHAUSTED: "This coupon has already been redeemed.",
}


def explain(outcome: Outcome) -> str:
    """Text for a refused mutation; component messages win over the generic text."""
    if outcome.message:
        return outcome.message
    return REJECTION_TEXT.get(outcome.rejection, "Something went wrong.")


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("You are in", id="label-info-1")
        yield Markdown("", id="md-roleinfo")
        yield Button("Leave", id="btn-leave", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self.init_mode = self.app.current_mode
        role = self.app.state.role
        if not role:
            return

        modes = self.app.SHOP_MODES if role == "shopper" else self.app.ATELIER_MODES
        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), id="list-menu-item-" + k) for k, v in modes.items()]
        )
        self.highlight_item(self.init_mode)
        await self.refresh_info()

    async def refresh_info(self) -> None:
        """Role and a short cart / order summary."""
        state = self.app.state
        if state.role == "shopper":
            await state.cart.reload()
            rows = [
                ["Role", "Shop"],
                ["Cart", f"{state.cart.total_item_count} item(s)"],
                ["Total", self.app.money(state.cart.total_price)],
            ]
        elif state.role == "atelier":
            open_orders = sum(
                1 for o in state.orders.orders if o.status == OrderStatus.PLACED
            )
            rows = [["Role", "Atelier"], ["Open orders", open_orders]]
        else:
            return
        md = generate_markdown_table(None, rows, ["l", "l"])
        await self.query_one("#md-roleinfo", Markdown).update(md)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.app.post_message(ModeSwitchedMessage(self.app.current_mode, selected_mode))
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-leave")
    @work()
    async def handle_leave(self):
        if not await self.app.push_screen_wait(
            ConfirmDialogModal("Back to the welcome screen?")
        ):
            return
        self.app.post_message(LeaveRequestedMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu", ListView)
        for i, item in enumerate(list_menu.children):
            if item.id == "list-menu-item-" + mode_str:
                list_menu.index = i
                return


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Atelier Shop",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """
        self.app.title = "Atelier Shop"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if type(self) is v:
                if k in self.app.ATELIER_MODES:
                    self.sub_title = "Atelier · " + self.app.ATELIER_MODES[k]
                elif k in self.app.SHOP_MODES:
                    self.sub_title = self.app.SHOP_MODES[k]

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    async def on_resize(self, event: Resize) -> None:
        min_width = 80
        min_height = 24
        if isinstance(self.app.screen, ResizeScreenPromptModal):
            return
        if event.size.width < min_width or event.size.height < min_height:
            self.app.push_screen(ResizeScreenPromptModal(min_width, min_height))

    async def on_screen_resume(self, event: ScreenResume) -> None:
        for sidebar in self.query(Sidebar):
            await sidebar.refresh_info()

    def money(self, amount: float) -> str:
        return self.app.money(amount)

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
