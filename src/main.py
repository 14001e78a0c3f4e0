from typing import Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from db.database import PersistenceError
from utils.config import Settings
from utils.logger import get_logger
from utils.messages import LeaveRequestedMessage, ModeSwitchedMessage, QuitRequestedMessage
from utils.pure import format_currency
from utils.state import GlobalState
from views.scr_atelier_coupons import AtelierCouponsScreen
from views.scr_atelier_dashboard import AtelierDashboardScreen
from views.scr_atelier_orders import AtelierOrdersScreen
from views.scr_atelier_products import AtelierProductsScreen
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_favorites import FavoritesScreen
from views.scr_orders import OrdersScreen
from views.scr_welcome import WelcomeScreen

_logger = get_logger(__name__)


class ShopApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "favorites": FavoritesScreen,
        "cart": CartScreen,
        "orders": OrdersScreen,
        "at_dashboard": AtelierDashboardScreen,
        "at_products": AtelierProductsScreen,
        "at_orders": AtelierOrdersScreen,
        "at_coupons": AtelierCouponsScreen,
    }

    SHOP_MODES = {
        "catalog": "Catalog",
        "favorites": "Favorites",
        "cart": "Cart",
        "orders": "My Orders",
    }
    ATELIER_MODES = {
        "at_dashboard": "Dashboard",
        "at_products": "Products",
        "at_orders": "Orders",
        "at_coupons": "Coupons",
    }

    CSS_PATH = "views/styles/shop.tcss"

    state: GlobalState

    def __init__(
        self, settings: Optional[Settings] = None, state: Optional[GlobalState] = None
    ):
        super().__init__()
        self.state = state or GlobalState(settings or Settings.from_env())

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        try:
            await self.state.open()
        except PersistenceError as e:
            _logger.error(f"Cannot open the shop database: {e}")
            self.exit(return_code=1, message=str(e))
            return
        self.main_flow()

    async def on_unmount(self) -> None:
        await self.state.close()

    def money(self, amount: float) -> str:
        return format_currency(amount, self.state.settings.currency_symbol)

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(LeaveRequestedMessage)
    def handle_leave(self):
        _logger.info(f"Leaving {self.state.role}")
        self.state.role = None
        self.main_flow()

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self.exit()

    @work(exclusive=True, group="main")
    async def main_flow(self):
        role = await self.push_screen_wait(WelcomeScreen())
        target = "catalog" if role == "shopper" else "at_dashboard"
        self.post_message(ModeSwitchedMessage(self.current_mode, target))
        await self.switch_mode(target)


def run() -> None:
    ShopApp().run()


if __name__ == "__main__":
    run()
