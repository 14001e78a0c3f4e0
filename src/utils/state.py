from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from db.cart import CartLedger
from db.catalog import CatalogStore
from db.checkout import Checkout
from db.coupons import CouponEvaluator
from db.database import Store
from db.orders import OrderRecorder
from utils.config import Settings
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - settings: runtime settings the app was started with
      - store: the one persistence handle, injected into every component
      - role: "shopper" | "atelier" | None while the welcome screen is up
      - catalog, cart, coupons, orders, checkout: the shop components
    """

    settings: Settings = field(default_factory=Settings)
    store: Optional[Store] = None
    role: Optional[Literal["shopper", "atelier"]] = None

    catalog: CatalogStore = field(init=False)
    cart: CartLedger = field(init=False)
    coupons: CouponEvaluator = field(init=False)
    orders: OrderRecorder = field(init=False)
    checkout: Checkout = field(init=False)

    def __post_init__(self) -> None:
        if self.store is None:
            self.store = Store(self.settings.db_path)
        self.catalog = CatalogStore(self.store)
        self.cart = CartLedger(self.store)
        self.coupons = CouponEvaluator(self.store)
        self.orders = OrderRecorder(self.store)
        self.checkout = Checkout(self.cart, self.coupons, self.orders)

    async def open(self) -> None:
        """Open the store, seed the demo catalog if wanted, load cart and orders."""
        await self.store.open()
        if self.settings.seed_demo_data:
            await self.catalog.seed_if_needed()
        await self.cart.reload()
        await self.orders.list_orders()
        _logger.info(f"Shop ready on {self.store.path}")

    async def close(self) -> None:
        await self.store.close()
        self.role = None
