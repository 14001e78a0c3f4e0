from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class LeaveRequestedMessage(Message):
    """
    broadcasted when the user leaves Shop or Atelier and returns to the welcome screen
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired whenever a cart line is added, changed or removed, from the catalog,
    the product detail or the cart itself. Cart screen and sidebar badge reload.

    If posted from outside CartScreen, make sure to post at App level
    """

    bubble = True


class CatalogChangedMessage(Message):
    """
    Fired after products, categories, images or favorites change,
    and after stock moves because of a cart operation.
    """

    bubble = True


class NewOrderMessage(Message):
    """
    Fired when a new order is stored.
    Listened to by order history, Atelier orders and the dashboard
    """

    bubble = True


class OrderUpdatedMessage(Message):
    """
    Fired when tracking, status or payment status of an order changes.
    """

    bubble = True

    def __init__(self, order_id: str) -> None:
        super().__init__()
        self.order_id = order_id


class CouponsChangedMessage(Message):
    """
    Fired after a coupon is created, toggled, deleted or redeemed.
    """

    bubble = True


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
