from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select, TextArea

from db.models import Product
from utils.messages import CatalogChangedMessage

RATING_OPTIONS = [("★" * n + "☆" * (5 - n), n) for n in range(5, 0, -1)]


class ReviewModal(ModalScreen[bool]):
    """Star rating with an optional text. Dismisses with True once saved."""

    BINDINGS = [Binding("escape", "cancel", "Cancel", show=False)]

    def __init__(self, product: Product) -> None:
        super().__init__()
        self._prod = product

    def compose(self) -> ComposeResult:
        with Vertical(id="vert-review"):
            yield Label(f"Review: {self._prod.name}", id="label-review-title")
            yield Label("Rating")
            yield Select(RATING_OPTIONS, value=5, allow_blank=False, id="select-rating")
            yield Label("Your name")
            yield Input(placeholder="optional", id="input-review-author")
            yield Label("Review")
            yield TextArea(id="textarea-review-body")
            with Horizontal(id="hort-review-btns"):
                yield Button("Cancel", id="btn-quit")
                yield Button("Submit", id="btn-submit", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#select-rating").focus()

    def action_cancel(self) -> None:
        self.dismiss(False)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self) -> None:
        self.dismiss(False)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self) -> None:
        outcome = await self.app.state.catalog.add_review(
            self._prod,
            int(self.query_one("#select-rating", Select).value),
            self.query_one("#textarea-review-body", TextArea).text,
            self.query_one("#input-review-author", Input).value,
        )
        if not outcome:
            self.notify(outcome.message or "Review could not be saved.", severity="error")
            return
        self.app.notify("Thank you for your review!")
        self.app.post_message(CatalogChangedMessage())
        self.dismiss(True)
