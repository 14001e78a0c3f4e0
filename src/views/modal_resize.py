from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Resize
from textual.screen import ModalScreen
from textual.widgets import Label


class ResizeScreenPromptModal(ModalScreen[bool]):
    """
    Covers the screen while the terminal is too small for sidebar and tables.
    Goes away by itself once the terminal is large enough.
    """

    def __init__(self, min_width: int = 80, min_height: int = 24) -> None:
        super().__init__()
        self.min_width = min_width
        self.min_height = min_height

    def compose(self) -> ComposeResult:
        with Container(id="div-resize"):
            yield Label("", id="prompt")

    def on_resize(self, event: Resize) -> None:
        too_small = event.size.width < self.min_width or event.size.height < self.min_height
        if not too_small:
            self.dismiss(True)
            return
        self.query_one("#prompt", Label).update(
            f"Please enlarge the terminal to at least {self.min_width}x{self.min_height} "
            f"(now {event.size.width}x{event.size.height})."
        )
