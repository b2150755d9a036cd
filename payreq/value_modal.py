"""Single-value entry modal screen."""

from __future__ import annotations

from typing import Callable

from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.screen import ModalScreen
from textual.widgets import Static


class ValueModal(ModalScreen[str | None]):
    """Prompt for one short value such as a cost or an invoice number.

    ``accept_char`` filters typed characters and ``validate`` returns an error
    message, or None when the value may be confirmed.
    """

    CSS = """
    ValueModal {
        align: center middle;
        background: $background 60%;
    }

    #value-dialog {
        width: 56;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #value-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #value-prompt {
        color: white;
        margin-bottom: 1;
    }

    #value-input {
        border: heavy $secondary;
        padding: 0 1;
        color: white;
        margin-bottom: 1;
    }

    #value-error {
        color: #ffb3b3;
        margin-bottom: 1;
    }

    #value-help {
        color: #dddddd;
    }
    """

    def __init__(
        self,
        title: str,
        prompt: str,
        initial: str = "",
        accept_char: Callable[[str], bool] | None = None,
        validate: Callable[[str], str | None] | None = None,
        max_length: int = 32,
    ) -> None:
        super().__init__()
        self.title_text = title
        self.prompt = prompt
        self.value = initial
        self.char_filter = accept_char or (lambda ch: ch.isprintable())
        self.validator = validate
        self.max_length = max_length
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="value-dialog"):
            yield Static(self.title_text, id="value-title")
            yield Static(self.prompt, id="value-prompt")
            yield Static(id="value-input")
            yield Static(id="value-error")
            yield Static("Enter confirm. Backspace delete. Esc/Ctrl+C cancel.", id="value-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"escape", "ctrl+c"}:
            self.dismiss(None)
            event.stop()
            return

        if event.key == "enter":
            self._confirm()
            event.stop()
            return

        if event.key == "backspace":
            if self.value:
                self.value = self.value[:-1]
                self.error = ""
                self._refresh_content()
            event.stop()
            return

        if event.is_printable and event.character and self.char_filter(event.character):
            if len(self.value) < self.max_length:
                self.value += event.character
            self.error = ""
            self._refresh_content()
            event.stop()

    def _confirm(self) -> None:
        if self.validator is not None:
            error = self.validator(self.value)
            if error:
                self.error = error
                self._refresh_content()
                return
        self.dismiss(self.value)

    def _refresh_content(self) -> None:
        self.query_one("#value-input", Static).update(self.value or "")
        self.query_one("#value-error", Static).update(self.error or "")
