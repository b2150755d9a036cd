"""Main Textual app class."""

from __future__ import annotations

import logging

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import Header, Static

from payreq.confirm_modal import ConfirmModal
from payreq.errors import PaymentEngineError, RemotePersistenceError, ValidationError
from payreq.grouping import flatten_groups, group_by_project
from payreq.merge import MergeCoordinator
from payreq.models import PaymentItem, ProjectGroup
from payreq.persistence import PaymentStore
from payreq.rendering import format_group_header, format_item_label, format_rejection
from payreq.submission import SubmissionOrchestrator
from payreq.value_modal import ValueModal

log = logging.getLogger(__name__)


def _cost_error(value: str) -> str | None:
    try:
        float(value)
    except ValueError:
        return "Enter a number."
    return None


class PaymentsApp(App):
    """A Textual console for grouping, merging and submitting pending payment items."""

    TITLE = "Payment Requests"
    SUB_TITLE = "Pending items"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #items-pane {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #status-pane {
        width: 1fr;
        border: round $secondary;
        padding: 1;
    }

    #items-list {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #status-bar {
        height: auto;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    cursor_index = reactive(None)
    busy = reactive(False)

    BINDINGS = [
        ("up", "move_cursor(-1)", "Previous item"),
        ("down", "move_cursor(1)", "Next item"),
        ("space", "toggle_selected", "Select for submit"),
        Binding("ctrl+s", "submit", "Submit", priority=True),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, store: PaymentStore | None = None) -> None:
        super().__init__()
        self.store = store or PaymentStore()
        self.coordinator = MergeCoordinator(self.store, notify=self.notify)
        self.orchestrator = SubmissionOrchestrator(self.store, refetch=self.reload_items, notify=self.notify)
        self.system_status = ""

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Vertical(id="items-pane"):
                yield Static("Pending Items", classes="pane-title")
                yield Static("(no items yet)", id="items-list")
            with Vertical(id="status-pane"):
                yield Static("Status", classes="pane-title")
                yield Static(id="status-bar")

    def on_mount(self) -> None:
        self.store.bootstrap_schema()
        log.info("on_mount db=%s", self.store.db_path)
        self._refresh_all()
        self.run_worker(self.reload_items(), exclusive=True, group="reload")

    def on_key(self, event: Key) -> None:
        if isinstance(self.screen, ModalScreen):
            return

        if not event.is_printable or not event.character or len(event.character) != 1:
            return

        key = event.character
        handlers = {
            "j": lambda: self.action_move_cursor(1),
            "k": lambda: self.action_move_cursor(-1),
            "m": self._toggle_merge_mode,
            "x": self._toggle_candidate,
            "g": self._confirm_merge,
            "u": self._confirm_unmerge,
            "c": self._edit_cost,
            "i": self._edit_invoice,
            "r": lambda: self.run_worker(self.reload_items(), exclusive=True, group="reload"),
        }
        handler = handlers.get(key)
        if handler is None:
            return
        log.debug("on_key key=%r", key)
        handler()
        event.stop()

    # Data

    async def reload_items(self) -> None:
        """Replace the working set with the store's current pending items."""
        try:
            items = await self.store.load_pending_items()
        except RemotePersistenceError as exc:
            self._report_failure(exc)
            return
        self.coordinator.replace_items(items)
        self.system_status = f"Loaded {len(items)} items"
        self._refresh_all()

    def _groups(self) -> list[ProjectGroup]:
        return group_by_project(self.coordinator.items)

    def _display_items(self) -> list[PaymentItem]:
        return flatten_groups(self._groups())

    def _selected_item(self) -> PaymentItem | None:
        items = self._display_items()
        if self.cursor_index is None or not (0 <= self.cursor_index < len(items)):
            return None
        return items[self.cursor_index]

    def _report_failure(self, exc: PaymentEngineError) -> None:
        log.warning("operation_failed kind=%s message=%r", type(exc).__name__, str(exc))
        self.system_status = str(exc)
        self.notify(str(exc), severity="error")
        self._refresh_status()

    # Actions

    def action_move_cursor(self, delta: int) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        total = len(self._display_items())
        if total == 0:
            return

        if self.cursor_index is None:
            self.cursor_index = 0 if delta > 0 else total - 1
        else:
            self.cursor_index = (self.cursor_index + delta) % total
        self._refresh_items()

    def action_toggle_selected(self) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        item = self._selected_item()
        if item is None:
            return
        self.coordinator.set_selected(item.id, not item.is_selected)
        self._refresh_all()

    def action_submit(self) -> None:
        if isinstance(self.screen, ModalScreen) or self.busy:
            return
        count = sum(1 for item in self.coordinator.items if item.is_selected)

        def on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self.run_worker(self._submit(), exclusive=True, group="store")

        self.push_screen(ConfirmModal("Submit", f"Submit {count} selected item(s) for payment?"), on_confirm)

    async def _submit(self) -> None:
        self.busy = True
        try:
            count = await self.orchestrator.submit(self.coordinator.items)
        except PaymentEngineError as exc:
            self._report_failure(exc)
            if isinstance(exc, RemotePersistenceError):
                await self.reload_items()
            return
        finally:
            self.busy = False
        self.system_status = f"Submitted {count} items"
        self._refresh_status()

    def _toggle_merge_mode(self) -> None:
        self.coordinator.toggle_merge_mode()
        self.system_status = "Merge mode on" if self.coordinator.merge_mode else "Merge mode off"
        self._refresh_all()

    def _toggle_candidate(self) -> None:
        item = self._selected_item()
        if item is None or not self.coordinator.merge_mode:
            return
        if item.id in self.coordinator.selected_for_merge:
            self.coordinator.toggle_candidate(item.id, False)
        elif item.merge_group_id:
            self.notify("Item is already merged; unmerge it first.", severity="warning")
            return
        elif not self.coordinator.can_merge_with(item):
            self.notify("Only items paid to the same bank account can be merged.", severity="warning")
            return
        else:
            self.coordinator.toggle_candidate(item.id, True)
        self._refresh_all()

    def _confirm_merge(self) -> None:
        count = len(self.coordinator.selected_for_merge)
        if count < 2:
            self._report_failure(ValidationError("Select at least two items to merge."))
            return

        def on_confirm(confirmed: bool | None) -> None:
            if not confirmed:
                return
            try:
                self.coordinator.merge()
            except PaymentEngineError as exc:
                self._report_failure(exc)
                return
            self._refresh_all()

        self.push_screen(ConfirmModal("Merge", f"Merge {count} items into one payment request?"), on_confirm)

    def _confirm_unmerge(self) -> None:
        item = self._selected_item()
        if item is None or not item.merge_group_id:
            return
        group_id = item.merge_group_id
        members = len(self.coordinator.group_members(group_id))

        def on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self.run_worker(self._unmerge(group_id), exclusive=True, group="store")

        self.push_screen(ConfirmModal("Unmerge", f"Undo this merge? It affects {members} items."), on_confirm)

    async def _unmerge(self, group_id: str) -> None:
        try:
            await self.coordinator.unmerge(group_id)
        except PaymentEngineError as exc:
            self._report_failure(exc)
            return
        self._refresh_all()

    def _edit_cost(self) -> None:
        item = self._selected_item()
        if item is None:
            return

        def on_value(value: str | None) -> None:
            if value is None:
                return
            self.coordinator.update_item(item.id, cost_amount=float(value))
            self._refresh_all()

        self.push_screen(
            ValueModal(
                "Cost",
                f"Cost for {item.service or item.id}",
                initial=f"{item.cost_amount or 0:g}",
                accept_char=lambda ch: ch.isdigit() or ch == ".",
                validate=_cost_error,
                max_length=12,
            ),
            on_value,
        )

    def _edit_invoice(self) -> None:
        item = self._selected_item()
        if item is None:
            return
        # Merged groups keep the invoice number on the leader.
        target = self.coordinator.leader_of(item.merge_group_id) if item.merge_group_id else item
        if target is None:
            self.notify("Merge group has no leader.", severity="error")
            return

        def on_value(value: str | None) -> None:
            if value is None:
                return
            self.coordinator.update_item(target.id, invoice_number=value.strip() or None)
            self._refresh_all()

        self.push_screen(
            ValueModal(
                "Invoice number",
                "Format: AB-12345678",
                initial=target.invoice_number or "",
                max_length=16,
            ),
            on_value,
        )

    # Rendering

    def _refresh_all(self) -> None:
        self._refresh_items()
        self._refresh_status()

    def _visible_rows(self, widget: Static) -> int:
        height = widget.size.height
        if height <= 0:
            return 8
        return max(1, height)

    def _window_bounds(self, total: int, rows: int, selected: int | None) -> tuple[int, int]:
        if total <= 0:
            return (0, 0)

        rows = max(1, rows)
        if total <= rows:
            return (0, total)

        if selected is None:
            start = 0
        else:
            half = rows // 2
            start = selected - half
            start = max(0, start)
            start = min(start, total - rows)

        return (start, start + rows)

    def _item_lines(self) -> tuple[list[Text], int | None]:
        lines: list[Text] = []
        cursor_line: int | None = None
        item_index = 0
        candidates = self.coordinator.selected_for_merge

        for group in self._groups():
            lines.append(format_group_header(group))
            for item in group.items:
                if item_index == self.cursor_index:
                    cursor_line = len(lines)
                line = Text("➤ " if item_index == self.cursor_index else "  ")
                line.append_text(
                    format_item_label(
                        item,
                        candidate=item.id in candidates,
                        mergeable=self.coordinator.can_merge_with(item),
                    )
                )
                lines.append(line)
                if item.rejection_reason is not None:
                    rejection = Text("      ")
                    rejection.append_text(format_rejection(item))
                    lines.append(rejection)
                item_index += 1
        return lines, cursor_line

    def _refresh_items(self) -> None:
        try:
            items_widget = self.query_one("#items-list", Static)
        except NoMatches:
            return

        total = len(self.coordinator.items)
        if not total:
            self.cursor_index = None
            items_widget.update("(no items yet)")
            return

        if self.cursor_index is not None and self.cursor_index >= total:
            self.cursor_index = total - 1

        lines, cursor_line = self._item_lines()
        visible_rows = self._visible_rows(items_widget)
        start, end = self._window_bounds(len(lines), visible_rows, cursor_line)

        rendered = Text()
        if start > 0:
            rendered.append("⋮\n", style="dim")
        for idx in range(start, end):
            if idx > start:
                rendered.append("\n")
            rendered.append_text(lines[idx])
        if end < len(lines):
            rendered.append("\n⋮", style="dim")

        items_widget.update(rendered)

    def _refresh_status(self) -> None:
        try:
            bar = self.query_one("#status-bar", Static)
        except NoMatches:
            return

        selected = [item for item in self.coordinator.items if item.is_selected]
        text = Text()
        text.append(self.system_status or "Ready")
        text.append(f"\n\nSelected: {len(selected)}")
        text.append(f"\nTotal: {sum(item.cost_amount or 0 for item in selected):,.0f}")
        if self.coordinator.merge_mode:
            text.append("\n\nMERGE MODE", style="bold #e8c547")
            text.append(f"\nCandidates: {len(self.coordinator.selected_for_merge)}")
        text.append(
            "\n\nj/k move  space select\nm merge mode  x candidate\ng merge  u unmerge\n"
            "c cost  i invoice  r reload\nCtrl+S submit  Ctrl+Q quit",
            style="dim",
        )
        bar.update(text)
