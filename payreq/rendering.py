"""Rendering helpers for item rows and project group headers."""

from __future__ import annotations

from rich.text import Text

from payreq.constant import MERGE_COLOR_STYLES, PROJECT_STATUS_STYLES
from payreq.grouping import completion_percentage, is_item_ready
from payreq.models import PaymentItem, ProjectGroup


def merge_badge_style(color: str) -> str:
    """Return a consistent badge style for a merge color token."""
    return MERGE_COLOR_STYLES.get(color, "bold #ffffff on #5a5a5a")


def format_cost(amount: float | None) -> str:
    return f"{amount or 0:,.0f}"


def format_group_header(group: ProjectGroup) -> Text:
    """Render a project header with its status badge and progress."""
    text = Text()
    text.append(f" {group.status.upper()} ", style=PROJECT_STATUS_STYLES.get(group.status, ""))
    text.append(f" {group.project_name}", style="bold")
    if group.client_name:
        text.append(f" · {group.client_name}", style="dim")
    text.append(
        f"  {group.ready_items}/{group.total_items} ready ({completion_percentage(group)}%)"
        f"  total {format_cost(group.total_cost)}"
    )
    return text


def format_item_label(item: PaymentItem, *, candidate: bool = False, mergeable: bool = True) -> Text:
    """Render one item row: selection box, merge badge, service, payee and cost."""
    text = Text()
    text.append("[x] " if item.is_selected else "[ ] ")

    if item.merge_group_id:
        badge = " L " if item.is_merge_leader else " + "
        text.append(badge, style=merge_badge_style(item.merge_color))
        text.append(" ")
    if candidate:
        text.append("◆ ", style="bold #e8c547")

    label_style = "" if mergeable else "dim strike"
    text.append(item.service or item.id, style=label_style)
    if item.payee_name:
        text.append(f" · {item.payee_name}", style="dim")
    text.append(f"  {format_cost(item.cost_amount)}")

    if is_item_ready(item):
        text.append("  ✓", style="bold #5fbf72")
    if item.invoice_number:
        text.append(f"  #{item.invoice_number}", style="dim")
    if item.attachments:
        text.append(f"  📎{len(item.attachments)}", style="dim")
    return text


def format_rejection(item: PaymentItem) -> Text:
    """Render the rejection reason line for a previously rejected item."""
    text = Text()
    if item.rejection_reason is None:
        return text
    text.append("Rejected: ", style="bold #ffb3b3")
    text.append(item.rejection_reason or "(no reason given)", style="#ffb3b3")
    return text
