"""Project grouping and readiness metrics."""

from __future__ import annotations

import locale
import math
from typing import Iterable

from payreq.constant import UNKNOWN_PROJECT_ID, UNKNOWN_PROJECT_NAME
from payreq.models import PaymentItem, ProjectGroup
from payreq.validation import is_valid_invoice_format


def is_item_ready(item: PaymentItem) -> bool:
    """An item is ready with an attachment or a valid invoice number, either one."""
    return bool(item.attachments) or is_valid_invoice_format(item.invoice_number)


def project_status(group: ProjectGroup) -> str:
    if group.has_rejected:
        return "rejected"
    if group.ready_items == 0:
        return "pending"
    if group.ready_items == group.total_items:
        return "complete"
    return "partial"


def completion_percentage(group: ProjectGroup) -> int:
    """Share of ready items, 0-100, rounding halves up."""
    if group.total_items == 0:
        return 0
    return int(math.floor(group.ready_items / group.total_items * 100 + 0.5))


def _sort_key(group: ProjectGroup) -> tuple[int, str]:
    return (0 if group.has_rejected else 1, locale.strxfrm(group.project_name))


def group_by_project(items: Iterable[PaymentItem]) -> list[ProjectGroup]:
    """Partition items by project.

    Groups holding a rejected item come first, the rest follow by project name.
    Callers display the result in this order.
    """
    groups: dict[str, ProjectGroup] = {}

    for item in items:
        project_id = item.project_id or UNKNOWN_PROJECT_ID
        group = groups.get(project_id)
        if group is None:
            group = ProjectGroup(
                project_id=project_id,
                project_name=item.project_name or UNKNOWN_PROJECT_NAME,
                client_name=item.client_name or None,
            )
            groups[project_id] = group

        group.items.append(item)
        group.total_cost += item.cost_amount or 0
        group.total_items += 1
        if is_item_ready(item):
            group.ready_items += 1
        if item.rejection_reason is not None:
            group.has_rejected = True

    ordered = sorted(groups.values(), key=_sort_key)
    for group in ordered:
        group.status = project_status(group)
    return ordered


def flatten_groups(groups: Iterable[ProjectGroup]) -> list[PaymentItem]:
    """Items in display order."""
    return [item for group in groups for item in group.items]
