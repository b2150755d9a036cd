"""Merging items that share a payee bank account into one payment request."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, Protocol
from uuid import uuid4

from payreq.constant import MERGE_COLORS, MERGE_TYPE_ACCOUNT
from payreq.errors import ConsistencyError, ValidationError
from payreq.models import Notify, PaymentItem, Table, log_notify

log = logging.getLogger(__name__)

_CLEARED_MERGE_FIELDS: dict[str, Any] = {
    "merge_group_id": None,
    "merge_type": None,
    "is_merge_leader": False,
    "merge_color": "",
}


class RequestStore(Protocol):
    async def update(self, table: Table, ids: list[str], patch: dict[str, Any]) -> int: ...


def merge_color_for(items: Iterable[PaymentItem]) -> str:
    """Palette entry for the next group: distinct existing groups modulo palette size."""
    existing = {item.merge_group_id for item in items if item.merge_group_id}
    return MERGE_COLORS[len(existing) % len(MERGE_COLORS)]


def normalize_merge_groups(items: list[PaymentItem]) -> list[PaymentItem]:
    """Give every stored merge group exactly one leader and a color.

    A group keeps its stored leader when it has exactly one; otherwise its first
    member leads. Members without a color get one palette entry per group, in
    order of first appearance.
    """
    members: dict[str, list[PaymentItem]] = {}
    for item in items:
        if item.merge_group_id:
            members.setdefault(item.merge_group_id, []).append(item)

    leaders: dict[str, str] = {}
    for group_id, group_items in members.items():
        stored = [item.id for item in group_items if item.is_merge_leader]
        leaders[group_id] = stored[0] if len(stored) == 1 else group_items[0].id

    colors: dict[str, str] = {}
    color_index = 0
    normalized: list[PaymentItem] = []
    for item in items:
        group_id = item.merge_group_id
        if not group_id:
            normalized.append(item)
            continue
        if not item.merge_color and group_id not in colors:
            colors[group_id] = MERGE_COLORS[color_index % len(MERGE_COLORS)]
            color_index += 1
        normalized.append(
            replace(
                item,
                merge_type=item.merge_type or MERGE_TYPE_ACCOUNT,
                is_merge_leader=leaders[group_id] == item.id,
                merge_color=item.merge_color or colors.get(group_id, ""),
            )
        )

    # Rejected items first, order otherwise preserved.
    return sorted(normalized, key=lambda item: 0 if item.rejection_reason is not None else 1)


class MergeCoordinator:
    """Owns the editable item collection and the merge selection.

    ``items`` is replaced as a whole on every change, so a reader holding the
    previous tuple never sees a half-applied merge.
    """

    def __init__(
        self,
        store: RequestStore,
        items: Iterable[PaymentItem] = (),
        notify: Notify | None = None,
    ) -> None:
        self.store = store
        self.items: tuple[PaymentItem, ...] = tuple(items)
        self.notify = notify or log_notify
        self.selected_for_merge: list[str] = []
        self.merge_mode = False

    # Collection access

    def get(self, item_id: str) -> PaymentItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def group_members(self, group_id: str) -> list[PaymentItem]:
        return [item for item in self.items if item.merge_group_id == group_id]

    def leader_of(self, group_id: str) -> PaymentItem | None:
        for item in self.group_members(group_id):
            if item.is_merge_leader:
                return item
        return None

    def replace_items(self, items: Iterable[PaymentItem]) -> None:
        """Install a freshly loaded collection, dropping candidates that vanished."""
        self.items = tuple(items)
        known = {item.id for item in self.items}
        self.selected_for_merge = [item_id for item_id in self.selected_for_merge if item_id in known]

    def update_item(self, item_id: str, **changes: Any) -> None:
        self.items = tuple(replace(item, **changes) if item.id == item_id else item for item in self.items)

    def update_group(self, group_id: str, **changes: Any) -> None:
        self.items = tuple(
            replace(item, **changes) if item.merge_group_id == group_id else item for item in self.items
        )

    def set_selected(self, item_id: str, selected: bool) -> None:
        self.update_item(item_id, is_selected=selected)

    # Selection

    def toggle_merge_mode(self) -> None:
        self.merge_mode = not self.merge_mode
        self.selected_for_merge = []

    def toggle_candidate(self, item_id: str, included: bool) -> None:
        """Add or remove a merge candidate.

        Compatibility is not checked here; callers consult :meth:`can_merge_with`
        before offering an item.
        """
        if included:
            if item_id not in self.selected_for_merge:
                self.selected_for_merge = [*self.selected_for_merge, item_id]
        else:
            self.selected_for_merge = [i for i in self.selected_for_merge if i != item_id]

    def can_merge_with(self, item: PaymentItem) -> bool:
        if not self.merge_mode or not self.selected_for_merge:
            return True

        first = self.get(self.selected_for_merge[0])
        if first is None:
            return True

        if not first.payee or not item.payee:
            return False
        return first.payee == item.payee

    # Merge / unmerge

    def merge(self) -> str:
        """Merge the selected candidates and return the new group id.

        The first candidate leads. Every candidate must still be in the
        collection and not already merged. The merge lives in memory until the
        items are submitted.
        """
        candidates = list(self.selected_for_merge)
        if len(candidates) < 2:
            raise ValidationError("Select at least two items to merge.")
        for item_id in candidates:
            item = self.get(item_id)
            if item is None:
                raise ValidationError(f"Item {item_id} is no longer available to merge.")
            if item.merge_group_id:
                raise ValidationError(f'"{item.service or item.id}" is already merged; unmerge it first.')

        group_id = f"merge-{uuid4().hex}"
        color = merge_color_for(self.items)
        leader_id = candidates[0]
        chosen = set(candidates)

        self.items = tuple(
            replace(
                item,
                merge_type=MERGE_TYPE_ACCOUNT,
                merge_group_id=group_id,
                is_merge_leader=item.id == leader_id,
                merge_color=color,
            )
            if item.id in chosen
            else item
            for item in self.items
        )
        self.selected_for_merge = []
        self.merge_mode = False

        log.info("merge_done group_id=%s leader=%s members=%d color=%s", group_id, leader_id, len(candidates), color)
        self.notify(f"Merged {len(candidates)} items.", severity="information")
        return group_id

    async def unmerge(self, group_id: str) -> None:
        """Split a merge group back into independent items.

        Stored requests are updated first; the in-memory collection changes only
        after both store calls succeed. Non-leaders lose the attachments and
        invoice number the group shared; the leader keeps its own.
        """
        members = self.group_members(group_id)
        leaders = [item for item in members if item.is_merge_leader]
        if len(leaders) != 1:
            log.warning("unmerge_bad_leaders group_id=%s members=%d leaders=%d", group_id, len(members), len(leaders))
            raise ConsistencyError(f"Merge group {group_id} must have exactly one leader; cannot unmerge.")
        leader = leaders[0]

        non_leader_request_ids = [
            item.payment_request_id for item in members if item.id != leader.id and item.payment_request_id
        ]
        if non_leader_request_ids:
            await self.store.update(
                Table.PAYMENT_REQUESTS,
                non_leader_request_ids,
                {**_CLEARED_MERGE_FIELDS, "attachment_file_path": None, "invoice_number": None},
            )
        if leader.payment_request_id:
            await self.store.update(Table.PAYMENT_REQUESTS, [leader.payment_request_id], dict(_CLEARED_MERGE_FIELDS))

        current = self.group_members(group_id)
        if not current:
            log.info("unmerge_discarded group_id=%s reason=group_gone", group_id)
            return

        updated: list[PaymentItem] = []
        for item in self.items:
            if item.merge_group_id != group_id:
                updated.append(item)
            elif item.id == leader.id:
                updated.append(replace(item, **_CLEARED_MERGE_FIELDS))
            else:
                updated.append(replace(item, **_CLEARED_MERGE_FIELDS, attachments=(), invoice_number=None))
        self.items = tuple(updated)
        self.selected_for_merge = []

        log.info("unmerge_done group_id=%s members=%d", group_id, len(current))
        self.notify("Merge undone.", severity="information")
