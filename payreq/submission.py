"""Turning selected items into payment requests in the backing store."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol, Sequence

from payreq.constant import VERIFICATION_PENDING
from payreq.errors import RemotePersistenceError, ValidationError
from payreq.models import Notify, PaymentItem, Table, log_notify
from payreq.persistence import serialize_attachments
from payreq.validation import is_positive_cost, normalize_invoice_number

log = logging.getLogger(__name__)


class UpsertStore(Protocol):
    async def update(self, table: Table, ids: list[str], patch: dict[str, Any]) -> int: ...

    async def insert(self, table: Table, record: dict[str, Any]) -> str: ...


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def artifact_source(item: PaymentItem, items: Sequence[PaymentItem]) -> PaymentItem:
    """The item whose attachments and invoice number ``item`` is submitted with.

    Merged items defer to their group's leader; an item whose leader is missing
    falls back to itself.
    """
    if not item.merge_group_id:
        return item
    for other in items:
        if other.merge_group_id == item.merge_group_id and other.is_merge_leader:
            return other
    return item


def build_request(item: PaymentItem, source: PaymentItem, request_date: str) -> dict[str, Any]:
    return {
        "quotation_item_id": item.id,
        "request_date": request_date,
        "verification_status": VERIFICATION_PENDING,
        "cost_amount": item.cost_amount,
        "merge_type": item.merge_type,
        "merge_group_id": item.merge_group_id,
        "is_merge_leader": item.is_merge_leader,
        "merge_color": item.merge_color,
        "attachment_file_path": serialize_attachments(source.attachments),
        "invoice_number": normalize_invoice_number(source.invoice_number),
        # Resubmitting always clears an earlier rejection.
        "rejection_reason": None,
        "rejected_by": None,
        "rejected_at": None,
    }


class SubmissionOrchestrator:
    """Submits the selected items as pending payment requests."""

    def __init__(
        self,
        store: UpsertStore,
        refetch: Callable[[], Awaitable[Any]],
        notify: Notify | None = None,
    ) -> None:
        self.store = store
        self.refetch = refetch
        self.notify = notify or log_notify

    def _upsert(self, item: PaymentItem, request: dict[str, Any]) -> Awaitable[Any]:
        if item.payment_request_id:
            return self.store.update(Table.PAYMENT_REQUESTS, [item.payment_request_id], request)
        return self.store.insert(Table.PAYMENT_REQUESTS, request)

    async def submit(self, items: Sequence[PaymentItem]) -> int:
        """Upsert one request per selected item and return how many were sent.

        Upserts run concurrently. When some fail, the ones that succeeded stay
        stored and :class:`RemotePersistenceError` reports the first failure;
        callers reload afterwards either way.
        """
        selected = [item for item in items if item.is_selected]
        if not selected:
            raise ValidationError("Select at least one item to submit.")

        for item in selected:
            if not is_positive_cost(item.cost_amount):
                raise ValidationError(f'Cost for "{item.service or item.id}" must be greater than 0.')

        request_date = _utc_now_iso()
        operations = [
            self._upsert(item, build_request(item, artifact_source(item, items), request_date)) for item in selected
        ]
        log.info("submit_start count=%d", len(operations))
        results = await asyncio.gather(*operations, return_exceptions=True)

        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            first = failures[0]
            if not isinstance(first, Exception):
                raise first
            succeeded = len(results) - len(failures)
            log.warning("submit_partial succeeded=%d failed=%d first_error=%r", succeeded, len(failures), first)
            raise RemotePersistenceError(
                f"Some items failed to submit ({len(failures)} of {len(results)}): {first}",
                succeeded=succeeded,
                failed=len(failures),
            )

        log.info("submit_done count=%d", len(selected))
        self.notify(f"Submitted {len(selected)} payment requests.", severity="information")
        await self.refetch()
        return len(selected)
