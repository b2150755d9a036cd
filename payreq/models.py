"""Domain models for payreq."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

log = logging.getLogger(__name__)


class Table(str, Enum):
    """Entity kinds held by the backing store."""

    QUOTATIONS = "quotations"
    PAYEES = "payees"
    QUOTATION_ITEMS = "quotation_items"
    PAYMENT_REQUESTS = "payment_requests"


@dataclass(frozen=True)
class Attachment:
    """An uploaded file descriptor."""

    name: str
    url: str
    path: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "url": self.url, "path": self.path}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Attachment:
        return cls(name=str(raw.get("name", "")), url=str(raw.get("url", "")), path=str(raw.get("path", "")))


@dataclass(frozen=True)
class PaymentItem:
    """A billable line item waiting to become (or already part of) a payment request.

    Instances are never changed in place; edits produce a copy with
    ``dataclasses.replace``.
    """

    id: str
    project_id: str | None = None
    project_name: str = ""
    client_name: str | None = None
    service: str = ""
    payee_name: str | None = None
    # Bank-account descriptor; compared by structural equality only.
    payee: dict[str, Any] | None = field(default=None, hash=False)
    cost_amount: float | None = 0
    is_selected: bool = False
    attachments: tuple[Attachment, ...] = ()
    invoice_number: str | None = None
    rejection_reason: str | None = None
    payment_request_id: str | None = None
    merge_type: str | None = None
    merge_group_id: str | None = None
    is_merge_leader: bool = False
    merge_color: str = ""

    @property
    def is_merged(self) -> bool:
        return self.merge_group_id is not None


@dataclass
class ProjectGroup:
    """Read-only aggregate of the items of one project, rebuilt on every read."""

    project_id: str
    project_name: str
    client_name: str | None
    items: list[PaymentItem] = field(default_factory=list)
    total_cost: float = 0
    ready_items: int = 0
    total_items: int = 0
    is_expanded: bool = True
    has_rejected: bool = False
    status: str = "pending"


Notify = Callable[..., None]
"""Fire-and-forget operator notification: ``notify(message, severity=...)``."""


def log_notify(message: str, severity: str = "information") -> None:
    """Default notification surface when no UI is attached."""
    log.info("notify severity=%s message=%r", severity, message)
