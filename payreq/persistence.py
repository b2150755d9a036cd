"""SQLite backing store for quotation items and payment requests."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any
from uuid import uuid4

from payreq.config import DB_PATH
from payreq.constant import VERIFICATION_REJECTED
from payreq.errors import RemotePersistenceError
from payreq.merge import normalize_merge_groups
from payreq.models import Attachment, PaymentItem, Table

log = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS quotations (
    id TEXT PRIMARY KEY,
    project_name TEXT NOT NULL,
    client_name TEXT
);

CREATE TABLE IF NOT EXISTS payees (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    real_name TEXT,
    bank_info TEXT
);

CREATE TABLE IF NOT EXISTS quotation_items (
    id TEXT PRIMARY KEY,
    quotation_id TEXT,
    payee_id TEXT,
    service TEXT NOT NULL DEFAULT '',
    quantity INTEGER NOT NULL DEFAULT 1,
    price REAL NOT NULL DEFAULT 0,
    cost REAL,
    created_at TEXT,
    FOREIGN KEY(quotation_id) REFERENCES quotations(id) ON DELETE SET NULL,
    FOREIGN KEY(payee_id) REFERENCES payees(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS payment_requests (
    id TEXT PRIMARY KEY,
    quotation_item_id TEXT NOT NULL,
    request_date TEXT NOT NULL,
    verification_status TEXT NOT NULL,
    cost_amount REAL,
    merge_type TEXT,
    merge_group_id TEXT,
    is_merge_leader INTEGER NOT NULL DEFAULT 0,
    merge_color TEXT,
    attachment_file_path TEXT,
    invoice_number TEXT,
    rejection_reason TEXT,
    rejected_by TEXT,
    rejected_at TEXT,
    FOREIGN KEY(quotation_item_id) REFERENCES quotation_items(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_payment_requests_item
    ON payment_requests(quotation_item_id);

CREATE INDEX IF NOT EXISTS idx_payment_requests_status
    ON payment_requests(verification_status);
"""

_ITEM_COLUMNS = """
    qi.id AS item_id,
    qi.quotation_id,
    qi.service,
    qi.quantity,
    qi.cost,
    q.project_name,
    q.client_name,
    p.name AS payee_name,
    p.bank_info
"""


def _to_db_value(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    return value


def _parse_bank_info(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    parsed = json.loads(raw)
    return parsed if isinstance(parsed, dict) else None


def _parse_attachments(raw: str | None) -> tuple[Attachment, ...]:
    if not raw:
        return ()
    return tuple(Attachment.from_dict(entry) for entry in json.loads(raw))


def _line_cost(row: sqlite3.Row) -> float:
    if row["cost"] is None:
        return 0
    return row["cost"] * (row["quantity"] or 1)


def serialize_attachments(attachments: tuple[Attachment, ...]) -> str | None:
    """Stored form of an attachment list; None when empty."""
    if not attachments:
        return None
    return json.dumps([attachment.to_dict() for attachment in attachments], ensure_ascii=False)


class PaymentStore:
    """Async facade over a SQLite file.

    Blocking SQLite work runs in a worker thread so the event loop stays free.
    Every failure surfaces as :class:`RemotePersistenceError`.
    """

    def __init__(self, db_path: str | Path = DB_PATH) -> None:
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def bootstrap_schema(self) -> None:
        """Create persistence schema if it does not already exist."""
        with closing(self._connect()) as conn, conn:
            conn.executescript(_SCHEMA)

    def _columns(self, conn: sqlite3.Connection, table: Table) -> set[str]:
        return {row[1] for row in conn.execute(f"PRAGMA table_info({table.value})")}

    def _check_columns(self, conn: sqlite3.Connection, table: Table, names: list[str]) -> None:
        unknown = sorted(set(names) - self._columns(conn, table))
        if unknown:
            raise RemotePersistenceError(f"Unknown column(s) for {table.value}: {', '.join(unknown)}")

    async def _run(self, description: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            log.warning("store_failed op=%s error=%r", description, exc)
            raise RemotePersistenceError(f"{description} failed: {exc}") from exc

    # Queries

    def _select_sync(self, table: Table, equals: dict[str, Any]) -> list[dict[str, Any]]:
        with closing(self._connect()) as conn, conn:
            self._check_columns(conn, table, list(equals))
            sql = f"SELECT * FROM {table.value}"
            if equals:
                sql += " WHERE " + " AND ".join(f"{name} = ?" for name in equals)
            rows = conn.execute(sql, [_to_db_value(v) for v in equals.values()]).fetchall()
        return [dict(row) for row in rows]

    async def select(self, table: Table, **equals: Any) -> list[dict[str, Any]]:
        """Return rows of ``table`` whose columns equal the given values."""
        return await self._run(f"Reading {table.value}", self._select_sync, table, equals)

    def _update_sync(self, table: Table, ids: list[str], patch: dict[str, Any]) -> int:
        with closing(self._connect()) as conn:
            self._check_columns(conn, table, list(patch))
            assignments = ", ".join(f"{name} = ?" for name in patch)
            placeholders = ", ".join("?" for _ in ids)
            with conn:
                count = conn.execute(
                    f"UPDATE {table.value} SET {assignments} WHERE id IN ({placeholders})",
                    [_to_db_value(v) for v in patch.values()] + list(ids),
                ).rowcount
        return count

    async def update(self, table: Table, ids: list[str], patch: dict[str, Any]) -> int:
        """Apply ``patch`` to every row whose id is in ``ids``; return the row count."""
        if not ids or not patch:
            return 0
        return await self._run(f"Updating {table.value}", self._update_sync, table, list(ids), dict(patch))

    def _insert_sync(self, table: Table, record: dict[str, Any]) -> str:
        row = dict(record)
        row.setdefault("id", uuid4().hex)
        with closing(self._connect()) as conn:
            self._check_columns(conn, table, list(row))
            names = ", ".join(row)
            placeholders = ", ".join("?" for _ in row)
            with conn:
                conn.execute(
                    f"INSERT INTO {table.value} ({names}) VALUES ({placeholders})",
                    [_to_db_value(v) for v in row.values()],
                )
        return str(row["id"])

    async def insert(self, table: Table, record: dict[str, Any]) -> str:
        """Insert one row and return its id (assigned when missing)."""
        return await self._run(f"Inserting into {table.value}", self._insert_sync, table, record)

    # Working set

    def _load_pending_items_sync(self) -> list[PaymentItem]:
        with closing(self._connect()) as conn, conn:
            rejected_rows = conn.execute(
                f"""
                SELECT {_ITEM_COLUMNS},
                    pr.id AS request_id,
                    pr.cost_amount,
                    pr.merge_type,
                    pr.merge_group_id,
                    pr.is_merge_leader,
                    pr.merge_color,
                    pr.attachment_file_path,
                    pr.invoice_number,
                    pr.rejection_reason
                FROM payment_requests pr
                JOIN quotation_items qi ON qi.id = pr.quotation_item_id
                LEFT JOIN quotations q ON q.id = qi.quotation_id
                LEFT JOIN payees p ON p.id = qi.payee_id
                WHERE pr.verification_status = ?
                ORDER BY pr.request_date, pr.id
                """,
                (VERIFICATION_REJECTED,),
            ).fetchall()
            available_rows = conn.execute(
                f"""
                SELECT {_ITEM_COLUMNS}
                FROM quotation_items qi
                LEFT JOIN quotations q ON q.id = qi.quotation_id
                LEFT JOIN payees p ON p.id = qi.payee_id
                WHERE NOT EXISTS (
                    SELECT 1 FROM payment_requests pr WHERE pr.quotation_item_id = qi.id
                )
                ORDER BY qi.created_at, qi.id
                """
            ).fetchall()

        items: list[PaymentItem] = []
        for row in rejected_rows:
            items.append(
                PaymentItem(
                    id=row["item_id"],
                    project_id=row["quotation_id"],
                    project_name=row["project_name"] or "",
                    client_name=row["client_name"],
                    service=row["service"],
                    payee_name=row["payee_name"],
                    payee=_parse_bank_info(row["bank_info"]),
                    cost_amount=row["cost_amount"] if row["cost_amount"] is not None else _line_cost(row),
                    attachments=_parse_attachments(row["attachment_file_path"]),
                    invoice_number=row["invoice_number"],
                    rejection_reason=row["rejection_reason"],
                    payment_request_id=row["request_id"],
                    merge_type=row["merge_type"],
                    merge_group_id=row["merge_group_id"],
                    is_merge_leader=bool(row["is_merge_leader"]),
                    merge_color=row["merge_color"] or "",
                )
            )
        for row in available_rows:
            items.append(
                PaymentItem(
                    id=row["item_id"],
                    project_id=row["quotation_id"],
                    project_name=row["project_name"] or "",
                    client_name=row["client_name"],
                    service=row["service"],
                    payee_name=row["payee_name"],
                    payee=_parse_bank_info(row["bank_info"]),
                    cost_amount=_line_cost(row),
                )
            )
        return normalize_merge_groups(items)

    async def load_pending_items(self) -> list[PaymentItem]:
        """Items the operator can still submit: never requested, or rejected.

        Rejected items come first and carry their stored request state.
        """
        try:
            items = await self._run("Loading pending items", self._load_pending_items_sync)
        except (json.JSONDecodeError, TypeError, AttributeError) as exc:
            raise RemotePersistenceError(f"Loading pending items failed: malformed stored JSON ({exc})") from exc
        log.info("pending_items_loaded count=%d", len(items))
        return items
