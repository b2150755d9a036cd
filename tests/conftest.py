"""Shared fixtures for payreq tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from payreq.errors import RemotePersistenceError
from payreq.models import Attachment, PaymentItem, Table
from payreq.persistence import PaymentStore

BANK_A = {"bank_name": "First Bank", "branch_name": "Main", "account_number": "001-234"}
BANK_B = {"bank_name": "Second Bank", "branch_name": "East", "account_number": "999-000"}


class FakeStore:
    """Records update/insert calls; ``fail_on`` makes matching calls raise.

    ``fail_on`` holds ``("update", n)`` or ``("insert", n)`` pairs, counting
    calls of that kind from 1.
    """

    def __init__(self, fail_on: set[tuple[str, int]] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.updates: list[tuple[Table, list[str], dict[str, Any]]] = []
        self.inserts: list[tuple[Table, dict[str, Any]]] = []
        self._counts = {"update": 0, "insert": 0}

    def _maybe_fail(self, kind: str) -> None:
        self._counts[kind] += 1
        if (kind, self._counts[kind]) in self.fail_on:
            raise RemotePersistenceError(f"{kind} #{self._counts[kind]} rejected by store")

    async def update(self, table: Table, ids: list[str], patch: dict[str, Any]) -> int:
        await asyncio.sleep(0)
        self._maybe_fail("update")
        self.updates.append((table, list(ids), dict(patch)))
        return len(ids)

    async def insert(self, table: Table, record: dict[str, Any]) -> str:
        await asyncio.sleep(0)
        self._maybe_fail("insert")
        self.inserts.append((table, dict(record)))
        return f"req-{len(self.inserts)}"


@pytest.fixture()
def make_item():
    """Factory for PaymentItem with sensible defaults."""

    def _make(item_id: str, **overrides: Any) -> PaymentItem:
        fields: dict[str, Any] = {
            "id": item_id,
            "project_id": "p1",
            "project_name": "Project One",
            "service": f"Service {item_id}",
            "payee": dict(BANK_A),
            "cost_amount": 100,
        }
        fields.update(overrides)
        return PaymentItem(**fields)

    return _make


@pytest.fixture()
def attachment() -> Attachment:
    return Attachment(name="invoice.pdf", url="https://files.example/invoice.pdf", path="uploads/invoice.pdf")


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def store(tmp_path) -> PaymentStore:
    """A bootstrapped SQLite store in a temporary directory."""
    payment_store = PaymentStore(tmp_path / "payreq.db")
    payment_store.bootstrap_schema()
    return payment_store


@pytest.fixture()
def bank_a() -> dict[str, str]:
    return dict(BANK_A)


@pytest.fixture()
def bank_b() -> dict[str, str]:
    return dict(BANK_B)


@pytest.fixture()
def failing_store():
    """Factory for a FakeStore that raises on the given calls."""

    def _make(*fail_on: tuple[str, int]) -> FakeStore:
        return FakeStore(fail_on=set(fail_on))

    return _make
