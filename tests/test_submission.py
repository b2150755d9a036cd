"""Tests for submitting selected items as payment requests."""

from __future__ import annotations

import asyncio
import json

import pytest

from payreq.constant import MERGE_TYPE_ACCOUNT, VERIFICATION_PENDING
from payreq.errors import RemotePersistenceError, ValidationError
from payreq.models import Table
from payreq.submission import SubmissionOrchestrator, artifact_source


class Refetch:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1


@pytest.fixture()
def refetch() -> Refetch:
    return Refetch()


@pytest.fixture()
def orchestrator(fake_store, refetch) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(fake_store, refetch=refetch)


def test_no_selection(orchestrator, fake_store, make_item, refetch):
    with pytest.raises(ValidationError, match="at least one"):
        asyncio.run(orchestrator.submit([make_item("a"), make_item("b")]))

    assert fake_store.inserts == [] and fake_store.updates == []
    assert refetch.calls == 0


def test_non_positive_cost_names_first_offender(orchestrator, fake_store, make_item):
    items = [
        make_item("a", is_selected=True),
        make_item("b", is_selected=True, cost_amount=0, service="Video edit"),
        make_item("c", is_selected=True, cost_amount=-5, service="Photo shoot"),
    ]

    with pytest.raises(ValidationError, match="Video edit"):
        asyncio.run(orchestrator.submit(items))

    assert fake_store.inserts == [] and fake_store.updates == []


def test_missing_cost_is_rejected(orchestrator, make_item):
    with pytest.raises(ValidationError):
        asyncio.run(orchestrator.submit([make_item("a", is_selected=True, cost_amount=None)]))


def test_inserts_new_and_updates_existing(orchestrator, fake_store, make_item, refetch):
    items = [
        make_item("new", is_selected=True, cost_amount=120),
        make_item("old", is_selected=True, payment_request_id="r-old", rejection_reason="Missing invoice"),
        make_item("skip"),
    ]

    count = asyncio.run(orchestrator.submit(items))

    assert count == 2
    assert refetch.calls == 1
    ((table, inserted),) = fake_store.inserts
    assert table is Table.PAYMENT_REQUESTS
    assert inserted["quotation_item_id"] == "new"
    assert inserted["cost_amount"] == 120
    assert inserted["verification_status"] == VERIFICATION_PENDING
    assert inserted["request_date"]

    ((table, ids, patch),) = fake_store.updates
    assert ids == ["r-old"]
    assert patch["quotation_item_id"] == "old"
    assert patch["rejection_reason"] is None
    assert patch["rejected_by"] is None
    assert patch["rejected_at"] is None


def test_merged_items_submit_leader_artifacts(orchestrator, fake_store, make_item, attachment):
    common = {"merge_group_id": "g", "merge_type": MERGE_TYPE_ACCOUNT, "merge_color": "green", "is_selected": True}
    items = [
        make_item("follower", **common),
        make_item("leader", is_merge_leader=True, attachments=(attachment,), invoice_number=" AB-12345678 ", **common),
    ]

    asyncio.run(orchestrator.submit(items))

    requests = {record["quotation_item_id"]: record for _, record in fake_store.inserts}
    for item_id in ("follower", "leader"):
        record = requests[item_id]
        assert json.loads(record["attachment_file_path"]) == [attachment.to_dict()]
        assert record["invoice_number"] == "AB-12345678"
        assert record["merge_group_id"] == "g"
        assert record["merge_color"] == "green"
    assert requests["leader"]["is_merge_leader"] is True
    assert requests["follower"]["is_merge_leader"] is False


def test_unmerged_item_without_artifacts(orchestrator, fake_store, make_item):
    asyncio.run(orchestrator.submit([make_item("a", is_selected=True, invoice_number="   ")]))

    ((_, record),) = fake_store.inserts
    assert record["attachment_file_path"] is None
    assert record["invoice_number"] is None
    assert record["merge_group_id"] is None


def test_artifact_source_falls_back_without_leader(make_item):
    orphan = make_item("a", merge_group_id="g")

    assert artifact_source(orphan, [orphan]) is orphan


def test_partial_failure_reports_counts(failing_store, make_item, refetch):
    store = failing_store(("insert", 2))
    orchestrator = SubmissionOrchestrator(store, refetch=refetch)
    items = [make_item(item_id, is_selected=True) for item_id in ("a", "b", "c")]

    with pytest.raises(RemotePersistenceError) as excinfo:
        asyncio.run(orchestrator.submit(items))

    assert excinfo.value.succeeded == 2
    assert excinfo.value.failed == 1
    assert "insert #2 rejected by store" in str(excinfo.value)
    assert len(store.inserts) == 2
    assert refetch.calls == 0


def test_success_notifies(fake_store, make_item, refetch):
    notices = []
    orchestrator = SubmissionOrchestrator(
        fake_store,
        refetch=refetch,
        notify=lambda message, severity="information": notices.append((severity, message)),
    )

    asyncio.run(orchestrator.submit([make_item("a", is_selected=True)]))

    assert notices == [("information", "Submitted 1 payment requests.")]
