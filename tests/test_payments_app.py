"""Smoke tests for the Textual console."""

from __future__ import annotations

import asyncio
import json

from payreq.models import Table
from payreq.payments_app import PaymentsApp


def _seed_two_items(store, bank_info):
    async def seed():
        await store.insert(Table.QUOTATIONS, {"id": "q1", "project_name": "Launch"})
        await store.insert(Table.PAYEES, {"id": "k1", "name": "Mina", "bank_info": json.dumps(bank_info)})
        for item_id in ("i1", "i2"):
            await store.insert(
                Table.QUOTATION_ITEMS,
                {"id": item_id, "quotation_id": "q1", "payee_id": "k1", "service": item_id, "cost": 10},
            )

    asyncio.run(seed())


def test_merge_from_keyboard(store, bank_a):
    _seed_two_items(store, bank_a)

    async def scenario():
        app = PaymentsApp(store)
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert len(app.coordinator.items) == 2

            await pilot.press("m")
            assert app.coordinator.merge_mode is True
            await pilot.press("j", "x", "j", "x")
            assert app.coordinator.selected_for_merge == ["i1", "i2"]

            await pilot.press("g")
            await pilot.pause()
            await pilot.press("y")
            await pilot.pause()
            return app.coordinator.items

    items = asyncio.run(scenario())

    leaders = [item.id for item in items if item.is_merge_leader]
    assert leaders == ["i1"]
    assert items[0].merge_group_id == items[1].merge_group_id is not None


def test_merge_with_one_candidate_does_not_ask(store, bank_a):
    _seed_two_items(store, bank_a)

    async def scenario():
        app = PaymentsApp(store)
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()

            await pilot.press("m", "j", "x", "g")
            await pilot.pause()
            return len(app.screen_stack), app.system_status, app.coordinator.items

    depth, status, items = asyncio.run(scenario())

    assert depth == 1
    assert status == "Select at least two items to merge."
    assert not any(item.merge_group_id for item in items)
