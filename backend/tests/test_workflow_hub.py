from __future__ import annotations

import asyncio

import pytest

from services.workflow_hub import WorkflowHub


@pytest.mark.asyncio
async def test_workflow_hub_replays_latest_snapshot_for_late_subscriber() -> None:
    hub = WorkflowHub()
    workflow_id = "late-subscriber"

    hub.publish(workflow_id, {"stage": "collecting"})
    hub.publish(workflow_id, {"stage": "suggesting"})

    q = await hub.subscribe(workflow_id)
    first = await asyncio.wait_for(q.get(), timeout=0.5)
    assert first["stage"] == "suggesting"
    assert q.empty()

    hub.publish(workflow_id, {"stage": "selecting"})
    second = await asyncio.wait_for(q.get(), timeout=0.5)
    assert second["stage"] == "selecting"

    await hub.unsubscribe(workflow_id, q)


@pytest.mark.asyncio
async def test_workflow_hub_drops_oldest_when_subscriber_lags() -> None:
    hub = WorkflowHub()
    q = await hub.subscribe("slow")

    for i in range(20):
        hub.publish("slow", {"n": i})

    received = [q.get_nowait()["n"] for _ in range(q.qsize())]
    assert len(received) == 16
    assert received[-1] == 19
    assert received[0] == 4


@pytest.mark.asyncio
async def test_workflow_hub_forget_stops_replay() -> None:
    hub = WorkflowHub()
    hub.publish("gone", {"stage": "ready"})
    hub.forget("gone")

    q = await hub.subscribe("gone")
    assert q.empty()


@pytest.mark.asyncio
async def test_workflow_hub_forget_ends_open_subscriptions() -> None:
    hub = WorkflowHub()
    q = await hub.subscribe("deleted")
    hub.publish("deleted", {"stage": "selecting"})

    hub.forget("deleted")

    assert (await asyncio.wait_for(q.get(), timeout=0.5))["stage"] == "selecting"
    final = await asyncio.wait_for(q.get(), timeout=0.5)
    assert final == {"workflow_id": "deleted", "closed": True}

    hub.publish("deleted", {"stage": "collecting"})
    assert q.empty()
    await hub.unsubscribe("deleted", q)
