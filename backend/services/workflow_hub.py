from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any


class WorkflowHub:
    """
    In-memory pubsub for streaming workflow snapshots to WebSocket subscribers.

    - Each subscriber gets an asyncio.Queue(maxsize=16); when full the oldest snapshot is dropped.
    - A late subscriber first receives the latest snapshot of the workflow.
    - Forgetting a workflow sends ``{"workflow_id": ..., "closed": True}`` as the last payload.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._subscribers: dict[str, set[asyncio.Queue[dict[str, Any]]]] = defaultdict(set)
        self._latest: dict[str, dict[str, Any]] = {}

    async def subscribe(self, workflow_id: str) -> asyncio.Queue[dict[str, Any]]:
        q: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=16)
        async with self._lock:
            self._subscribers[workflow_id].add(q)
            latest = self._latest.get(workflow_id)
        if latest is not None:
            q.put_nowait(latest)
        return q

    async def unsubscribe(self, workflow_id: str, q: asyncio.Queue[dict[str, Any]]) -> None:
        async with self._lock:
            subs = self._subscribers.get(workflow_id)
            if not subs:
                return
            subs.discard(q)
            if not subs:
                self._subscribers.pop(workflow_id, None)

    def publish(self, workflow_id: str, payload: dict[str, Any]) -> None:
        """Fan out a snapshot. Synchronous so state transitions can call it directly."""
        self._latest[workflow_id] = payload
        for q in list(self._subscribers.get(workflow_id, ())):
            _offer(q, payload)

    def forget(self, workflow_id: str) -> None:
        """Drop the workflow and tell its subscribers to stop listening."""
        self._latest.pop(workflow_id, None)
        closed = {"workflow_id": workflow_id, "closed": True}
        for q in self._subscribers.pop(workflow_id, set()):
            _offer(q, closed)


def _offer(q: asyncio.Queue[dict[str, Any]], payload: dict[str, Any]) -> None:
    if q.full():
        try:
            _ = q.get_nowait()
        except asyncio.QueueEmpty:
            pass
    try:
        q.put_nowait(payload)
    except asyncio.QueueFull:
        pass


workflow_hub = WorkflowHub()
