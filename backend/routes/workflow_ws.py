from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from services.store import workflows
from services.workflow_hub import workflow_hub

router = APIRouter(tags=["workflows"])
logger = logging.getLogger(__name__)


@router.websocket("/ws/workflows/{workflow_id}")
async def ws_workflow_state(websocket: WebSocket, workflow_id: str) -> None:
    """
    Stream workflow snapshots to the frontend, starting with the current one.

    Payload schema: WorkflowSnapshot as JSON (stage, progress_message, error, ...).
    When the workflow is deleted a final ``{"workflow_id": ..., "closed": true}``
    is sent and the socket is closed.
    """
    logger.info("[workflow_ws] Client connecting for workflow_id=%r", workflow_id)
    await websocket.accept()
    if workflow_id not in workflows:
        await websocket.send_json({"error": "Workflow not found"})
        await websocket.close()
        return
    q = await workflow_hub.subscribe(workflow_id)
    try:
        while True:
            payload: dict[str, Any] = await q.get()
            await websocket.send_json(payload)
            if payload.get("closed"):
                logger.info("[workflow_ws] Workflow closed, ending stream workflow_id=%r", workflow_id)
                await websocket.close()
                return
    except WebSocketDisconnect:
        return
    finally:
        await workflow_hub.unsubscribe(workflow_id, q)
