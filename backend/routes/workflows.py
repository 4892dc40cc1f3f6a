"""Workflow REST API: the wizard's intents over HTTP."""

import logging
import secrets

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from models import ProductImage, VideoStyle, WorkflowSnapshot
from services.gemini import GeminiGenerationService, GenerationService
from services.settings import WorkflowSettings
from services.store import workflows
from services.workflow import WorkflowEngine

router = APIRouter(tags=["workflows"])
logger = logging.getLogger(__name__)

# Avoid 0/O, 1/I/l so IDs survive being read aloud or retyped.
_WORKFLOW_ALPHABET = "23456789abcdefghjkmnpqrstuvwxyz"
_WORKFLOW_ID_LENGTH = 12

_service: GenerationService | None = None


class WorkflowCreateResponse(BaseModel):
    workflow_id: str
    state: WorkflowSnapshot


class SelectionRequest(BaseModel):
    suggestion: str


class StyleRequest(BaseModel):
    style: str


def _get_generation_service() -> GenerationService:
    global _service
    if _service is None:
        try:
            _service = GeminiGenerationService()
        except RuntimeError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
    return _service


def _get_workflow_settings() -> WorkflowSettings:
    return WorkflowSettings.from_env()


def _generate_workflow_id() -> str:
    return "".join(secrets.choice(_WORKFLOW_ALPHABET) for _ in range(_WORKFLOW_ID_LENGTH))


def _get_engine(workflow_id: str) -> WorkflowEngine:
    engine = workflows.get(workflow_id)
    if engine is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return engine


@router.post("/workflows", response_model=WorkflowCreateResponse, status_code=201)
async def create_workflow() -> WorkflowCreateResponse:
    """Start a new wizard run in COLLECTING."""
    workflow_id = _generate_workflow_id()
    engine = WorkflowEngine(
        workflow_id,
        _get_generation_service(),
        settings=_get_workflow_settings(),
    )
    workflows[workflow_id] = engine
    state = engine.start_collection()
    logger.info("[workflows_api] Workflow created: workflow_id=%s", workflow_id)
    return WorkflowCreateResponse(workflow_id=workflow_id, state=state)


@router.get("/workflows/{workflow_id}", response_model=WorkflowSnapshot)
def get_workflow(workflow_id: str) -> WorkflowSnapshot:
    """Current snapshot, for clients that poll instead of using the WebSocket."""
    return _get_engine(workflow_id).snapshot()


@router.post("/workflows/{workflow_id}/inputs", response_model=WorkflowSnapshot)
async def submit_inputs(
    workflow_id: str,
    images: list[UploadFile] = File(default=[]),
    product_name: str = Form(""),
    video_idea: str = Form(""),
) -> WorkflowSnapshot:
    engine = _get_engine(workflow_id)
    product_images: list[ProductImage] = []
    for upload in images:
        data = await upload.read()
        if not data:
            continue
        product_images.append(
            ProductImage(data=data, mime_type=upload.content_type or "application/octet-stream")
        )
    logger.info(
        "[workflows_api] POST inputs workflow_id=%s images=%d", workflow_id, len(product_images)
    )
    return engine.submit_collected_inputs(product_images, product_name, video_idea)


@router.post("/workflows/{workflow_id}/selection", response_model=WorkflowSnapshot)
async def select_suggestion(workflow_id: str, body: SelectionRequest) -> WorkflowSnapshot:
    return _get_engine(workflow_id).select_suggestion(body.suggestion)


@router.post("/workflows/{workflow_id}/style", response_model=WorkflowSnapshot)
async def set_style(workflow_id: str, body: StyleRequest) -> WorkflowSnapshot:
    engine = _get_engine(workflow_id)
    try:
        style = VideoStyle.parse(body.style)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"style must be one of {[s.name.title() for s in VideoStyle]}",
        ) from exc
    return engine.set_style(style)


@router.post("/workflows/{workflow_id}/generate", response_model=WorkflowSnapshot)
async def submit_selection(workflow_id: str) -> WorkflowSnapshot:
    return _get_engine(workflow_id).submit_selection()


@router.post("/workflows/{workflow_id}/restart", response_model=WorkflowSnapshot)
async def restart_workflow(workflow_id: str) -> WorkflowSnapshot:
    return _get_engine(workflow_id).restart()


@router.post("/workflows/{workflow_id}/dismiss-error", response_model=WorkflowSnapshot)
async def dismiss_error(workflow_id: str) -> WorkflowSnapshot:
    return _get_engine(workflow_id).dismiss_error()


@router.get("/workflows/{workflow_id}/video")
def download_video(workflow_id: str) -> FileResponse:
    video = _get_engine(workflow_id).video
    if video is None:
        raise HTTPException(status_code=404, detail="Video not ready")
    return FileResponse(video.path, media_type=video.mime_type, filename="ecommerce-video.mp4")


@router.delete("/workflows/{workflow_id}", status_code=204)
async def delete_workflow(workflow_id: str) -> Response:
    """The user left the page: cancel work and forget the workflow."""
    engine = _get_engine(workflow_id)
    engine.close()
    workflows.pop(workflow_id, None)
    logger.info("[workflows_api] Workflow closed: workflow_id=%s", workflow_id)
    return Response(status_code=204)
