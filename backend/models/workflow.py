from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict

from .job import GenerationJob, VideoResult
from .product import ProductImage, Script, VideoStyle


class Stage(str, Enum):
    COLLECTING = "collecting"
    SUGGESTING = "suggesting"
    SELECTING = "selecting"
    SCRIPTING_AND_RENDERING = "scripting_and_rendering"
    READY = "ready"
    FAILED = "failed"


# Stages during which a remote request is in flight.
BUSY_STAGES = frozenset({Stage.SUGGESTING, Stage.SCRIPTING_AND_RENDERING})


@dataclass
class WorkflowState:
    stage: Stage = Stage.COLLECTING
    return_stage: Stage | None = None      # where FAILED hands the user back to
    images: list[ProductImage] = field(default_factory=list)
    product_name: str = ""
    video_idea: str = ""
    suggestions: list[str] = field(default_factory=list)
    selected_category: str | None = None
    style: VideoStyle = VideoStyle.MODERN
    script: Script | None = None
    job: GenerationJob | None = None
    progress_message: str = ""
    error: str | None = None
    video: VideoResult | None = None

    @property
    def effective_stage(self) -> Stage:
        """FAILED is an overlay: intents act on the stage underneath it."""
        if self.stage is Stage.FAILED and self.return_stage is not None:
            return self.return_stage
        return self.stage


class SceneView(BaseModel):
    visual_description: str
    voiceover_line: str


class VideoView(BaseModel):
    url: str
    size_bytes: int
    mime_type: str


class WorkflowSnapshot(BaseModel):
    """Read-only view of a workflow handed to the presentation layer."""

    model_config = ConfigDict(frozen=True)

    workflow_id: str
    stage: Stage
    return_stage: Stage | None = None
    image_count: int = 0
    product_name: str = ""
    video_idea: str = ""
    suggestions: list[str] = []
    selected_category: str | None = None
    style: VideoStyle = VideoStyle.MODERN
    script: list[SceneView] | None = None
    job_done: bool | None = None
    progress_message: str = ""
    error: str | None = None
    video: VideoView | None = None

    @classmethod
    def from_state(cls, workflow_id: str, state: WorkflowState) -> "WorkflowSnapshot":
        script = None
        if state.script is not None:
            script = [
                SceneView(visual_description=s.visual_description, voiceover_line=s.voiceover_line)
                for s in state.script.scenes
            ]
        video = None
        if state.video is not None:
            video = VideoView(
                url=f"/api/workflows/{workflow_id}/video",
                size_bytes=state.video.size_bytes,
                mime_type=state.video.mime_type,
            )
        return cls(
            workflow_id=workflow_id,
            stage=state.stage,
            return_stage=state.return_stage,
            image_count=len(state.images),
            product_name=state.product_name,
            video_idea=state.video_idea,
            suggestions=list(state.suggestions),
            selected_category=state.selected_category,
            style=state.style,
            script=script,
            job_done=state.job.done if state.job is not None else None,
            progress_message=state.progress_message,
            error=state.error,
            video=video,
        )
