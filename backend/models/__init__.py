from .job import GenerationJob, VideoResult
from .product import (
    GenerationRequest,
    ProductDetails,
    ProductImage,
    Scene,
    Script,
    VideoStyle,
)
from .workflow import BUSY_STAGES, Stage, WorkflowSnapshot, WorkflowState

__all__ = [
    "VideoStyle",
    "ProductImage",
    "ProductDetails",
    "GenerationRequest",
    "Scene",
    "Script",
    "GenerationJob",
    "VideoResult",
    "Stage",
    "BUSY_STAGES",
    "WorkflowState",
    "WorkflowSnapshot",
]
