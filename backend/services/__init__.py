from .store import workflows
from .workflow_hub import workflow_hub

__all__ = ["workflows", "workflow_hub"]
