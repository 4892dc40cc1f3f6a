"""In-memory workflow store. Keyed by workflow ID."""

from services.workflow import WorkflowEngine

workflows: dict[str, WorkflowEngine] = {}
