"""Error taxonomy for the generation workflow."""

INVALID_LINK_MESSAGE = "Video generation failed to return a valid link."


class WorkflowError(Exception):
    """Base class for everything the workflow engine turns into user-facing text."""


class ValidationError(WorkflowError):
    """Missing or invalid user input. Raised before any remote call is made."""


class RemoteCallError(WorkflowError):
    """A call to the remote generation service failed (network, status, bad payload)."""

    def __init__(self, call: str, detail: str) -> None:
        super().__init__(detail)
        self.call = call
        self.detail = detail


class ResultMissingError(WorkflowError):
    """The video job finished but produced no usable result URI."""

    def __init__(self, detail: str = INVALID_LINK_MESSAGE) -> None:
        super().__init__(detail)


class GenerationTimeoutError(WorkflowError):
    """The video job did not finish within the configured poll deadline."""

    def __init__(self, waited_seconds: float) -> None:
        super().__init__(f"Video generation timed out after {waited_seconds:.0f}s.")
        self.waited_seconds = waited_seconds
