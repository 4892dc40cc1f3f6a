from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from models import GenerationJob, ProductDetails, ProductImage, Scene, Script
from services.settings import WorkflowSettings
from services.store import workflows
from services.workflow_hub import WorkflowHub

SAMPLE_SCRIPT = Script(
    scenes=(
        Scene("Backpack on a wet trail at dawn", "Rain doesn't wait. Neither should you."),
        Scene("Close-up of sealed zippers shedding water", "Fully sealed. Fully ready."),
        Scene("Hiker reaching the summit, pack still dry", "Apex Backpack. Go further."),
    )
)
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 188


def done_job(uri: str | None = "https://x/y") -> GenerationJob:
    return GenerationJob(name="operations/op-1", done=True, video_uri=uri)


def pending_job() -> GenerationJob:
    return GenerationJob(name="operations/op-1", done=False)


class FakeGenerationService:
    """Scripted stand-in for the Gemini service. ``jobs[0]`` is returned by submit, the rest by polls."""

    def __init__(
        self,
        *,
        suggestions: Sequence[str] = ("Problem-Solution Ad", "Unboxing"),
        jobs: Sequence[GenerationJob] | None = None,
        video: bytes = VIDEO_BYTES,
    ) -> None:
        self.suggestions = list(suggestions)
        self.jobs = list(jobs) if jobs is not None else [pending_job(), pending_job(), done_job()]
        self.video = video
        self.calls: list[str] = []
        self.errors: dict[str, Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.on_poll: Callable[[], None] | None = None
        self.last_details: ProductDetails | None = None
        self.fetched_uri: str | None = None
        self._last_job: GenerationJob | None = None

    async def _enter(self, call: str) -> None:
        self.calls.append(call)
        gate = self.gates.get(call)
        if gate is not None:
            await gate.wait()
        error = self.errors.get(call)
        if error is not None:
            raise error

    async def suggest_categories(self, images: Sequence[ProductImage], product_name: str) -> list[str]:
        await self._enter("suggest")
        return list(self.suggestions)

    async def generate_script(self, images: Sequence[ProductImage], details: ProductDetails) -> Script:
        await self._enter("script")
        self.last_details = details
        return SAMPLE_SCRIPT

    async def submit_video_job(self, image: ProductImage, script: Script, details: ProductDetails) -> GenerationJob:
        await self._enter("submit")
        self.last_details = details
        self._last_job = self.jobs.pop(0)
        return self._last_job

    async def poll_video_job(self, job: GenerationJob) -> GenerationJob:
        if self.on_poll is not None:
            self.on_poll()
        await self._enter("poll")
        self._last_job = self.jobs.pop(0)
        return self._last_job

    async def fetch_result_binary(self, uri: str) -> bytes:
        assert self._last_job is not None and self._last_job.done, "fetch before the job was done"
        await self._enter("fetch")
        self.fetched_uri = uri
        return self.video


class RecordingHub(WorkflowHub):
    def __init__(self) -> None:
        super().__init__()
        self.published: list[dict[str, Any]] = []

    def publish(self, workflow_id: str, payload: dict[str, Any]) -> None:
        self.published.append(payload)
        super().publish(workflow_id, payload)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def fast_settings(tmp_path) -> WorkflowSettings:
    return WorkflowSettings(poll_interval=0.01, message_interval=0.004, output_dir=str(tmp_path))


@pytest.fixture
def product_images() -> list[ProductImage]:
    return [ProductImage(data=b"imgA-bytes", mime_type="image/png")]


@pytest.fixture(autouse=True)
def clear_workflows():
    """Isolate tests by clearing the in-memory workflow store."""
    workflows.clear()
    yield
    workflows.clear()
