"""Generation workflow engine: the collect → suggest → select → script/render → ready state machine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import suppress

from models import (
    BUSY_STAGES,
    GenerationJob,
    GenerationRequest,
    ProductDetails,
    ProductImage,
    Script,
    Stage,
    VideoResult,
    VideoStyle,
    WorkflowSnapshot,
    WorkflowState,
)
from services.errors import GenerationTimeoutError, ResultMissingError, ValidationError
from services.gemini import GenerationService
from services.media import discard_video, write_video
from services.settings import WorkflowSettings
from services.workflow_hub import WorkflowHub, workflow_hub

logger = logging.getLogger(__name__)

ANALYZING_MESSAGE = "Analyzing your product..."
GENERATION_MESSAGES = (
    "Analyzing market data...",
    "Writing a high-conversion script...",
    "Generating engaging scenes...",
    "Optimizing for social media...",
    "Rendering final video...",
)
MISSING_INPUTS_MESSAGE = "Please upload images and provide a product name."
MISSING_CATEGORY_MESSAGE = "Please select a video type."


def _check_collected(state: WorkflowState) -> None:
    if not state.images or not state.product_name:
        raise ValidationError(MISSING_INPUTS_MESSAGE)


def _check_selected(state: WorkflowState) -> None:
    if not state.selected_category or not isinstance(state.style, VideoStyle):
        raise ValidationError(MISSING_CATEGORY_MESSAGE)


def _discard_written(write: asyncio.Future[VideoResult]) -> None:
    if write.cancelled() or write.exception() is not None:
        return
    discard_video(write.result())


class WorkflowEngine:
    """
    Owns one WorkflowState and is the only thing allowed to mutate it.

    The presentation layer reads immutable snapshots (``snapshot()`` or a hub
    subscription) and calls the intent methods. Intents never block: remote work
    runs in a background task and each state change is published to the hub.
    Intents that arrive while a request is in flight are ignored, except
    ``restart()`` and ``close()`` which cancel the run.
    """

    def __init__(
        self,
        workflow_id: str,
        service: GenerationService,
        *,
        settings: WorkflowSettings | None = None,
        hub: WorkflowHub | None = None,
    ) -> None:
        self.workflow_id = workflow_id
        self._service = service
        self._settings = settings or WorkflowSettings.from_env()
        self._hub = hub or workflow_hub
        self._state = WorkflowState()
        self._epoch = 0
        self._task: asyncio.Task[None] | None = None
        self._ticker: asyncio.Task[None] | None = None
        self._script_cache: dict[str, Script] = {}
        self._closed = False

    # ==================== Read side ====================

    def snapshot(self) -> WorkflowSnapshot:
        return WorkflowSnapshot.from_state(self.workflow_id, self._state)

    @property
    def busy(self) -> bool:
        return self._state.stage in BUSY_STAGES

    @property
    def ticker_running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def video(self) -> VideoResult | None:
        return self._state.video

    async def wait_idle(self) -> WorkflowSnapshot:
        """Wait for the in-flight run (if any) to settle and return the resulting snapshot."""
        task = self._task
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task
        return self.snapshot()

    # ==================== Intents ====================

    def start_collection(self) -> WorkflowSnapshot:
        if self._ignored("start_collection"):
            return self.snapshot()
        self._reset()
        return self.snapshot()

    def submit_collected_inputs(
        self,
        images: Sequence[ProductImage],
        product_name: str,
        video_idea: str = "",
    ) -> WorkflowSnapshot:
        if self._ignored("submit_collected_inputs", expected=Stage.COLLECTING):
            return self.snapshot()
        state = self._state
        state.images = list(images)
        state.product_name = product_name.strip()
        state.video_idea = video_idea.strip()
        try:
            _check_collected(state)
        except ValidationError as exc:
            self._reject(exc)
            return self.snapshot()

        state.stage = Stage.SUGGESTING
        state.return_stage = None
        state.error = None
        state.suggestions = []
        state.selected_category = None
        state.progress_message = ANALYZING_MESSAGE
        self._publish()
        logger.info(
            "[workflow] %s → SUGGESTING product=%r images=%d",
            self.workflow_id,
            state.product_name,
            len(state.images),
        )
        self._launch(self._run_suggest)
        return self.snapshot()

    def select_suggestion(self, suggestion: str) -> WorkflowSnapshot:
        if self._ignored("select_suggestion", expected=Stage.SELECTING):
            return self.snapshot()
        category = (suggestion or "").strip()
        if not category:
            self._reject(ValidationError(MISSING_CATEGORY_MESSAGE))
            return self.snapshot()
        self._state.selected_category = category
        self._publish()
        return self.snapshot()

    def set_style(self, style: VideoStyle) -> WorkflowSnapshot:
        if self._ignored("set_style", expected=Stage.SELECTING):
            return self.snapshot()
        self._state.style = style
        self._publish()
        return self.snapshot()

    def submit_selection(self) -> WorkflowSnapshot:
        if self._ignored("submit_selection", expected=Stage.SELECTING):
            return self.snapshot()
        state = self._state
        try:
            _check_selected(state)
        except ValidationError as exc:
            self._reject(exc)
            return self.snapshot()

        request = GenerationRequest(
            images=tuple(state.images),
            details=ProductDetails(
                product_name=state.product_name,
                video_idea=state.video_idea,
                selected_category=state.selected_category,
                style=state.style,
            ),
        )
        state.stage = Stage.SCRIPTING_AND_RENDERING
        state.return_stage = None
        state.error = None
        state.script = None
        state.job = None
        state.progress_message = GENERATION_MESSAGES[0]
        self._publish()
        logger.info(
            "[workflow] %s → SCRIPTING_AND_RENDERING category=%r style=%s",
            self.workflow_id,
            request.details.selected_category,
            request.details.style.name,
        )
        self._launch(lambda epoch: self._run_generation(epoch, request))
        return self.snapshot()

    def dismiss_error(self) -> WorkflowSnapshot:
        state = self._state
        if state.stage is Stage.FAILED and state.return_stage is not None:
            state.stage = state.return_stage
            state.return_stage = None
        if state.error is not None:
            state.error = None
            self._publish()
        return self.snapshot()

    def restart(self) -> WorkflowSnapshot:
        """Back to an empty COLLECTING state. Cancels any in-flight run."""
        logger.info("[workflow] %s restart from %s", self.workflow_id, self._state.stage.name)
        self._cancel_run()
        self._reset()
        return self.snapshot()

    def close(self) -> None:
        """The user navigated away: stop everything and drop local files."""
        self._cancel_run()
        discard_video(self._state.video)
        self._state = WorkflowState()
        self._script_cache.clear()
        self._closed = True
        self._hub.forget(self.workflow_id)
        logger.info("[workflow] %s closed", self.workflow_id)

    # ==================== Runs ====================

    async def _run_suggest(self, epoch: int) -> None:
        state = self._state
        try:
            suggestions = await self._service.suggest_categories(tuple(state.images), state.product_name)
        except Exception as exc:  # noqa: BLE001
            if self._is_current(epoch):
                self._fail(Stage.COLLECTING, f"Analysis failed: {exc}", exc)
            return
        if not self._is_current(epoch):
            logger.info("[workflow] %s discarding stale suggestions", self.workflow_id)
            return
        state.suggestions = list(suggestions)
        state.selected_category = state.suggestions[0] if state.suggestions else None
        state.stage = Stage.SELECTING
        state.progress_message = ""
        self._publish()
        logger.info(
            "[workflow] %s → SELECTING suggestions=%d", self.workflow_id, len(state.suggestions)
        )

    async def _run_generation(self, epoch: int, request: GenerationRequest) -> None:
        try:
            video = await self._generate(epoch, request)
        except Exception as exc:  # noqa: BLE001
            if self._is_current(epoch):
                self._fail(Stage.SELECTING, f"Generation failed: {exc}", exc)
            return
        if not self._is_current(epoch):
            discard_video(video)
            return
        state = self._state
        state.video = video
        state.error = None
        state.stage = Stage.READY
        self._publish()
        logger.info("[workflow] %s → READY video=%s", self.workflow_id, video.path)

    async def _generate(self, epoch: int, request: GenerationRequest) -> VideoResult:
        fingerprint = request.fingerprint()
        script = self._script_cache.get(fingerprint)
        if script is None:
            script = await self._service.generate_script(request.images, request.details)
            self._script_cache[fingerprint] = script
        else:
            logger.info("[workflow] %s reusing script for unchanged inputs", self.workflow_id)
        self._state.script = script
        self._set_progress(GENERATION_MESSAGES[1])

        job = await self._service.submit_video_job(request.seed_image, script, request.details)
        self._state.job = job
        self._publish()

        job = await self._poll_until_done(job)
        if not job.succeeded:
            logger.error(
                "[workflow] %s job %s done without a video (remote error=%s)",
                self.workflow_id,
                job.name,
                job.error,
            )
            raise ResultMissingError()

        data = await self._service.fetch_result_binary(job.video_uri)
        # The thread cannot be interrupted; a cancelled run still owns the file it writes.
        write = asyncio.ensure_future(
            asyncio.to_thread(write_video, self._settings.output_dir, self.workflow_id, data)
        )
        try:
            return await asyncio.shield(write)
        except asyncio.CancelledError:
            write.add_done_callback(_discard_written)
            raise

    async def _poll_until_done(self, job: GenerationJob) -> GenerationJob:
        loop = asyncio.get_running_loop()
        started = loop.time()
        timeout = self._settings.poll_timeout
        deadline = None if timeout is None else started + timeout
        self._start_ticker()
        try:
            while not job.done:
                await asyncio.sleep(self._settings.poll_interval)
                if deadline is None:
                    job = await self._service.poll_video_job(job)
                else:
                    try:
                        job = await asyncio.wait_for(
                            self._service.poll_video_job(job), max(deadline - loop.time(), 0)
                        )
                    except TimeoutError as exc:
                        raise GenerationTimeoutError(loop.time() - started) from exc
                self._state.job = job
                self._publish()
                if not job.done and deadline is not None and loop.time() >= deadline:
                    raise GenerationTimeoutError(loop.time() - started)
        finally:
            self._stop_ticker()
        self._set_progress(GENERATION_MESSAGES[-1])
        return job

    async def _cycle_messages(self) -> None:
        index = 2
        while True:
            await asyncio.sleep(self._settings.message_interval)
            self._set_progress(GENERATION_MESSAGES[index % len(GENERATION_MESSAGES)])
            index += 1

    # ==================== Helpers ====================

    def _launch(self, run: Callable[[int], Awaitable[None]]) -> None:
        self._epoch += 1
        epoch = self._epoch
        self._task = asyncio.get_running_loop().create_task(run(epoch))
        self._task.add_done_callback(self._on_run_done)

    def _on_run_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[workflow] %s run crashed: %s", self.workflow_id, exc, exc_info=exc)

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch and not self._closed

    def _cancel_run(self) -> None:
        self._stop_ticker()
        self._epoch += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _start_ticker(self) -> None:
        self._stop_ticker()
        self._ticker = asyncio.get_running_loop().create_task(self._cycle_messages())

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _reset(self) -> None:
        discard_video(self._state.video)
        self._state = WorkflowState()
        self._script_cache.clear()
        self._publish()

    def _set_progress(self, message: str) -> None:
        self._state.progress_message = message
        self._publish()

    def _reject(self, exc: ValidationError) -> None:
        logger.info("[workflow] %s rejected: %s", self.workflow_id, exc)
        self._state.error = str(exc)
        self._publish()

    def _fail(self, return_stage: Stage, message: str, exc: BaseException) -> None:
        logger.error("[workflow] %s → FAILED(return=%s): %s", self.workflow_id, return_stage.name, message, exc_info=exc)
        state = self._state
        state.stage = Stage.FAILED
        state.return_stage = return_stage
        state.error = message
        state.job = None
        state.video = None
        state.progress_message = ""
        self._publish()

    def _ignored(self, intent: str, expected: Stage | None = None) -> bool:
        if self._closed:
            raise RuntimeError(f"Workflow {self.workflow_id} is closed")
        if self.busy:
            logger.info("[workflow] %s ignoring %s while %s", self.workflow_id, intent, self._state.stage.name)
            return True
        if expected is not None and self._state.effective_stage is not expected:
            logger.info(
                "[workflow] %s ignoring %s in %s", self.workflow_id, intent, self._state.stage.name
            )
            return True
        return False

    def _publish(self) -> None:
        self._hub.publish(self.workflow_id, self.snapshot().model_dump(mode="json"))
