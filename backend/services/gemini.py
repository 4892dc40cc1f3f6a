"""Gemini-backed generation service: suggestions, script, Veo video job, result download."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

import httpx
from google import genai
from google.genai import types
from pydantic import BaseModel, ValidationError as PayloadValidationError

from models import GenerationJob, ProductDetails, ProductImage, Script
from services.errors import RemoteCallError
from services.prompts import build_script_prompt, build_suggest_prompt, build_video_prompt
from services.settings import GeminiSettings, get_api_key

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 4
API_KEY_HEADER = "x-goog-api-key"
MAX_DOWNLOAD_REDIRECTS = 5


def _same_origin(url: httpx.URL, origin: httpx.URL) -> bool:
    return (url.scheme, url.host, url.port) == (origin.scheme, origin.host, origin.port)


class GenerationService(Protocol):
    """What the workflow engine needs from a remote generation backend."""

    async def suggest_categories(self, images: Sequence[ProductImage], product_name: str) -> list[str]: ...

    async def generate_script(self, images: Sequence[ProductImage], details: ProductDetails) -> Script: ...

    async def submit_video_job(
        self, image: ProductImage, script: Script, details: ProductDetails
    ) -> GenerationJob: ...

    async def poll_video_job(self, job: GenerationJob) -> GenerationJob: ...

    async def fetch_result_binary(self, uri: str) -> bytes: ...


class _SuggestionsPayload(BaseModel):
    suggestions: list[str] = []


class _ScenePayload(BaseModel):
    visual: str
    voiceover: str


class _ScriptPayload(BaseModel):
    scene_1: _ScenePayload
    scene_2: _ScenePayload
    scene_3: _ScenePayload


def job_from_operation(operation: Any) -> GenerationJob:
    """Map a google-genai videos operation onto our GenerationJob handle."""
    response = getattr(operation, "response", None) or getattr(operation, "result", None)
    videos = getattr(response, "generated_videos", None) or []
    uri = None
    if videos:
        video = getattr(videos[0], "video", None)
        uri = getattr(video, "uri", None) or None
    error = getattr(operation, "error", None)
    return GenerationJob(
        name=getattr(operation, "name", None) or "",
        done=bool(getattr(operation, "done", False)),
        video_uri=uri,
        error=str(error) if error else None,
        operation=operation,
    )


class GeminiGenerationService:
    """
    Thin async wrapper over the google-genai client.

    Every failure is re-raised as RemoteCallError so the workflow engine only has
    one remote error type to translate into user-facing text.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        settings: GeminiSettings | None = None,
        client: Any | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or get_api_key()
        self._settings = settings or GeminiSettings.from_env()
        self._client = client or genai.Client(api_key=self._api_key)
        self._http_transport = http_transport

    @staticmethod
    def _image_parts(images: Sequence[ProductImage]) -> list[types.Part]:
        return [types.Part.from_bytes(data=image.data, mime_type=image.mime_type) for image in images]

    async def _generate_json(self, call: str, images: Sequence[ProductImage], prompt: str, schema: type[BaseModel]) -> Any:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._settings.text_model,
                contents=[*self._image_parts(images), prompt],
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=schema,
                ),
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("[gemini] %s request failed: %s", call, exc, exc_info=True)
            raise RemoteCallError(call, str(exc)) from exc
        text = getattr(response, "text", None)
        if not text:
            raise RemoteCallError(call, "Empty response from model")
        try:
            return schema.model_validate_json(text)
        except PayloadValidationError as exc:
            logger.error("[gemini] %s returned a malformed payload: %.200s", call, text)
            raise RemoteCallError(call, f"Malformed response: {exc.error_count()} invalid field(s)") from exc

    async def suggest_categories(self, images: Sequence[ProductImage], product_name: str) -> list[str]:
        logger.info("[gemini] suggest_categories product=%r images=%d", product_name, len(images))
        payload = await self._generate_json(
            "suggest_categories", images, build_suggest_prompt(product_name), _SuggestionsPayload
        )
        suggestions = [s.strip() for s in payload.suggestions if s and s.strip()]
        return suggestions[:MAX_SUGGESTIONS]

    async def generate_script(self, images: Sequence[ProductImage], details: ProductDetails) -> Script:
        logger.info(
            "[gemini] generate_script product=%r category=%r style=%s",
            details.product_name,
            details.selected_category,
            details.style.name,
        )
        payload = await self._generate_json(
            "generate_script", images, build_script_prompt(details), _ScriptPayload
        )
        return Script.from_payload(payload.model_dump())

    async def submit_video_job(
        self, image: ProductImage, script: Script, details: ProductDetails
    ) -> GenerationJob:
        logger.info("[gemini] submit_video_job model=%s", self._settings.video_model)
        try:
            operation = await self._client.aio.models.generate_videos(
                model=self._settings.video_model,
                prompt=build_video_prompt(script, details),
                image=types.Image(image_bytes=image.data, mime_type=image.mime_type),
                config=types.GenerateVideosConfig(number_of_videos=1),
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("[gemini] submit_video_job failed: %s", exc, exc_info=True)
            raise RemoteCallError("submit_video_job", str(exc)) from exc
        job = job_from_operation(operation)
        logger.info("[gemini] Video job submitted name=%s done=%s", job.name, job.done)
        return job

    async def poll_video_job(self, job: GenerationJob) -> GenerationJob:
        try:
            operation = await self._client.aio.operations.get(job.operation)
        except Exception as exc:  # noqa: BLE001
            logger.error("[gemini] poll_video_job name=%s failed: %s", job.name, exc, exc_info=True)
            raise RemoteCallError("poll_video_job", str(exc)) from exc
        refreshed = job_from_operation(operation)
        logger.info("[gemini] Video job name=%s done=%s", refreshed.name or job.name, refreshed.done)
        return refreshed

    async def fetch_result_binary(self, uri: str) -> bytes:
        """
        Download the rendered video. The key travels in a header, never in the URL.

        Redirects are followed by hand so the key is only ever sent to the origin
        of ``uri``; httpx would forward custom headers to any redirect target.
        """
        origin = httpx.URL(uri)
        url = origin
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.download_timeout_seconds,
                follow_redirects=False,
                transport=self._http_transport,
            ) as client:
                for _ in range(MAX_DOWNLOAD_REDIRECTS + 1):
                    headers = {API_KEY_HEADER: self._api_key} if _same_origin(url, origin) else None
                    response = await client.get(url, headers=headers)
                    if not response.is_redirect:
                        break
                    url = url.join(response.headers["location"])
                    logger.info("[gemini] Download redirected to host=%s", url.host)
                else:
                    raise RemoteCallError("fetch_result_binary", "Download redirected too many times")
        except httpx.HTTPError as exc:
            logger.error("[gemini] Download failed: %s", exc, exc_info=True)
            raise RemoteCallError("fetch_result_binary", str(exc)) from exc
        if response.status_code >= 400:
            logger.error("[gemini] Download returned HTTP %d", response.status_code)
            raise RemoteCallError(
                "fetch_result_binary", f"Download failed with HTTP {response.status_code}"
            )
        if not response.content:
            raise RemoteCallError("fetch_result_binary", "Downloaded video is empty")
        logger.info("[gemini] Downloaded %d bytes", len(response.content))
        return response.content
