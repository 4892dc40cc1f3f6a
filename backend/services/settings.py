"""Environment-backed configuration for the Gemini service and the workflow engine."""

import os
import tempfile
from dataclasses import dataclass

DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_VIDEO_MODEL = "veo-2.0-generate-001"
DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_MESSAGE_INTERVAL_SECONDS = 7.0
DEFAULT_OUTPUT_DIRNAME = "product-video-studio"


def _env(name: str) -> str:
    return os.environ.get(name, "").strip()


def _env_float(name: str, default: float | None) -> float | None:
    raw = _env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def get_api_key() -> str:
    """Gemini API key. Shared by the API calls and the result download."""
    api_key = _env("GOOGLE_API_KEY")
    if not api_key:
        raise RuntimeError(
            "GOOGLE_API_KEY is not set. Set it in backend/.env or the environment."
        )
    return api_key


def get_allowed_origins() -> list[str]:
    """Comma-separated ALLOWED_ORIGINS; permissive when unset."""
    raw = _env("ALLOWED_ORIGINS")
    if not raw:
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass(frozen=True)
class GeminiSettings:
    text_model: str = DEFAULT_TEXT_MODEL
    video_model: str = DEFAULT_VIDEO_MODEL
    download_timeout_seconds: float = 120.0

    @classmethod
    def from_env(cls) -> "GeminiSettings":
        return cls(
            text_model=_env("GEMINI_TEXT_MODEL") or DEFAULT_TEXT_MODEL,
            video_model=_env("GEMINI_VIDEO_MODEL") or DEFAULT_VIDEO_MODEL,
            download_timeout_seconds=_env_float("VIDEO_DOWNLOAD_TIMEOUT_SECONDS", 120.0),
        )


@dataclass(frozen=True)
class WorkflowSettings:
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    message_interval: float = DEFAULT_MESSAGE_INTERVAL_SECONDS
    poll_timeout: float | None = None      # None keeps polling until the job is done
    output_dir: str = os.path.join(tempfile.gettempdir(), DEFAULT_OUTPUT_DIRNAME)

    @classmethod
    def from_env(cls) -> "WorkflowSettings":
        return cls(
            poll_interval=_env_float("VIDEO_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS),
            message_interval=_env_float(
                "PROGRESS_MESSAGE_INTERVAL_SECONDS", DEFAULT_MESSAGE_INTERVAL_SECONDS
            ),
            poll_timeout=_env_float("VIDEO_POLL_TIMEOUT_SECONDS", None),
            output_dir=_env("VIDEO_OUTPUT_DIR")
            or os.path.join(tempfile.gettempdir(), DEFAULT_OUTPUT_DIRNAME),
        )
