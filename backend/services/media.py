"""Local storage for downloaded videos."""

import logging
import os
import uuid

from models import VideoResult

logger = logging.getLogger(__name__)


def write_video(output_dir: str, workflow_id: str, data: bytes, *, mime_type: str = "video/mp4") -> VideoResult:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, f"{workflow_id}-{uuid.uuid4().hex[:8]}.mp4")
    with open(path, "wb") as f:
        f.write(data)
    logger.info("[media] Wrote %d bytes to %s", len(data), path)
    return VideoResult(path=path, size_bytes=len(data), mime_type=mime_type)


def discard_video(video: VideoResult | None) -> None:
    if video is None:
        return
    try:
        os.remove(video.path)
        logger.info("[media] Removed %s", video.path)
    except FileNotFoundError:
        pass
