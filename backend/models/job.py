from dataclasses import dataclass, field
from typing import Any


@dataclass
class GenerationJob:
    name: str                              # remote operation name
    done: bool = False
    video_uri: str | None = None           # set only when the render produced a file
    error: str | None = None               # remote error text, if any
    operation: Any = field(default=None, repr=False, compare=False)  # raw SDK handle

    @property
    def succeeded(self) -> bool:
        # done is not success: a finished job can still have no result
        return self.done and bool(self.video_uri)


@dataclass(frozen=True)
class VideoResult:
    path: str                              # local file holding the downloaded bytes
    size_bytes: int
    mime_type: str = "video/mp4"
