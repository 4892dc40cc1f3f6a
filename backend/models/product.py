import hashlib
from dataclasses import dataclass, field
from enum import Enum


class VideoStyle(str, Enum):
    MODERN = "Modern & Sleek"
    ADVENTUROUS = "Energetic & Adventurous"
    LUXURIOUS = "Elegant & Luxurious"
    MINIMALIST = "Minimalist & Clean"

    @classmethod
    def parse(cls, raw: str) -> "VideoStyle":
        """Accept either the member name ("Adventurous") or its label."""
        key = raw.strip()
        for style in cls:
            if key.upper() == style.name or key == style.value:
                return style
        raise ValueError(f"Unknown video style: {raw!r}")


@dataclass(frozen=True)
class ProductImage:
    data: bytes = field(repr=False)
    mime_type: str = "image/png"


@dataclass(frozen=True)
class ProductDetails:
    product_name: str
    video_idea: str
    selected_category: str
    style: VideoStyle


@dataclass(frozen=True)
class GenerationRequest:
    images: tuple[ProductImage, ...]
    details: ProductDetails

    @property
    def seed_image(self) -> ProductImage:
        return self.images[0]

    def fingerprint(self) -> str:
        """Stable digest of the inputs that shape the generated script."""
        digest = hashlib.sha256()
        for image in self.images:
            digest.update(image.mime_type.encode())
            digest.update(hashlib.sha256(image.data).digest())
        d = self.details
        for part in (d.product_name, d.video_idea, d.selected_category, d.style.name):
            digest.update(b"\x00")
            digest.update(part.encode())
        return digest.hexdigest()


@dataclass(frozen=True)
class Scene:
    visual_description: str
    voiceover_line: str


@dataclass(frozen=True)
class Script:
    scenes: tuple[Scene, Scene, Scene]

    def __post_init__(self) -> None:
        if len(self.scenes) != 3:
            raise ValueError(f"A script has exactly 3 scenes, got {len(self.scenes)}")

    @classmethod
    def from_payload(cls, payload: dict) -> "Script":
        """Build from the remote shape {"scene_1": {"visual": ..., "voiceover": ...}, ...}."""
        scenes = []
        for key in ("scene_1", "scene_2", "scene_3"):
            raw = payload.get(key)
            if not isinstance(raw, dict):
                raise ValueError(f"Script payload is missing {key}")
            scenes.append(
                Scene(
                    visual_description=str(raw.get("visual", "")).strip(),
                    voiceover_line=str(raw.get("voiceover", "")).strip(),
                )
            )
        return cls(scenes=tuple(scenes))

    def as_prompt_text(self) -> str:
        return "\n".join(
            f"Scene {i}: {scene.visual_description} (Voiceover: {scene.voiceover_line})"
            for i, scene in enumerate(self.scenes, start=1)
        )
