"""
Render request model and animation metadata.

A RenderRequest is resolved and validated once per render call. Everything
that can be rejected without touching the browser or an encoder is rejected
here, so a ConfigurationError is always raised before any resource exists.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from lottie_render.config.schemas import (
    DEFAULT_PLAYER_URL,
    FfmpegOptions,
    GifskiOptions,
    InjectOptions,
    Renderer,
    WatermarkOptions,
)
from lottie_render.errors import ConfigurationError
from lottie_render.formats import OutputKind, classify_output

DEFAULT_WIDTH = 640
DEFAULT_HEIGHT = 480


class RenderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    output: str = Field(..., min_length=1)
    animation_data: Optional[Dict[str, Any]] = None
    path: Optional[str] = None

    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)
    device_scale_factor: int = Field(1, gt=0)
    jpeg_quality: int = Field(90, ge=0, le=100)
    omit_background: bool = False

    renderer: Renderer = "svg"
    renderer_settings: Dict[str, Any] = Field(default_factory=dict)
    style: Dict[str, Any] = Field(default_factory=dict)
    inject: InjectOptions = InjectOptions()
    player_path: Optional[str] = None
    player_url: str = DEFAULT_PLAYER_URL
    browser_options: Dict[str, Any] = Field(default_factory=dict)
    ready_timeout_ms: int = Field(30000, gt=0)

    ffmpeg: FfmpegOptions = FfmpegOptions()
    gifski: GifskiOptions = GifskiOptions()

    # frame selection
    frame: int = Field(0, ge=0)
    custom_duration: Optional[int] = Field(None, gt=0)
    max_frames: Optional[int] = Field(None, gt=0)
    in_frame: Optional[int] = Field(None, ge=0)
    out_frame: Optional[int] = Field(None, ge=0)
    start_offset: Optional[int] = Field(None, ge=0)
    is_sequence: bool = False
    is_carousel: bool = False
    carousel_frames: List[int] = Field(default_factory=list)

    # side channels
    progress_url: Optional[str] = None
    progress_interval: int = Field(100, gt=0)
    progress_timeout_sec: float = Field(10.0, gt=0)
    scene: int = 0
    max_scene: int = 0
    watermark: Optional[WatermarkOptions] = None
    audio_path: Optional[str] = None
    state_file: Optional[str] = None

    quiet: bool = False

    @field_validator("animation_data")
    @classmethod
    def _non_empty_data(cls, v):
        if v is not None and not v:
            raise ValueError("animation_data must be a non-empty mapping")
        return v

    @field_validator("carousel_frames")
    @classmethod
    def _non_negative_frames(cls, v):
        if any(f < 0 for f in v):
            raise ValueError("carousel_frames must not contain negative frames")
        return v

    @model_validator(mode="after")
    def _check_consistency(self):
        if self.animation_data is not None and self.path is not None:
            raise ValueError('"animation_data" and "path" are mutually exclusive')
        if self.animation_data is None and not self.path:
            raise ValueError('Must pass either "animation_data" or "path"')

        kind = classify_output(self.output, self.is_sequence, self.is_carousel)
        if (self.is_sequence or self.is_carousel) and kind is not OutputKind.SEQUENCE:
            raise ValueError("is_sequence/is_carousel require a png or jpg output")
        if self.is_carousel and not self.carousel_frames:
            raise ValueError("is_carousel requires a non-empty carousel_frames list")
        if self.in_frame is not None and self.out_frame is not None and self.out_frame < self.in_frame:
            raise ValueError("out_frame must not be smaller than in_frame")
        if self.audio_path and kind is not OutputKind.VIDEO:
            raise ValueError("audio_path is only supported for mp4/webm output")
        return self

    @property
    def kind(self) -> OutputKind:
        return classify_output(self.output, self.is_sequence, self.is_carousel)

    @property
    def windowed(self) -> bool:
        return (
            self.custom_duration is not None
            and self.in_frame is not None
            and self.out_frame is not None
        )


def _format_problem(err: Dict[str, Any]) -> str:
    loc = ".".join(str(p) for p in err.get("loc", ()))
    msg = err.get("msg", "invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{loc}: {msg}" if loc else msg


def build_request(**options: Any) -> RenderRequest:
    """
    Validate options into a RenderRequest. Every problem is collected into a
    single ConfigurationError; an unknown output extension raises
    UnsupportedFormatError.
    """
    output = options.get("output")
    if isinstance(output, str) and output:
        classify_output(output, bool(options.get("is_sequence")), bool(options.get("is_carousel")))
    try:
        return RenderRequest(**options)
    except ValidationError as e:
        problems = [_format_problem(err) for err in e.errors()]
        raise ConfigurationError("Invalid render request: " + "; ".join(problems), problems) from e


@dataclass(frozen=True)
class AnimationMetadata:
    fps: int
    width: int
    height: int
    num_frames: int
    duration: float

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @classmethod
    def from_animation(cls, data: Dict[str, Any]) -> "AnimationMetadata":
        problems = []
        try:
            fps = int(float(data.get("fr", 0)))
        except (TypeError, ValueError):
            fps = 0
        width = data.get("w", DEFAULT_WIDTH)
        height = data.get("h", DEFAULT_HEIGHT)
        if fps <= 0:
            problems.append("animation_data.fr: frame rate must be a positive integer")
        for name, value in (("w", width), ("h", height)):
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                problems.append(f"animation_data.{name}: must be a positive integer")
        try:
            num_frames = int(float(data.get("op", 0)) - float(data.get("ip", 0)))
        except (TypeError, ValueError):
            num_frames = 0
        if num_frames <= 0:
            problems.append("animation_data.op: animation has no frames")
        if problems:
            raise ConfigurationError("Invalid animation data: " + "; ".join(problems), problems)
        return cls(
            fps=fps,
            width=width,
            height=height,
            num_frames=num_frames,
            duration=num_frames / fps,
        )

    def with_player_values(self, duration: Optional[float], num_frames: Optional[float]) -> "AnimationMetadata":
        """Refine with the duration/frame count the player computed in the page."""
        frames = int(num_frames) if num_frames and num_frames > 0 else self.num_frames
        secs = float(duration) if duration and duration > 0 else frames / self.fps
        return AnimationMetadata(self.fps, self.width, self.height, frames, secs)


def load_animation_data(request: RenderRequest) -> Dict[str, Any]:
    if request.animation_data is not None:
        return request.animation_data
    p = Path(request.path or "")
    try:
        with p.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Animation file not found: {p}") from e
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Failed to read animation {p}: {e}") from e
    if not isinstance(data, dict) or not data:
        raise ConfigurationError(f"Animation at {p} must be a non-empty JSON object")
    return data


def resolve_dimensions(request: RenderRequest, meta: AnimationMetadata) -> Tuple[int, int]:
    """Requested size, filling a missing side from the animation's aspect ratio."""
    width, height = request.width, request.height
    if not (width and height):
        if width:
            height = width / meta.aspect_ratio
        elif height:
            width = height * meta.aspect_ratio
        else:
            width, height = meta.width, meta.height
    return int(round(width)), int(round(height))


__all__ = [
    "AnimationMetadata",
    "RenderRequest",
    "build_request",
    "load_animation_data",
    "resolve_dimensions",
]
