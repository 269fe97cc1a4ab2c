from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Shared literals
Renderer = Literal["svg", "canvas", "html"]
VideoProfile = Literal["baseline", "main", "high", "high10", "high422", "high444"]
VideoPreset = Literal[
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
    "placebo",
]

DEFAULT_PLAYER_URL = "https://cdn.jsdelivr.net/npm/lottie-web@5.12.2/build/player/lottie.min.js"


class FfmpegOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    crf: int = Field(20, ge=0, le=51)
    profile: VideoProfile = "main"
    preset: VideoPreset = "medium"
    codec: Optional[str] = None


class GifskiOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    quality: int = Field(80, ge=1, le=100)
    fast: bool = False
    fps: Optional[int] = Field(None, gt=0)


class InjectOptions(BaseModel):
    """Raw markup dropped into the generated document."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    head: str = ""
    style: str = ""
    body: str = ""


class WatermarkOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str
    ratio: float = Field(1.0, gt=0, le=1)
    opacity: float = Field(1.0, ge=0, le=1)


class PlayerSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    path: Optional[str] = None
    url: str = DEFAULT_PLAYER_URL


class BrowserSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    launch_options: Dict[str, Any] = Field(default_factory=lambda: {"headless": True})
    ready_timeout_ms: int = Field(30000, gt=0)


class ProgressSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None
    interval: int = Field(100, gt=0)
    timeout_sec: float = Field(10.0, gt=0, le=120)
    drain_timeout_sec: float = Field(5.0, ge=0, le=120)


class Settings(BaseModel):
    """Defaults bundle loaded from conf/render.yaml, .env and the environment."""

    model_config = ConfigDict(extra="allow")

    ffmpeg: FfmpegOptions = FfmpegOptions()
    gifski: GifskiOptions = GifskiOptions()
    player: PlayerSettings = PlayerSettings()
    browser: BrowserSettings = BrowserSettings()
    progress: ProgressSettings = ProgressSettings()
    jpeg_quality: int = Field(90, ge=0, le=100)
    state_file: Optional[str] = None

    def request_defaults(self) -> Dict[str, Any]:
        """Keyword defaults for build_request(); explicit options win over these."""
        out: Dict[str, Any] = {
            "ffmpeg": self.ffmpeg.model_dump(),
            "gifski": self.gifski.model_dump(),
            "browser_options": dict(self.browser.launch_options),
            "ready_timeout_ms": self.browser.ready_timeout_ms,
            "progress_interval": self.progress.interval,
            "progress_timeout_sec": self.progress.timeout_sec,
            "jpeg_quality": self.jpeg_quality,
            "player_url": self.player.url,
        }
        if self.player.path:
            out["player_path"] = self.player.path
        if self.progress.url:
            out["progress_url"] = self.progress.url
        if self.state_file:
            out["state_file"] = self.state_file
        return out
