"""
Encoder adapters.

    DirectWriter       frames written verbatim to their planned paths
    PipedVideoEncoder  one long-lived ffmpeg fed PNG frames over stdin (APNG, MP4, WebM)
    StagedGifEncoder   frames staged in a temp directory, gifski run once at the end

Every adapter has the same lifecycle: ``start()``, ``write()`` per frame,
``finalize()`` exactly once after the capture loop, and ``cleanup()`` which
always runs (temp directory removal, killing a process that is still alive).
"""

from __future__ import annotations

import asyncio
import glob
import os
import shutil
import sys
import tempfile
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional, Sequence

from lottie_render.config.schemas import FfmpegOptions, GifskiOptions
from lottie_render.errors import EncoderProcessError
from lottie_render.formats import OutputKind, output_ext
from lottie_render.sequencer import FrameStep
from lottie_render.utils.logs import get_logger
from lottie_render.utils.subproc import pump_stream, resolve_binary, run_process

log = get_logger("encoders")

GIF_MAX_FPS = 50
GIF_FRAME_PATTERN = "frame-%012d.png"
GIF_FRAME_GLOB = "frame-*.png"


def even_scale_filter(width: int, height: int) -> str:
    """Scale filter satisfying the encoder's even-dimension constraint."""
    if width % 2 == 0:
        return f"scale={width}:-2"
    if height % 2 == 0:
        return f"scale=-2:{height}"
    return f"scale={width + 1}:-2"


def build_ffmpeg_args(
    kind: OutputKind,
    output: str,
    fps: int,
    width: int,
    height: int,
    frame_count: int,
    options: Optional[FfmpegOptions] = None,
    omit_background: bool = False,
) -> List[str]:
    options = options or FfmpegOptions()
    args = ["-v", "error", "-stats", "-hide_banner", "-y"]
    pipe_input = ["-f", "image2pipe", "-c:v", "png", "-r", str(fps), "-i", "-"]

    if kind is OutputKind.APNG:
        args += pipe_input + ["-plays", "0"]
    elif kind is OutputKind.VIDEO:
        scale = f"{even_scale_filter(width, height)}:flags=bicubic"
        if omit_background:
            args += ["-f", "lavfi", "-i", f"color=c=black:size={width}x{height}"]
            args += pipe_input
            args += [
                "-filter_complex", f"[0:v][1:v]overlay[o];[o]{scale}[out]",
                "-map", "[out]",
            ]
        else:
            args += pipe_input + ["-vf", scale]

        if output_ext(output) == ".webm":
            codec = options.codec or "libvpx-vp9"
            args += ["-c:v", codec, "-crf", str(options.crf), "-b:v", "0"]
        else:
            codec = options.codec or "libx264"
            args += [
                "-c:v", codec,
                "-profile:v", options.profile,
                "-preset", options.preset,
                "-crf", str(options.crf),
                "-movflags", "faststart",
            ]
        args += ["-pix_fmt", "yuv420p", "-r", str(fps)]
    else:
        raise ValueError(f"ffmpeg does not encode {kind.value} output")

    args += ["-frames:v", str(frame_count), "-an", output]
    return args


def build_gifski_args(
    output: str,
    fps: int,
    frames: Sequence[str],
    options: Optional[GifskiOptions] = None,
) -> List[str]:
    options = options or GifskiOptions()
    args = ["-o", output, "--fps", str(min(options.fps or fps, GIF_MAX_FPS))]
    if options.fast:
        args.append("--fast")
    args += ["--quality", str(options.quality), "--quiet"]
    args += list(frames)
    return args


class DirectWriter:
    """Single images and numbered sequences: no process, bytes go straight to disk."""

    output_pattern: Optional[str] = None

    async def start(self) -> None:
        return None

    async def write(self, step: FrameStep, data: bytes) -> None:
        p = Path(step.output_path)
        if p.parent and not p.parent.exists():
            p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    async def finalize(self) -> None:
        return None

    async def cleanup(self) -> None:
        return None


class PipedVideoEncoder:
    """
    ffmpeg reading PNG frames from stdin. Writes rely on OS pipe buffering for
    backpressure. A broken pipe stops further writes; whether it matters is
    decided by the exit status at finalize.
    """

    output_pattern: Optional[str] = None

    def __init__(self, args: Sequence[str], binary: Optional[str] = None, quiet: bool = False, tail_lines: int = 200):
        self.binary = binary or resolve_binary("FFMPEG_PATH", "ffmpeg")
        self.args = list(args)
        self.quiet = quiet
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._pumps: List[asyncio.Task] = []
        self._tail: Deque[str] = deque(maxlen=tail_lines)
        self._finalized = False
        self.late_write = False
        self.frames_written = 0
        self.frames_dropped = 0

    @property
    def cmd(self) -> List[str]:
        return [self.binary] + self.args

    @property
    def is_open(self) -> bool:
        return self._proc is not None and not self._finalized

    async def start(self) -> None:
        log.debug(f"Starting encoder: {' '.join(self.cmd)}")
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EncoderProcessError(f"Could not start {self.binary}: {e}", cmd=self.cmd) from e
        self._pumps = [
            asyncio.ensure_future(pump_stream(self._proc.stdout, None if self.quiet else sys.stdout)),
            asyncio.ensure_future(pump_stream(self._proc.stderr, sys.stderr, self._tail)),
        ]

    async def write(self, step: FrameStep, data: bytes) -> None:
        if self._proc is None or self._finalized:
            raise EncoderProcessError("Encoder is not running", cmd=self.cmd)
        stdin = self._proc.stdin
        if self.late_write or stdin is None or stdin.is_closing():
            self.late_write = True
            self.frames_dropped += 1
            return
        try:
            stdin.write(data)
            await stdin.drain()
            self.frames_written += 1
        except (BrokenPipeError, ConnectionResetError):
            self.late_write = True
            self.frames_dropped += 1

    async def finalize(self) -> None:
        """Close stdin once and wait for ffmpeg; non-zero exit is fatal."""
        if self._proc is None or self._finalized:
            return
        self._finalized = True
        stdin = self._proc.stdin
        if stdin is not None and not stdin.is_closing():
            stdin.close()
            try:
                await stdin.wait_closed()
            except (BrokenPipeError, ConnectionResetError):
                self.late_write = True
        rc = await self._proc.wait()
        await asyncio.gather(*self._pumps, return_exceptions=True)
        if rc != 0:
            tail = "\n".join(self._tail)
            raise EncoderProcessError(
                f"FFmpeg exited with status {rc}", returncode=rc, cmd=self.cmd, tail=tail
            )
        if self.late_write:
            log.warning(
                f"Encoder closed its input early; {self.frames_dropped} frame(s) were not written"
            )

    async def abort(self) -> None:
        """Kill a still-running encoder so no process outlives the render."""
        if self._proc is None or self._proc.returncode is not None:
            return
        self._finalized = True
        try:
            self._proc.kill()
        except ProcessLookupError:
            pass
        await self._proc.wait()
        await asyncio.gather(*self._pumps, return_exceptions=True)

    async def cleanup(self) -> None:
        await self.abort()


class StagedGifEncoder:
    """Stage PNG frames in a temp directory and run gifski once over them."""

    def __init__(
        self,
        output: str,
        fps: int,
        options: Optional[GifskiOptions] = None,
        binary: Optional[str] = None,
        quiet: bool = False,
    ):
        self.output = output
        self.fps = fps
        self.options = options or GifskiOptions()
        self.binary = binary or resolve_binary("GIFSKI_PATH", "gifski")
        self.quiet = quiet
        self.temp_dir: Optional[str] = None
        self._finalized = False
        self._writer = DirectWriter()

    @property
    def output_pattern(self) -> Optional[str]:
        if self.temp_dir is None:
            return None
        return os.path.join(self.temp_dir, GIF_FRAME_PATTERN)

    async def start(self) -> None:
        self.temp_dir = tempfile.mkdtemp(prefix="lottie-render-")

    async def write(self, step: FrameStep, data: bytes) -> None:
        await self._writer.write(step, data)

    def staged_frames(self) -> List[str]:
        if self.temp_dir is None:
            return []
        return sorted(glob.glob(os.path.join(self.temp_dir, GIF_FRAME_GLOB)))

    async def finalize(self) -> None:
        if self._finalized:
            return
        self._finalized = True
        frames = self.staged_frames()
        if not frames:
            raise EncoderProcessError("No frames were staged for the GIF encoder")
        cmd = [self.binary] + build_gifski_args(self.output, self.fps, frames, self.options)
        await run_process(cmd, quiet=self.quiet)

    async def cleanup(self) -> None:
        if self.temp_dir is not None:
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            self.temp_dir = None
