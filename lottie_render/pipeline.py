"""
Render orchestration.

    classify + validate -> surface open/load -> plan -> encoder start
    -> capture loop -> surface close -> encoder finalize -> (audio mux)
    -> cleanup

Resources are registered on an AsyncExitStack as soon as they exist, so the
browser, the encoder process and the GIF staging directory are released on
every exit path, including a fatal error half-way through the loop.
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from lottie_render.audio import merge_audio
from lottie_render.document import build_document
from lottie_render.encoders import (
    DirectWriter,
    PipedVideoEncoder,
    StagedGifEncoder,
    build_ffmpeg_args,
)
from lottie_render.errors import ConfigurationError, RenderError
from lottie_render.formats import OutputKind, capture_type
from lottie_render.progress import ProgressReporter
from lottie_render.request import (
    AnimationMetadata,
    RenderRequest,
    build_request,
    load_animation_data,
    resolve_dimensions,
)
from lottie_render.sequencer import CaptureOptions, plan_frames, run_plan, total_frame_count
from lottie_render.surface import SurfaceSession
from lottie_render.utils.logs import audit_event, get_logger
from lottie_render.watermark import Watermarker

log = get_logger("pipeline")

SessionFactory = Callable[[RenderRequest, int, int, Any], Any]


@dataclass(frozen=True)
class RenderResult:
    num_frames: int
    duration: float
    output: str
    output_kind: OutputKind
    frames_written: int


def default_session_factory(request: RenderRequest, width: int, height: int, browser=None) -> SurfaceSession:
    return SurfaceSession(
        width,
        height,
        device_scale_factor=request.device_scale_factor,
        launch_options=request.browser_options,
        browser=browser,
        quiet=request.quiet,
    )


def make_encoder(
    request: RenderRequest,
    meta: AnimationMetadata,
    width: int,
    height: int,
    frame_count: int = 0,
):
    kind = request.kind
    if kind is OutputKind.GIF:
        return StagedGifEncoder(request.output, meta.fps, request.gifski, quiet=request.quiet)
    if kind.is_piped:
        args = build_ffmpeg_args(
            kind,
            request.output,
            meta.fps,
            width,
            height,
            frame_count,
            request.ffmpeg,
            request.omit_background,
        )
        return PipedVideoEncoder(args, quiet=request.quiet)
    return DirectWriter()


async def render(
    request: Union[RenderRequest, Mapping[str, Any]],
    *,
    browser=None,
    session_factory: Optional[SessionFactory] = None,
    drain_timeout: float = 5.0,
) -> RenderResult:
    """
    Render a Lottie animation to request.output. ``browser`` is an optional
    Playwright browser to reuse; it is left open. Returns the animation's
    natural frame count and duration.
    """
    if not isinstance(request, RenderRequest):
        request = build_request(**dict(request))
    kind = request.kind
    quiet = request.quiet

    if request.audio_path and not Path(request.audio_path).exists():
        raise ConfigurationError(f"Audio track not found: {request.audio_path}")
    data = load_animation_data(request)
    meta = AnimationMetadata.from_animation(data)
    total = total_frame_count(request, meta)
    if request.windowed and request.in_frame >= total:
        raise ConfigurationError(f"in_frame {request.in_frame} is outside the animation's {total} frames")
    width, height = resolve_dimensions(request, meta)
    html = build_document(
        data,
        width,
        height,
        renderer=request.renderer,
        renderer_settings=request.renderer_settings,
        style=request.style,
        inject=request.inject,
        player_path=request.player_path,
        player_url=request.player_url,
    )
    image_type = capture_type(kind, request.output)
    capture = CaptureOptions(
        image_type=image_type,
        quality=request.jpeg_quality if image_type == "jpeg" else None,
        omit_background=request.omit_background,
    )
    watermarker = Watermarker.from_options(request.watermark, request.jpeg_quality)
    reporter = None
    if request.progress_url:
        reporter = ProgressReporter(
            request.progress_url,
            interval=request.progress_interval,
            scene=request.scene,
            max_scene=request.max_scene,
            timeout=request.progress_timeout_sec,
        )

    audit_event("render", "START", path=request.state_file, output=request.output, kind=kind.value)
    factory = session_factory or default_session_factory
    try:
        async with AsyncExitStack() as stack:
            if reporter is not None:
                stack.push_async_callback(reporter.aclose, drain_timeout)

            if not quiet:
                log.info("Loading browser")
            surface = factory(request, width, height, browser)
            stack.push_async_callback(surface.close)
            await surface.open()
            info = await surface.load_animation(html, request.ready_timeout_ms)
            meta = meta.with_player_values(info.duration, info.num_frames)

            Path(request.output).parent.mkdir(parents=True, exist_ok=True)
            interval = request.progress_interval if reporter is not None else None
            if kind is OutputKind.GIF:
                encoder = make_encoder(request, meta, width, height)
                stack.push_async_callback(encoder.cleanup)
                await encoder.start()
                plan = plan_frames(request, meta, encoder.output_pattern, interval)
            else:
                plan = plan_frames(request, meta, None, interval)
                encoder = make_encoder(request, meta, width, height, plan.output_count)
                stack.push_async_callback(encoder.cleanup)
                await encoder.start()

            written = await run_plan(plan, surface, encoder, capture, reporter, watermarker, quiet=quiet)
            await surface.close()

            if kind is OutputKind.GIF:
                if not quiet:
                    log.info("Generating GIF with Gifski")
            elif kind.is_piped and not quiet:
                log.info(f"Generating {'animated png' if kind is OutputKind.APNG else kind.value} with FFmpeg")
            await encoder.finalize()

            if request.audio_path:
                await asyncio.to_thread(
                    merge_audio, request.output, request.audio_path, None, None, quiet
                )
    except RenderError as e:
        audit_event("render", "FAIL", path=request.state_file, output=request.output, error=str(e))
        raise

    audit_event(
        "render",
        "OK",
        path=request.state_file,
        output=request.output,
        frames=written,
        num_frames=meta.num_frames,
    )
    return RenderResult(
        num_frames=meta.num_frames,
        duration=meta.duration,
        output=request.output,
        output_kind=kind,
        frames_written=written,
    )


def render_sync(request: Union[RenderRequest, Mapping[str, Any]], **kwargs: Any) -> RenderResult:
    """Blocking wrapper around render() for callers without an event loop."""
    return asyncio.run(render(request, **kwargs))
