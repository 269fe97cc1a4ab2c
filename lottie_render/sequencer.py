"""
Frame sequencing.

Planning is pure: ``plan_frames`` turns a request and the animation metadata
into an ordered tuple of ``FrameStep`` (seek target, output path, whether the
frame counter was held). ``run_plan`` then walks the plan strictly in order:
seek and capture frame N, hand the bytes to the sink, and only then move on
to frame N+1, since the page holds a single playback state.

Counters for the multi-frame loop:

    frame         seek target; stops advancing inside the hold window
    custom_frame  advances every iteration, drives the hold window
    frame_number  advances every iteration, names discrete sequence files

The hold window is active only when custom_duration, in_frame and out_frame
are all set. Iteration k holds when

    in_frame < custom_frame <= custom_duration - (total - in_frame)

after custom_frame has been advanced, so frame in_frame is repeated and
exactly custom_duration - total iterations are held (custom_duration
captures in all).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Protocol, Tuple

from lottie_render.formats import OutputKind, format_frame_path, has_frame_pattern, suffix_path
from lottie_render.request import AnimationMetadata, RenderRequest
from lottie_render.utils.logs import get_logger

log = get_logger("sequencer")


@dataclass(frozen=True)
class FrameStep:
    position: int
    seek_target: int
    output_path: str
    frame_number: int = 0
    held: bool = False
    notify: bool = False


@dataclass(frozen=True)
class FramePlan:
    kind: OutputKind
    steps: Tuple[FrameStep, ...]
    total_frames: int
    carousel: bool = False

    @property
    def output_count(self) -> int:
        return len(self.steps)

    @property
    def held_count(self) -> int:
        return sum(1 for s in self.steps if s.held)

    @property
    def seek_targets(self) -> Tuple[int, ...]:
        return tuple(s.seek_target for s in self.steps)


@dataclass(frozen=True)
class HoldWindow:
    in_frame: int
    custom_duration: int
    total: int

    @property
    def upper(self) -> int:
        return self.custom_duration - (self.total - self.in_frame)

    def holds(self, custom_frame: int) -> bool:
        return self.in_frame < custom_frame <= self.upper


@dataclass(frozen=True)
class SequencerState:
    frame: int = 0
    custom_frame: int = 0
    frame_number: int = 0


def advance(state: SequencerState, window: Optional[HoldWindow]) -> Tuple[SequencerState, bool]:
    """Next loop state and whether the seek target was held for this iteration."""
    custom_frame = state.custom_frame + 1
    held = window is not None and window.holds(custom_frame)
    frame = state.frame if held else state.frame + 1
    return SequencerState(frame, custom_frame, state.frame_number + 1), held


def total_frame_count(request: RenderRequest, meta: AnimationMetadata) -> int:
    return request.max_frames if request.max_frames is not None else meta.num_frames


def _output_path(pattern: str, number: int, suffix=None) -> str:
    path = format_frame_path(pattern, number) if has_frame_pattern(pattern) else pattern
    return suffix_path(path, suffix) if suffix is not None else path


def _mark_notifications(steps, interval: Optional[int]):
    if not interval:
        return tuple(steps)
    out, last = [], None
    for s in steps:
        if s.seek_target % interval == 0 and s.seek_target != last:
            s = replace(s, notify=True)
            last = s.seek_target
        out.append(s)
    return tuple(out)


def plan_frames(
    request: RenderRequest,
    meta: AnimationMetadata,
    output_pattern: Optional[str] = None,
    progress_interval: Optional[int] = None,
) -> FramePlan:
    """
    Compute every frame to visit. output_pattern is where frames are written
    (the request output, or a staging pattern for GIF); progress_interval
    enables notification marks.
    """
    kind = request.kind
    pattern = output_pattern or request.output
    total = total_frame_count(request, meta)

    if kind is OutputKind.IMAGE:
        step = FrameStep(position=0, seek_target=request.frame, output_path=pattern)
        return FramePlan(kind, _mark_notifications([step], progress_interval), 1)

    if request.is_carousel:
        steps = [
            FrameStep(
                position=i,
                seek_target=target,
                output_path=_output_path(pattern, i + 1, i + 1),
                frame_number=i,
            )
            for i, target in enumerate(request.carousel_frames)
        ]
        # progress cadence follows the carousel position
        marked = []
        for s in steps:
            notify = bool(progress_interval) and s.position % progress_interval == 0
            marked.append(replace(s, notify=notify))
        return FramePlan(kind, tuple(marked), len(steps), carousel=True)

    window = None
    if request.windowed:
        window = HoldWindow(request.in_frame, request.custom_duration, total)

    start = request.start_offset or 0
    suffixed = kind is OutputKind.SEQUENCE and (request.is_sequence or request.start_offset is not None)
    state = SequencerState(start, start, start)
    steps = []
    while state.frame < total:
        path = _output_path(
            pattern,
            state.frame_number + 1,
            state.frame_number if suffixed else None,
        )
        current = state
        state, held = advance(state, window)
        steps.append(
            FrameStep(
                position=len(steps),
                seek_target=current.frame,
                output_path=path,
                frame_number=current.frame_number,
                held=held,
            )
        )
    return FramePlan(kind, _mark_notifications(steps, progress_interval), total)


class FrameSource(Protocol):
    async def seek_and_capture(
        self, frame, image_type: str = "png", quality=None, omit_background: bool = False
    ) -> bytes: ...


class FrameSink(Protocol):
    async def write(self, step: FrameStep, data: bytes) -> None: ...


@dataclass(frozen=True)
class CaptureOptions:
    image_type: str = "png"
    quality: Optional[int] = None
    omit_background: bool = False


async def run_plan(
    plan: FramePlan,
    surface: FrameSource,
    sink: FrameSink,
    capture: CaptureOptions,
    reporter=None,
    watermarker=None,
    quiet: bool = False,
) -> int:
    """Capture every planned frame in order; returns the number handed to the sink."""
    if not quiet:
        noun = "frame" if plan.output_count == 1 else "frames"
        log.info(f"Rendering {plan.output_count} {noun}")
    written = 0
    for step in plan.steps:
        data = await surface.seek_and_capture(
            step.seek_target,
            image_type=capture.image_type,
            quality=capture.quality,
            omit_background=capture.omit_background,
        )
        if step.notify and reporter is not None:
            reporter.notify(step.position if plan.carousel else step.seek_target, plan.total_frames)
        if watermarker is not None:
            data = watermarker.apply(data, capture.image_type)
        await sink.write(step, data)
        written += 1
        if not plan.kind.is_multi_frame:
            break
    return written
