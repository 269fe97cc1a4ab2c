import asyncio

from conftest import FakeSurface, frame_bytes

from lottie_render.formats import OutputKind
from lottie_render.request import AnimationMetadata, build_request
from lottie_render.sequencer import (
    CaptureOptions,
    HoldWindow,
    SequencerState,
    advance,
    plan_frames,
    run_plan,
)


def _plan(sample_animation, output, interval=None, pattern=None, **options):
    req = build_request(output=output, animation_data=sample_animation, **options)
    meta = AnimationMetadata.from_animation(sample_animation)
    return plan_frames(req, meta, pattern, interval)


def test_single_image_is_one_step(sample_animation):
    plan = _plan(sample_animation, "out.png")
    assert plan.kind is OutputKind.IMAGE
    assert plan.seek_targets == (0,)
    assert plan.steps[0].output_path == "out.png"


def test_single_image_honours_frame(sample_animation):
    assert _plan(sample_animation, "out.jpg", frame=42).seek_targets == (42,)


def test_natural_sequence_visits_every_frame(sample_animation):
    plan = _plan(sample_animation, "frames/f-%03d.png")
    assert plan.seek_targets == tuple(range(120))
    assert plan.held_count == 0
    assert plan.steps[0].output_path == "frames/f-001.png"
    assert plan.steps[-1].output_path == "frames/f-120.png"


def test_video_targets_are_strictly_increasing(sample_animation):
    targets = _plan(sample_animation, "out.mp4").seek_targets
    assert all(b > a for a, b in zip(targets, targets[1:]))
    assert len(targets) == 120


def test_max_frames_overrides_natural_count(sample_animation):
    plan = _plan(sample_animation, "out.apng", max_frames=30)
    assert plan.output_count == 30
    assert plan.total_frames == 30


def test_hold_window_extends_to_custom_duration(sample_animation):
    plan = _plan(sample_animation, "out.mp4", custom_duration=300, in_frame=10, out_frame=50)
    assert plan.output_count == 300
    assert plan.held_count == 180
    targets = plan.seek_targets
    assert targets[:11] == tuple(range(11))
    assert targets.count(10) == 181
    assert targets[-109:] == tuple(range(11, 120))
    # never goes backwards
    assert all(b >= a for a, b in zip(targets, targets[1:]))


def test_hold_window_from_first_frame(sample_animation):
    plan = _plan(sample_animation, "out.mp4", custom_duration=150, in_frame=0, out_frame=0)
    assert plan.output_count == 150
    assert plan.held_count == 30
    assert plan.seek_targets.count(0) == 31


def test_hold_window_inactive_without_out_frame(sample_animation):
    plan = _plan(sample_animation, "out.mp4", custom_duration=300, in_frame=10)
    assert plan.output_count == 120


def test_hold_window_shorter_than_natural_holds_nothing(sample_animation):
    plan = _plan(sample_animation, "out.mp4", custom_duration=100, in_frame=10, out_frame=50)
    assert plan.held_count == 0
    assert plan.output_count == 120


def test_held_frames_keep_distinct_staging_paths(sample_animation):
    plan = _plan(
        sample_animation,
        "out.gif",
        pattern="/stage/frame-%012d.png",
        custom_duration=130,
        in_frame=5,
        out_frame=20,
    )
    paths = [s.output_path for s in plan.steps]
    assert len(set(paths)) == 130
    assert paths[0] == "/stage/frame-000000000001.png"


def test_start_offset_and_sequence_suffix(sample_animation):
    plan = _plan(sample_animation, "f-%03d.png", start_offset=100)
    assert plan.seek_targets == tuple(range(100, 120))
    assert plan.steps[0].output_path == "f-101_100.png"


def test_is_sequence_suffixes_plain_path(sample_animation):
    plan = _plan(sample_animation, "shot.png", is_sequence=True, max_frames=3)
    assert [s.output_path for s in plan.steps] == ["shot_0.png", "shot_1.png", "shot_2.png"]


def test_carousel_paths_and_targets(sample_animation):
    plan = _plan(sample_animation, "shot.png", is_carousel=True, carousel_frames=[5, 20, 7])
    assert plan.carousel
    assert plan.seek_targets == (5, 20, 7)
    assert [s.output_path for s in plan.steps] == ["shot_1.png", "shot_2.png", "shot_3.png"]
    assert plan.total_frames == 3


def test_carousel_pattern_uses_position(sample_animation):
    plan = _plan(sample_animation, "c-%02d.jpg", is_carousel=True, carousel_frames=[9, 3])
    assert [s.output_path for s in plan.steps] == ["c-01_1.jpg", "c-02_2.jpg"]


def test_notifications_on_interval(sample_animation):
    plan = _plan(sample_animation, "out.mp4", interval=50)
    assert [s.seek_target for s in plan.steps if s.notify] == [0, 50, 100]


def test_notifications_not_repeated_for_held_frames(sample_animation):
    plan = _plan(sample_animation, "out.mp4", interval=10, custom_duration=200, in_frame=10, out_frame=20)
    notified = [s.seek_target for s in plan.steps if s.notify]
    assert notified == list(range(0, 120, 10))


def test_no_notifications_without_interval(sample_animation):
    assert not any(s.notify for s in _plan(sample_animation, "out.mp4").steps)


def test_advance_counters():
    window = HoldWindow(in_frame=2, custom_duration=6, total=4)
    state = SequencerState()
    seen = []
    while state.frame < 4:
        seen.append(state.frame)
        state, _ = advance(state, window)
    assert seen == [0, 1, 2, 2, 2, 3]
    assert state.custom_frame == 6
    assert state.frame_number == 6


class _Sink:
    def __init__(self):
        self.writes = []

    async def write(self, step, data):
        self.writes.append((step.output_path, data))


class _Reporter:
    def __init__(self):
        self.calls = []

    def notify(self, progress, max_progress):
        self.calls.append((progress, max_progress))


def test_run_plan_captures_in_order(sample_animation):
    plan = _plan(sample_animation, "f-%03d.png", interval=40, max_frames=90)
    surface, sink, reporter = FakeSurface(), _Sink(), _Reporter()
    written = asyncio.run(run_plan(plan, surface, sink, CaptureOptions(), reporter, quiet=True))
    assert written == 90
    assert surface.targets == list(range(90))
    assert sink.writes[3] == ("f-004.png", frame_bytes(3))
    assert reporter.calls == [(0, 90), (40, 90), (80, 90)]


def test_run_plan_reports_carousel_position(sample_animation):
    plan = _plan(sample_animation, "s.png", interval=2, is_carousel=True, carousel_frames=[30, 60, 90])
    reporter = _Reporter()
    asyncio.run(run_plan(plan, FakeSurface(), _Sink(), CaptureOptions(), reporter, quiet=True))
    assert reporter.calls == [(0, 3), (2, 3)]


def test_run_plan_passes_capture_options(sample_animation):
    plan = _plan(sample_animation, "out.jpg", frame=3)
    surface = FakeSurface()
    asyncio.run(
        run_plan(plan, surface, _Sink(), CaptureOptions("jpeg", 70, True), quiet=True)
    )
    assert surface.captures == [{"type": "jpeg", "quality": 70, "omit_background": True}]
