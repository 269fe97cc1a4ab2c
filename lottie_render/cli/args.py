import argparse
from typing import Any, Dict, List, Optional


def _frame_list(value: str) -> List[int]:
    try:
        return [int(v) for v in value.split(",") if v.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated frame numbers, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="lottie-render",
        description="Render a Lottie animation to png/jpg, an image sequence, apng, mp4/webm or gif.",
    )
    ap.add_argument("input", help="Path to the Lottie JSON file")
    ap.add_argument("-o", "--output", required=True, help="Output path or pattern (e.g. frame-%%04d.png)")
    ap.add_argument("--config", default=None, help="Settings YAML (default conf/render.yaml)")
    ap.add_argument("--width", type=int, default=None, help="Output width in px")
    ap.add_argument("--height", type=int, default=None, help="Output height in px")
    ap.add_argument("--scale", type=int, default=None, dest="device_scale_factor", help="Device scale factor")
    ap.add_argument("--renderer", choices=["svg", "canvas", "html"], default=None)
    ap.add_argument("--quality", type=int, default=None, dest="jpeg_quality", help="JPEG quality (0-100)")
    ap.add_argument("--omit-background", action="store_true", help="Capture with a transparent background")

    frames = ap.add_argument_group("frame selection")
    frames.add_argument("--frame", type=int, default=None, help="Frame captured for single-image output")
    frames.add_argument("--custom-duration", type=int, default=None, help="Total output frames when holding")
    frames.add_argument("--max-frames", type=int, default=None, help="Override the natural frame count")
    frames.add_argument("--in-frame", type=int, default=None)
    frames.add_argument("--out-frame", type=int, default=None)
    frames.add_argument("--start-offset", type=int, default=None)
    frames.add_argument("--sequence", action="store_true", dest="is_sequence", help="Write a discrete image sequence")
    frames.add_argument("--carousel", type=_frame_list, default=None, help="Comma-separated frames to capture")

    enc = ap.add_argument_group("encoders")
    enc.add_argument("--crf", type=int, default=None)
    enc.add_argument("--profile", default=None, help="x264 profile")
    enc.add_argument("--preset", default=None, help="x264 preset")
    enc.add_argument("--codec", default=None, help="ffmpeg video codec override")
    enc.add_argument("--gif-quality", type=int, default=None)
    enc.add_argument("--gif-fps", type=int, default=None)
    enc.add_argument("--gif-fast", action="store_true")
    enc.add_argument("--audio", default=None, dest="audio_path", help="Audio track muxed into video output")

    side = ap.add_argument_group("side channels")
    side.add_argument("--progress-url", default=None)
    side.add_argument("--progress-interval", type=int, default=None)
    side.add_argument("--scene", type=int, default=None)
    side.add_argument("--max-scene", type=int, default=None)
    side.add_argument("--watermark", default=None, help="Watermark image path")
    side.add_argument("--watermark-ratio", type=float, default=None)
    side.add_argument("--watermark-opacity", type=float, default=None)
    side.add_argument("--state-file", default=None, help="Append render audit events to this JSONL file")
    side.add_argument("--quiet", action="store_true")
    return ap


_PASSTHROUGH = (
    "width",
    "height",
    "device_scale_factor",
    "renderer",
    "jpeg_quality",
    "frame",
    "custom_duration",
    "max_frames",
    "in_frame",
    "out_frame",
    "start_offset",
    "progress_url",
    "progress_interval",
    "scene",
    "max_scene",
    "audio_path",
    "state_file",
)


def request_options(ns: argparse.Namespace, defaults: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Merge parsed flags over settings defaults into build_request() keywords."""
    opts: Dict[str, Any] = dict(defaults or {})
    opts["path"] = ns.input
    opts["output"] = ns.output
    for key in _PASSTHROUGH:
        value = getattr(ns, key)
        if value is not None:
            opts[key] = value
    for flag in ("omit_background", "is_sequence", "quiet"):
        if getattr(ns, flag):
            opts[flag] = True
    if ns.carousel:
        opts["is_carousel"] = True
        opts["carousel_frames"] = ns.carousel

    ffmpeg = dict(opts.get("ffmpeg") or {})
    for key in ("crf", "profile", "preset", "codec"):
        if getattr(ns, key) is not None:
            ffmpeg[key] = getattr(ns, key)
    if ffmpeg:
        opts["ffmpeg"] = ffmpeg

    gifski = dict(opts.get("gifski") or {})
    if ns.gif_quality is not None:
        gifski["quality"] = ns.gif_quality
    if ns.gif_fps is not None:
        gifski["fps"] = ns.gif_fps
    if ns.gif_fast:
        gifski["fast"] = True
    if gifski:
        opts["gifski"] = gifski

    if ns.watermark:
        wm: Dict[str, Any] = {"path": ns.watermark}
        if ns.watermark_ratio is not None:
            wm["ratio"] = ns.watermark_ratio
        if ns.watermark_opacity is not None:
            wm["opacity"] = ns.watermark_opacity
        opts["watermark"] = wm
    return opts
