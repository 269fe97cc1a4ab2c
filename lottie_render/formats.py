"""
Output format classification.

The output kind gates every downstream branch (capture type, encoder, loop
shape), so it is decided from the output path and flags alone, before any
browser or subprocess exists.
"""

from __future__ import annotations

import os
import re
from enum import Enum

from lottie_render.errors import UnsupportedFormatError

# printf-style numbering placeholder: %d, %4d, %04d, %012d
FRAME_PATTERN_RE = re.compile(r"%0?\d{0,3}d")

STILL_EXTS = {".png", ".jpg", ".jpeg"}
JPEG_EXTS = {".jpg", ".jpeg"}


class OutputKind(str, Enum):
    IMAGE = "image"
    SEQUENCE = "sequence"
    APNG = "apng"
    VIDEO = "video"
    GIF = "gif"

    @property
    def is_multi_frame(self) -> bool:
        return self is not OutputKind.IMAGE

    @property
    def is_piped(self) -> bool:
        return self in (OutputKind.APNG, OutputKind.VIDEO)


def output_ext(path: str) -> str:
    return os.path.splitext(path)[1].lower()


def has_frame_pattern(path: str) -> bool:
    return FRAME_PATTERN_RE.search(os.path.basename(path)) is not None


def format_frame_path(path: str, number: int) -> str:
    """Substitute number into the first numbering placeholder of path's file name."""
    head, name = os.path.split(path)
    name = FRAME_PATTERN_RE.sub(lambda m: m.group(0) % number, name, count=1)
    return os.path.join(head, name) if head else name


def suffix_path(path: str, suffix) -> str:
    """out.png -> out_<suffix>.png"""
    root, ext = os.path.splitext(path)
    return f"{root}_{suffix}{ext}"


def classify_output(path: str, is_sequence: bool = False, is_carousel: bool = False) -> OutputKind:
    """Output kind for path; raises UnsupportedFormatError for unknown extensions."""
    ext = output_ext(path)
    if ext in STILL_EXTS:
        if is_sequence or is_carousel or has_frame_pattern(path):
            return OutputKind.SEQUENCE
        return OutputKind.IMAGE
    if ext == ".apng":
        return OutputKind.APNG
    if ext in (".mp4", ".webm"):
        return OutputKind.VIDEO
    if ext == ".gif":
        return OutputKind.GIF
    raise UnsupportedFormatError(f'Unsupported output format "{path}"')


def capture_type(kind: OutputKind, path: str) -> str:
    """Screenshot encoding for frames of this output: jpeg for JPEG stills, png otherwise."""
    if kind in (OutputKind.IMAGE, OutputKind.SEQUENCE) and output_ext(path) in JPEG_EXTS:
        return "jpeg"
    return "png"
