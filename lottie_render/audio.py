# lottie_render/audio.py
import os
import tempfile
from typing import List, Optional

from lottie_render.utils.logs import get_logger
from lottie_render.utils.subproc import resolve_binary, run_streamed

log = get_logger("audio")


def build_merge_args(video_path: str, audio_path: str, output_path: str, duration: Optional[float] = None) -> List[str]:
    args = [
        "-v", "error",
        "-hide_banner",
        "-y",
        "-i", video_path,
        "-i", audio_path,
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-c:v", "copy",
        "-c:a", "aac",
    ]
    if duration:
        args += ["-t", f"{duration:.3f}"]
    else:
        args.append("-shortest")
    args.append(output_path)
    return args


def merge_audio(
    video_path: str,
    audio_path: str,
    output_path: Optional[str] = None,
    duration: Optional[float] = None,
    quiet: bool = False,
    log_path: Optional[str] = None,
) -> str:
    """
    Mux an audio track into a rendered video. Without output_path the video is
    replaced in place through a temporary file in the same directory.
    """
    if not os.path.exists(audio_path):
        raise FileNotFoundError(f"Audio track not found: {audio_path}")
    binary = resolve_binary("FFMPEG_PATH", "ffmpeg")
    in_place = output_path is None or os.path.abspath(output_path) == os.path.abspath(video_path)
    target = output_path
    if in_place:
        fd, target = tempfile.mkstemp(
            suffix=os.path.splitext(video_path)[1],
            dir=os.path.dirname(os.path.abspath(video_path)),
        )
        os.close(fd)
    try:
        run_streamed(
            [binary] + build_merge_args(video_path, audio_path, target, duration),
            log_path=log_path,
            echo=not quiet,
            check=True,
        )
        if in_place:
            os.replace(target, video_path)
            target = video_path
    finally:
        if in_place and os.path.exists(target) and target != video_path:
            os.unlink(target)
    if not quiet:
        log.info(f"Merged audio {audio_path} into {target}")
    return target
