#!/usr/bin/env python3
"""
lottie-render command line.

    lottie-render anim.json -o out.mp4 --custom-duration 300 --in-frame 10 --out-frame 50

Prints the render result as JSON. Exit status: 0 on success, 2 for
configuration errors, 1 for render failures.
"""

import json
import sys
from typing import List, Optional

from lottie_render.cli.args import build_parser, request_options
from lottie_render.errors import ConfigurationError, RenderError
from lottie_render.pipeline import render_sync
from lottie_render.request import build_request
from lottie_render.utils.config import load_settings
from lottie_render.utils.logs import get_logger

log = get_logger("cli")


def main(argv: Optional[List[str]] = None) -> int:
    ns = build_parser().parse_args(argv)
    try:
        settings = load_settings(ns.config)
        request = build_request(**request_options(ns, settings.request_defaults()))
        result = render_sync(request, drain_timeout=settings.progress.drain_timeout_sec)
    except ConfigurationError as e:
        for problem in e.problems:
            log.error(problem)
        return 2
    except RenderError as e:
        log.error(f"Render failed: {e}")
        return 1

    print(
        json.dumps(
            {
                "output": result.output,
                "kind": result.output_kind.value,
                "numFrames": result.num_frames,
                "duration": result.duration,
                "framesWritten": result.frames_written,
            }
        )
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
