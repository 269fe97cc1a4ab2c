"""
Error taxonomy for the render pipeline.

Fatal errors (configuration, surface, encoder) unwind the render after the
pipeline has released whatever it opened. Progress and watermark errors are
side-channel failures: they are logged and discarded, never raised to the
caller.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class RenderError(Exception):
    """Base class for every error raised by lottie_render."""


class ConfigurationError(RenderError, ValueError):
    """Missing, contradictory or out-of-range request options."""

    def __init__(self, message: str, problems: Optional[Sequence[str]] = None):
        self.problems: List[str] = list(problems or [message])
        super().__init__(message)


class UnsupportedFormatError(ConfigurationError):
    """Output path extension matches no supported output kind."""


class SurfaceError(RenderError):
    """Browser launch, document load or frame capture failed."""


class EncoderProcessError(RenderError):
    """An encoder subprocess could not start or exited non-zero."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        cmd: Optional[Sequence[str]] = None,
        tail: str = "",
    ):
        self.returncode = returncode
        self.cmd = list(cmd or [])
        self.tail = tail
        super().__init__(message)


class ProgressDeliveryError(RenderError):
    """Progress endpoint unreachable or rejected the update."""


class WatermarkError(RenderError):
    """Watermark image could not be loaded or applied."""
