"""
lottie_render - render Lottie animations to PNG/JPEG stills, image
sequences, animated PNG, MP4/WebM video and GIF through a headless browser.
"""

from .errors import (
    ConfigurationError,
    EncoderProcessError,
    ProgressDeliveryError,
    RenderError,
    SurfaceError,
    UnsupportedFormatError,
)
from .formats import OutputKind, classify_output
from .pipeline import RenderResult, render, render_sync
from .request import AnimationMetadata, RenderRequest, build_request

__version__ = "0.1.0"
__all__ = [
    "AnimationMetadata",
    "ConfigurationError",
    "EncoderProcessError",
    "OutputKind",
    "ProgressDeliveryError",
    "RenderError",
    "RenderRequest",
    "RenderResult",
    "SurfaceError",
    "UnsupportedFormatError",
    "build_request",
    "classify_output",
    "render",
    "render_sync",
]
