"""
Frame watermarking with Pillow.

The watermark is scaled to fit ``ratio`` of the frame, centred, and blended
at ``opacity``. Watermarking is a side channel: a frame that cannot be
watermarked is passed through untouched and the failure is logged.
"""

import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

from lottie_render.config.schemas import WatermarkOptions
from lottie_render.errors import WatermarkError
from lottie_render.utils.logs import get_logger

log = get_logger("watermark")

_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG"}


def load_mark(path: str) -> Image.Image:
    try:
        with Image.open(path) as im:
            return im.convert("RGBA")
    except (OSError, UnidentifiedImageError) as e:
        raise WatermarkError(f"Cannot load watermark {path}: {e}") from e


def compose(base: Image.Image, mark: Image.Image, ratio: float = 1.0, opacity: float = 1.0) -> Image.Image:
    """Return base with mark centred on it, scaled to ratio of the frame."""
    frame = base.convert("RGBA")
    box_w = max(1, int(frame.width * ratio))
    box_h = max(1, int(frame.height * ratio))
    scale = min(box_w / mark.width, box_h / mark.height)
    size = (max(1, int(mark.width * scale)), max(1, int(mark.height * scale)))
    overlay = mark.resize(size, Image.Resampling.LANCZOS)
    if opacity < 1.0:
        alpha = overlay.getchannel("A").point(lambda a: int(a * opacity))
        overlay.putalpha(alpha)
    layer = Image.new("RGBA", frame.size, (0, 0, 0, 0))
    layer.paste(overlay, ((frame.width - size[0]) // 2, (frame.height - size[1]) // 2))
    return Image.alpha_composite(frame, layer)


class Watermarker:
    def __init__(self, options: WatermarkOptions, quality: Optional[int] = None):
        self.options = options
        self.quality = quality
        self.mark: Optional[Image.Image] = None
        self.failures = 0

    @classmethod
    def from_options(cls, options: Optional[WatermarkOptions], quality: Optional[int] = None) -> Optional["Watermarker"]:
        if options is None:
            return None
        wm = cls(options, quality)
        try:
            wm.mark = load_mark(options.path)
        except WatermarkError as e:
            log.warning(f"{e}; rendering without watermark")
            return None
        return wm

    def apply(self, data: bytes, image_type: str = "png") -> bytes:
        """Watermarked copy of an encoded frame, or the original bytes on failure."""
        if self.mark is None:
            return data
        try:
            with Image.open(io.BytesIO(data)) as im:
                out = compose(im, self.mark, self.options.ratio, self.options.opacity)
            buf = io.BytesIO()
            fmt = _PIL_FORMATS.get(image_type, "PNG")
            if fmt == "JPEG":
                out.convert("RGB").save(buf, fmt, quality=self.quality or 90)
            else:
                out.save(buf, fmt)
            return buf.getvalue()
        except (OSError, UnidentifiedImageError, ValueError) as e:
            self.failures += 1
            log.warning(f"Watermark failed, keeping original frame: {e}")
            return data
