"""
Browser surface for one render call.

Owns (or borrows) a Chromium instance driven through Playwright, one page
sized to the output, and the capture region. A borrowed browser is never
closed here; only the page this session opened is.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from lottie_render.document import READY_SELECTOR, ROOT_SELECTOR
from lottie_render.errors import SurfaceError
from lottie_render.utils.logs import get_logger

log = get_logger("surface")


@dataclass(frozen=True)
class PlayerInfo:
    duration: Optional[float]
    num_frames: Optional[float]


class SurfaceSession:
    def __init__(
        self,
        width: int,
        height: int,
        device_scale_factor: int = 1,
        launch_options: Optional[Dict[str, Any]] = None,
        browser=None,
        quiet: bool = False,
    ):
        self.width = width
        self.height = height
        self.device_scale_factor = device_scale_factor
        self.launch_options = dict(launch_options or {})
        self.quiet = quiet
        self._browser = browser
        self._owns_browser = browser is None
        self._playwright = None
        self._page = None
        self._root = None
        self._clip = {"x": 0, "y": 0, "width": width, "height": height}
        self._closed = False

    async def open(self) -> None:
        try:
            if self._owns_browser:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(**self.launch_options)
            self._page = await self._browser.new_page(
                viewport={"width": self.width, "height": self.height},
                device_scale_factor=self.device_scale_factor,
            )
        except PlaywrightError as e:
            raise SurfaceError(f"Failed to launch browser surface: {e}") from e
        if not self.quiet:
            self._page.on("console", lambda msg: log.info(f"[page] {msg.text}"))
            self._page.on("pageerror", lambda err: log.error(f"[page] {err}"))

    async def load_animation(self, html: str, timeout_ms: int = 30000) -> PlayerInfo:
        """Load the generated document and wait for the player's ready marker."""
        if self._page is None:
            raise SurfaceError("Surface session is not open")
        try:
            await self._page.set_content(html)
            await self._page.wait_for_selector(READY_SELECTOR, state="attached", timeout=timeout_ms)
            info = await self._page.evaluate("() => window.lottieInfo")
            self._root = await self._page.query_selector(ROOT_SELECTOR)
            if self._root is not None:
                box = await self._root.bounding_box()
                if box:
                    self._clip = {"x": box["x"], "y": box["y"], "width": self.width, "height": self.height}
        except PlaywrightError as e:
            raise SurfaceError(f"Animation document failed to load: {e}") from e
        info = info or {}
        return PlayerInfo(duration=info.get("duration"), num_frames=info.get("numFrames"))

    async def seek_and_capture(
        self,
        frame: float,
        image_type: str = "png",
        quality: Optional[int] = None,
        omit_background: bool = False,
    ) -> bytes:
        """Stop the player at an exact frame and screenshot the capture region."""
        if self._page is None:
            raise SurfaceError("Surface session is not open")
        try:
            await self._page.evaluate("(frame) => window.seekToFrame(frame)", frame)
            return await self._page.screenshot(
                type=image_type,
                quality=quality if image_type == "jpeg" else None,
                omit_background=omit_background,
                clip=self._clip,
            )
        except PlaywrightError as e:
            raise SurfaceError(f"Capture of frame {frame} failed: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        root, page = self._root, self._page
        self._root = None
        self._page = None
        if root is not None:
            await self._release("element handle", root.dispose)
        # a borrowed browser stays open; only our page goes
        if page is not None and not self._owns_browser:
            await self._release("page", page.close)
        if self._owns_browser and self._browser is not None:
            await self._release("browser", self._browser.close)
        if self._playwright is not None:
            await self._release("playwright", self._playwright.stop)
            self._playwright = None

    async def _release(self, what: str, closer) -> None:
        try:
            await closer()
        except PlaywrightError as e:
            log.warning(f"Error while closing {what}: {e}")
