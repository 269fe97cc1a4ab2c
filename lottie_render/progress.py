"""
Best-effort progress reporting.

Each update is a detached task: the POST runs in the default executor, the
capture loop never awaits it, and a failure is logged and dropped. At the end
of the render ``aclose`` gives in-flight posts a bounded grace period.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Set

import requests

from lottie_render.errors import ProgressDeliveryError
from lottie_render.utils.http import make_session, post_json
from lottie_render.utils.logs import get_logger

log = get_logger("progress")


class ProgressReporter:
    def __init__(
        self,
        url: str,
        interval: int = 100,
        scene: int = 0,
        max_scene: int = 0,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.interval = interval
        self.scene = scene
        self.max_scene = max_scene
        self.timeout = timeout
        self.session = session or make_session()
        self._pending: Set[asyncio.Future] = set()
        self.sent = 0
        self.failed = 0

    def payload(self, progress: int, max_progress: int) -> Dict[str, Any]:
        return {
            "progress": progress,
            "maxProgress": max_progress,
            "scene": self.scene,
            "max": self.max_scene,
        }

    def post(self, payload: Dict[str, Any]) -> None:
        try:
            post_json(self.session, self.url, payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProgressDeliveryError(f"Progress update to {self.url} failed: {e}") from e

    def notify(self, progress: int, max_progress: int) -> None:
        """Schedule a POST without waiting for it."""
        loop = asyncio.get_running_loop()
        fut = loop.run_in_executor(None, self.post, self.payload(progress, max_progress))
        self._pending.add(fut)
        fut.add_done_callback(self._on_done)

    def _on_done(self, fut: asyncio.Future) -> None:
        self._pending.discard(fut)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is None:
            self.sent += 1
            return
        self.failed += 1
        log.warning(f"{exc}")

    async def aclose(self, timeout: float = 5.0) -> None:
        if self._pending:
            done, pending = await asyncio.wait(set(self._pending), timeout=timeout)
            if pending:
                log.warning(f"Abandoning {len(pending)} progress update(s) still in flight")
        self.session.close()
