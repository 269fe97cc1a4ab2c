"""
Shared fixtures.

- No test touches the network: requests.Session.request is blocked unless a
  test patches it itself.
- No test launches a browser: pipeline tests pass a FakeSurface through
  session_factory.
- ffmpeg/gifski are small Python scripts on FFMPEG_PATH/GIFSKI_PATH that
  record their argv to a JSONL log.
"""

import json
import os
import stat
import sys
import textwrap

import pytest
import requests

# Ensure repo root is on sys.path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from lottie_render.errors import SurfaceError
from lottie_render.surface import PlayerInfo

PNG_SIG = b"\x89PNG\r\n\x1a\n"


def frame_bytes(frame) -> bytes:
    """Stand-in screenshot for a frame; starts with the PNG signature so fake encoders can count frames."""
    return PNG_SIG + f"frame-{frame}".encode()


class FakeSurface:
    def __init__(self, duration=None, num_frames=None, fail_at=None):
        self.duration = duration
        self.num_frames = num_frames
        self.fail_at = fail_at
        self.targets = []
        self.captures = []
        self.html = None
        self.opened = False
        self.close_calls = 0

    async def open(self):
        self.opened = True

    async def load_animation(self, html, timeout_ms=30000):
        self.html = html
        return PlayerInfo(duration=self.duration, num_frames=self.num_frames)

    async def seek_and_capture(self, frame, image_type="png", quality=None, omit_background=False):
        if self.fail_at is not None and len(self.targets) == self.fail_at:
            raise SurfaceError(f"Capture of frame {frame} failed: boom")
        self.targets.append(frame)
        self.captures.append({"type": image_type, "quality": quality, "omit_background": omit_background})
        return frame_bytes(frame)

    async def close(self):
        self.close_calls += 1


class MockResponse:
    """Mock HTTP response for testing"""

    def __init__(self, json_data=None, status_code=200, content=b""):
        self.json_data = json_data or {}
        self.status_code = status_code
        self.content = content

    def json(self):
        return self.json_data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


@pytest.fixture
def sample_animation():
    return {
        "v": "5.7.4",
        "fr": 30,
        "ip": 0,
        "op": 120,
        "w": 640,
        "h": 480,
        "nm": "sample",
        "layers": [],
    }


@pytest.fixture
def animation_file(tmp_path, sample_animation):
    p = tmp_path / "anim.json"
    p.write_text(json.dumps(sample_animation), encoding="utf-8")
    return str(p)


@pytest.fixture
def surfaces():
    """Factory for render(session_factory=...); created surfaces are appended to .made."""

    class Factory:
        def __init__(self):
            self.made = []
            self.kwargs = {}

        def __call__(self, request, width, height, browser=None):
            s = FakeSurface(**self.kwargs)
            s.size = (width, height)
            self.made.append(s)
            return s

    return Factory()


def _write_script(path, body):
    path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


FAKE_FFMPEG = """
import json, os, sys
args = sys.argv[1:]
data = sys.stdin.buffer.read() if "-" in args else b""
with open(os.environ["FAKE_TOOL_LOG"], "a") as fh:
    fh.write(json.dumps({"tool": "ffmpeg", "args": args, "frames": data.count(b"\\x89PNG\\r\\n\\x1a\\n")}) + "\\n")
code = int(os.environ.get("FAKE_FFMPEG_EXIT", "0"))
if code:
    sys.stderr.write("fake ffmpeg failure\\n")
    sys.exit(code)
with open(args[-1], "wb") as fh:
    fh.write(data or b"muxed")
"""

FAKE_GIFSKI = """
import json, os, sys
args = sys.argv[1:]
out = args[args.index("-o") + 1]
frames = [a for a in args if a.endswith(".png")]
with open(os.environ["FAKE_TOOL_LOG"], "a") as fh:
    fh.write(json.dumps({"tool": "gifski", "args": args, "frames": frames}) + "\\n")
code = int(os.environ.get("FAKE_GIFSKI_EXIT", "0"))
if code:
    sys.stderr.write("fake gifski failure\\n")
    sys.exit(code)
with open(out, "wb") as fh:
    fh.write(b"GIF89a" + str(len(frames)).encode())
"""


class ToolLog:
    def __init__(self, path):
        self.path = path

    def calls(self, tool=None):
        if not self.path.exists():
            return []
        rows = [json.loads(line) for line in self.path.read_text().splitlines() if line.strip()]
        return [r for r in rows if tool is None or r["tool"] == tool]


@pytest.fixture
def fake_tools(tmp_path, monkeypatch):
    bindir = tmp_path / "fakebin"
    bindir.mkdir()
    log_path = tmp_path / "tools.jsonl"
    monkeypatch.setenv("FAKE_TOOL_LOG", str(log_path))
    monkeypatch.setenv("FFMPEG_PATH", _write_script(bindir / "ffmpeg", FAKE_FFMPEG))
    monkeypatch.setenv("GIFSKI_PATH", _write_script(bindir / "gifski", FAKE_GIFSKI))
    return ToolLog(log_path)


def _blocked_request(self, method, url, *args, **kwargs):
    raise requests.ConnectionError(f"Network access blocked in tests: {method} {url}")


@pytest.fixture(autouse=True)
def no_network(monkeypatch):
    monkeypatch.setattr(requests.Session, "request", _blocked_request)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    for var in (
        "LOTTIE_PLAYER_PATH",
        "LOTTIE_PLAYER_URL",
        "LOTTIE_PROGRESS_URL",
        "LOTTIE_PROGRESS_INTERVAL",
        "LOTTIE_RENDER_STATE_FILE",
    ):
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
