# lottie_render/utils/subproc.py
import asyncio
import os
import subprocess
import sys
from collections import deque
from typing import Deque, Mapping, Optional, Sequence, TextIO

from lottie_render.errors import EncoderProcessError


def resolve_binary(env_var: str, default: str) -> str:
    """Binary path from env_var, else the bare executable name resolved on PATH."""
    return os.environ.get(env_var) or default


def _ensure_parent(path: str) -> None:
    if not path:
        return
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def run_streamed(
    cmd: Sequence[str],
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    log_path: Optional[str] = None,
    tail_lines: int = 200,
    check: bool = True,
    echo: bool = True,
) -> int:
    """
    Stream a subprocess's output line-by-line to stderr (optional) and tee to a logfile.
    Keep a tail buffer of the last N lines for error messages. Raise on non-zero if check=True.
    Returns process returncode.
    """
    if log_path:
        _ensure_parent(log_path)
    tail: Deque[str] = deque(maxlen=tail_lines)
    log_fh = open(log_path, "a", encoding="utf-8") if log_path else None
    try:
        try:
            proc = subprocess.Popen(
                list(cmd),
                cwd=cwd,
                env=dict(os.environ, **env) if env else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,  # line-buffered
            )
        except OSError as e:
            raise EncoderProcessError(f"Could not start {cmd[0]}: {e}", cmd=cmd) from e
        assert proc.stdout is not None
        for line in iter(proc.stdout.readline, ""):
            tail.append(line.rstrip("\n"))
            if echo:
                sys.stderr.write(line)
            if log_fh:
                log_fh.write(line)
        proc.wait()
        rc = proc.returncode
        if check and rc != 0:
            tail_str = "\n".join(tail)
            raise EncoderProcessError(
                f"Command failed (rc={rc}): {' '.join(cmd)}\n--- tail({len(tail)} lines) ---\n{tail_str}\n",
                returncode=rc,
                cmd=cmd,
                tail=tail_str,
            )
        return rc
    finally:
        if log_fh:
            log_fh.flush()
            log_fh.close()


async def pump_stream(
    stream: Optional[asyncio.StreamReader],
    sink: Optional[TextIO],
    tail: Optional[Deque[str]] = None,
) -> None:
    """Copy a subprocess pipe to sink line by line, keeping a tail of recent lines."""
    if stream is None:
        return
    while True:
        line = await stream.readline()
        if not line:
            break
        text = line.decode("utf-8", errors="replace")
        if tail is not None:
            tail.append(text.rstrip("\n"))
        if sink is not None:
            sink.write(text)
            sink.flush()


async def run_process(
    cmd: Sequence[str],
    quiet: bool = False,
    tail_lines: int = 200,
) -> int:
    """
    Run cmd to completion. stderr is always forwarded to the host stderr,
    stdout only when not quiet. Non-zero exit raises EncoderProcessError.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise EncoderProcessError(f"Could not start {cmd[0]}: {e}", cmd=cmd) from e
    tail: Deque[str] = deque(maxlen=tail_lines)
    await asyncio.gather(
        pump_stream(proc.stdout, None if quiet else sys.stdout),
        pump_stream(proc.stderr, sys.stderr, tail),
    )
    rc = await proc.wait()
    if rc != 0:
        tail_str = "\n".join(tail)
        raise EncoderProcessError(
            f"{os.path.basename(cmd[0])} exited with status {rc}",
            returncode=rc,
            cmd=cmd,
            tail=tail_str,
        )
    return rc
