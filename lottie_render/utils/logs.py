# lottie_render/utils/logs.py
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def get_logger(name: str = "lottie_render", log_file: Optional[str] = None) -> logging.Logger:
    """
    Named logger with a single stderr handler. Level comes from
    LOTTIE_RENDER_LOG_LEVEL; LOTTIE_RENDER_LOG_FILE (or log_file) adds a
    rotating file handler.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    level = os.getenv("LOTTIE_RENDER_LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level, logging.INFO))
    fmt = logging.Formatter(DEFAULT_FORMAT)
    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(fmt)
    logger.addHandler(sh)
    log_file = log_file or os.getenv("LOTTIE_RENDER_LOG_FILE")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=5)
        fh.setFormatter(fmt)
        logger.addHandler(fh)
    logger.propagate = False
    return logger


def _json_default(o: Any) -> Any:
    try:
        return str(o)
    except Exception:
        return None


def audit_event(step: str, status: str, path: Optional[str] = None, **fields: Any) -> None:
    """
    Append a structured JSON line with ts, step, status and extra fields to
    path. No-op when path is not set.
    """
    if not path:
        return
    record: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "step": step,
        "status": status,
    }
    if fields:
        record.update(fields)
    line = json.dumps(record, default=_json_default)
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("a", encoding="utf-8") as fh:
        fh.write(line + "\n")
