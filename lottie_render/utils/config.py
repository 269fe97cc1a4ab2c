# lottie_render/utils/config.py
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from lottie_render.config.schemas import Settings
from lottie_render.errors import ConfigurationError
from lottie_render.utils.logs import get_logger

log = get_logger("config")

DEFAULT_CONFIG_PATHS = ("conf/render.yaml", "conf/render.example.yaml")


def _read_yaml(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with p.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML at {path} must be a mapping/object.")
    return data


def _deep_merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(a)
    for k, v in (b or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_env(env_file: Optional[str] = ".env") -> Dict[str, str]:
    if env_file:
        load_dotenv(env_file)
    return dict(os.environ)


def _env_overlay(env: Dict[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if env.get("LOTTIE_PLAYER_PATH"):
        out.setdefault("player", {})["path"] = env["LOTTIE_PLAYER_PATH"]
    if env.get("LOTTIE_PLAYER_URL"):
        out.setdefault("player", {})["url"] = env["LOTTIE_PLAYER_URL"]
    if env.get("LOTTIE_PROGRESS_URL"):
        out.setdefault("progress", {})["url"] = env["LOTTIE_PROGRESS_URL"]
    if env.get("LOTTIE_PROGRESS_INTERVAL"):
        try:
            out.setdefault("progress", {})["interval"] = int(env["LOTTIE_PROGRESS_INTERVAL"])
        except ValueError:
            log.warning(f"Ignoring non-integer LOTTIE_PROGRESS_INTERVAL={env['LOTTIE_PROGRESS_INTERVAL']!r}")
    if env.get("LOTTIE_RENDER_STATE_FILE"):
        out["state_file"] = env["LOTTIE_RENDER_STATE_FILE"]
    return out


def load_settings(
    path: Optional[str] = None,
    *,
    cli_overrides: Optional[Dict[str, Any]] = None,
    env_file: Optional[str] = ".env",
) -> Settings:
    """
    Load render defaults with strict precedence (low -> high):
      1) Defaults baked into the Settings model
      2) conf/render.yaml (or conf/render.example.yaml), or an explicit path
      3) .env and environment variables
      4) CLI overrides
    """
    if path:
        if not Path(path).exists():
            raise ConfigurationError(f"Configuration file missing: {path}")
        base = _read_yaml(path)
    else:
        base = {}
        for candidate in DEFAULT_CONFIG_PATHS:
            if Path(candidate).exists():
                base = _read_yaml(candidate)
                log.debug(f"Loaded settings from {candidate}")
                break

    merged = _deep_merge(base, _env_overlay(load_env(env_file)))
    if cli_overrides:
        merged = _deep_merge(merged, cli_overrides)
    try:
        return Settings(**merged)
    except ValidationError as e:
        log.error(f"Config validation failed: {e}")
        raise ConfigurationError(f"Invalid settings: {e}") from e
