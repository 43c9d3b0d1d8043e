# ============================================================
# Configuration
# ============================================================
# Read from the environment (.env is loaded by the entry point).

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from flux_server.errors import ConfigError

# Replicate model slugs, in the order they are advertised to clients
MODEL_SLUGS = {
    "flux-1.1-pro": "black-forest-labs/flux-1.1-pro",
    "flux-pro": "black-forest-labs/flux-pro",
    "flux-schnell": "black-forest-labs/flux-schnell",
    "flux-ultra": "black-forest-labs/flux-1.1-pro-ultra",
}

# USD per generated image
MODEL_COSTS = {
    "flux-1.1-pro": 0.04,
    "flux-pro": 0.055,
    "flux-schnell": 0.003,
    "flux-ultra": 0.06,
}

SUPPORTED_FORMATS = ("jpg", "jpeg", "png", "webp")

DEFAULT_MODEL = "flux-1.1-pro"
DEFAULT_FORMAT = "jpg"
DEFAULT_QUALITY = 80
DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 768
DEFAULT_WORKING_DIRECTORY = "~/flux-output"
DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0


@dataclass(frozen=True)
class Config:
    replicate_api_token: str
    default_model: str = DEFAULT_MODEL
    output_format: str = DEFAULT_FORMAT
    output_quality: int = DEFAULT_QUALITY
    default_width: int = DEFAULT_WIDTH
    default_height: int = DEFAULT_HEIGHT
    working_directory: str = DEFAULT_WORKING_DIRECTORY
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    log_level: str = "INFO"


def _int_setting(env: Mapping[str, str], name: str, default: int, low: int = 1, high: Optional[int] = None) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < low or (high is not None and value > high):
        bounds = f"between {low} and {high}" if high is not None else f"at least {low}"
        raise ConfigError(f"{name} must be {bounds}, got {value}")
    return value


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build and validate a Config from environment variables.

    Raises ConfigError naming the first invalid variable.
    """
    env = os.environ if environ is None else environ

    token = env.get("REPLICATE_API_TOKEN", "").strip()
    if not token:
        raise ConfigError("REPLICATE_API_TOKEN is not set")

    model = env.get("FLUX_DEFAULT_MODEL", "").strip() or DEFAULT_MODEL
    if model not in MODEL_SLUGS:
        raise ConfigError(
            f"FLUX_DEFAULT_MODEL must be one of {', '.join(MODEL_SLUGS)}, got {model!r}"
        )

    output_format = (env.get("FLUX_OUTPUT_FORMAT", "").strip() or DEFAULT_FORMAT).lower()
    if output_format not in SUPPORTED_FORMATS:
        raise ConfigError(
            f"FLUX_OUTPUT_FORMAT must be one of {', '.join(SUPPORTED_FORMATS)}, got {output_format!r}"
        )

    log_level = (env.get("LOG_LEVEL", "").strip() or "INFO").upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"LOG_LEVEL is not a valid level: {log_level!r}")

    return Config(
        replicate_api_token=token,
        default_model=model,
        output_format=output_format,
        output_quality=_int_setting(env, "FLUX_OUTPUT_QUALITY", DEFAULT_QUALITY, 1, 100),
        default_width=_int_setting(env, "FLUX_DEFAULT_WIDTH", DEFAULT_WIDTH),
        default_height=_int_setting(env, "FLUX_DEFAULT_HEIGHT", DEFAULT_HEIGHT),
        working_directory=env.get("FLUX_WORKING_DIRECTORY", "").strip() or DEFAULT_WORKING_DIRECTORY,
        timeout_seconds=_float_setting(env, "FLUX_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        poll_interval_seconds=_float_setting(env, "FLUX_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS),
        log_level=log_level,
    )


def ensure_working_directory(path: str) -> str:
    """Create the working directory if needed and return its absolute path."""
    directory = os.path.abspath(os.path.expanduser(path))
    try:
        os.makedirs(directory, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"Cannot create working directory {directory}: {e}")
    if not os.path.isdir(directory):
        raise ConfigError(f"Working directory is not a directory: {directory}")
    if not os.access(directory, os.W_OK):
        raise ConfigError(f"Working directory is not writable: {directory}")
    return directory


def calculate_cost(model: str) -> float:
    return MODEL_COSTS.get(model, 0.0)
