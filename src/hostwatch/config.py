"""Configuration loading for hostwatch."""

import logging
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = ".env"
DEFAULT_INTERVAL = 5.0
DEFAULT_REQUEST_TIMEOUT = 10.0


class ConfigError(ValueError):
    """Raised when configuration is missing or malformed."""


@dataclass(slots=True, frozen=True)
class Config:
    """Process-wide settings, built once at startup."""

    cluster_id: str
    webhook_url: str
    threshold: float  # CPU percent
    interval: float = DEFAULT_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def _require(values: Mapping[str, str | None], key: str) -> str:
    value = (values.get(key) or "").strip()
    if not value:
        raise ConfigError(f"{key} is not set")
    return value


def _parse_float(values: Mapping[str, str | None], key: str, default: float | None = None) -> float:
    raw = (values.get(key) or "").strip()
    if not raw:
        if default is None:
            raise ConfigError(f"{key} is not set")
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if not math.isfinite(value):
        raise ConfigError(f"{key} must be a finite number, got {raw!r}")
    return value


def load_config(
    env_file: str | os.PathLike[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """
    Build a Config from a dotenv file and the process environment.

    Variables already present in the environment win over the dotenv file.
    The default ``.env`` is optional; an explicitly named file must exist.

    Args:
        env_file: Dotenv file to read. Defaults to ``.env`` in the working directory.
        environ: Environment mapping, defaults to ``os.environ``.

    Raises:
        ConfigError: If a required value is missing or malformed.
    """
    if env_file is None:
        path = Path(DEFAULT_ENV_FILE)
        file_values = dotenv_values(path) if path.is_file() else {}
    else:
        path = Path(env_file)
        if not path.is_file():
            raise ConfigError(f"Env file not found: {path}")
        file_values = dotenv_values(path)
        logger.debug("Loaded settings from %s", path)

    values: dict[str, str | None] = {**file_values, **(os.environ if environ is None else environ)}

    webhook_url = _require(values, "WEBHOOK_URL")
    if urlparse(webhook_url).scheme not in ("http", "https"):
        raise ConfigError("WEBHOOK_URL must be an http(s) URL")

    interval = _parse_float(values, "INTERVAL", DEFAULT_INTERVAL)
    if interval <= 0:
        raise ConfigError("INTERVAL must be positive")
    request_timeout = _parse_float(values, "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)
    if request_timeout <= 0:
        raise ConfigError("REQUEST_TIMEOUT must be positive")

    return Config(
        cluster_id=_require(values, "CID"),
        webhook_url=webhook_url,
        threshold=_parse_float(values, "MAX"),
        interval=interval,
        request_timeout=request_timeout,
    )
