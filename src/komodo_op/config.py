"""
Configuration — environment variables first, optional YAML file second.

Every setting maps to one environment variable. A YAML file with the
same keys in lower case (``op_connect_host: ...``) may supply values
the environment does not; the environment always wins.

Usage:
    from komodo_op.config import load_settings
    settings = load_settings()
    print(settings.komodo_host)       # "http://komodo.local:9120"
    print(settings.interval_seconds)  # 3600.0
"""

from __future__ import annotations

import logging
import math
import os
import re
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL = "1h"
DEFAULT_REQUEST_TIMEOUT = 60.0

ENV_VARS = {
    "op_connect_host": "OP_CONNECT_HOST",
    "op_vault": "OP_VAULT",
    "op_service_account_token": "OP_SERVICE_ACCOUNT_TOKEN",
    "komodo_host": "KOMODO_HOST",
    "komodo_api_key": "KOMODO_API_KEY",
    "komodo_api_secret": "KOMODO_API_SECRET",
    "log_level": "LOG_LEVEL",
    "sync_interval": "SYNC_INTERVAL",
    "request_timeout": "REQUEST_TIMEOUT",
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ms|h|m|s)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class LogLevel(str, Enum):
    """Log verbosity accepted in LOG_LEVEL."""

    QUIET = "quiet"
    INFO = "info"
    DEBUG = "debug"

    @property
    def logging_level(self) -> int:
        return {
            LogLevel.QUIET: logging.ERROR,
            LogLevel.INFO: logging.INFO,
            LogLevel.DEBUG: logging.DEBUG,
        }[self]


def parse_log_level(value: Optional[str]) -> LogLevel:
    """Map a LOG_LEVEL string to a LogLevel.

    ``error`` is accepted as an alias for ``quiet``. Empty means
    ``info``; anything unrecognised falls back to ``info`` with a warning.
    """
    if value is None:
        return LogLevel.INFO
    if isinstance(value, LogLevel):
        return value
    normalized = str(value).strip().lower()
    if normalized == "":
        return LogLevel.INFO
    if normalized == "error":
        return LogLevel.QUIET
    try:
        return LogLevel(normalized)
    except ValueError:
        logger.warning("Invalid LOG_LEVEL '%s'. Defaulting to info.", value)
        return LogLevel.INFO


def parse_duration(text: str) -> float:
    """Parse an interval like ``90s``, ``30m``, ``1h30m`` or ``500ms``.

    A bare number is taken as seconds.

    Args:
        text: Duration string.

    Returns:
        Duration in seconds, always positive.

    Raises:
        ValueError: If the string is malformed, not positive, or longer
            than a thread wait can take.
    """
    raw = str(text).strip().lower()
    if not raw:
        raise ValueError("empty duration")

    try:
        seconds = float(raw)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(raw):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if pos != len(raw) or pos == 0:
            raise ValueError(f"invalid duration '{text}'")

    if not seconds > 0:
        raise ValueError(f"duration must be positive, got '{text}'")
    if not math.isfinite(seconds) or seconds > threading.TIMEOUT_MAX:
        raise ValueError(f"duration too large, got '{text}'")
    return seconds


def normalize_host(host: str) -> str:
    """Prepend ``http://`` when no ``scheme://`` is given and drop trailing slashes."""
    host = host.strip()
    if "://" not in host:
        host = "http://" + host
    return host.rstrip("/")


class Settings(BaseModel):
    """Effective configuration for one komodo-op process."""

    op_connect_host: str = Field(min_length=1)
    op_vault: str = Field(min_length=1)
    op_service_account_token: SecretStr
    komodo_host: str = Field(min_length=1)
    komodo_api_key: str = Field(min_length=1)
    komodo_api_secret: SecretStr
    log_level: LogLevel = LogLevel.INFO
    sync_interval: str = DEFAULT_SYNC_INTERVAL
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0, le=600)

    @field_validator("op_connect_host", "komodo_host", mode="before")
    @classmethod
    def normalize_hosts(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return normalize_host(v) if v else v
        return v

    @field_validator("op_vault", "komodo_api_key", mode="before")
    @classmethod
    def strip_plain(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("op_service_account_token", "komodo_api_secret", mode="before")
    @classmethod
    def strip_secret(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("must not be empty or whitespace")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def lenient_log_level(cls, v: Any) -> LogLevel:
        return parse_log_level(v)

    @field_validator("sync_interval", mode="before")
    @classmethod
    def valid_interval(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_SYNC_INTERVAL
        v = str(v).strip()
        parse_duration(v)
        return v

    @property
    def interval_seconds(self) -> float:
        """SYNC_INTERVAL as seconds."""
        return parse_duration(self.sync_interval)

    @property
    def vault_id(self) -> str:
        """Vault ID used in API paths (the configured UUID)."""
        return self.op_vault

    def masked(self) -> dict[str, str]:
        """Configuration as display strings, credentials hidden."""
        return {
            "OP_CONNECT_HOST": self.op_connect_host,
            "OP_VAULT": self.op_vault,
            "OP_SERVICE_ACCOUNT_TOKEN": "********",
            "KOMODO_HOST": self.komodo_host,
            "KOMODO_API_KEY": _mask(self.komodo_api_key),
            "KOMODO_API_SECRET": "********",
            "LOG_LEVEL": self.log_level.value,
            "SYNC_INTERVAL": self.sync_interval,
            "REQUEST_TIMEOUT": f"{self.request_timeout:g}s",
        }


def _mask(value: str) -> str:
    if len(value) <= 4:
        return "****"
    return value[:4] + "****"


def _read_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML config file into a settings dict."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    unknown = sorted(str(k) for k in data if k not in ENV_VARS)
    if unknown:
        logger.warning("Ignoring unknown keys in %s: %s", path, ", ".join(unknown))
    return {k: v for k, v in data.items() if k in ENV_VARS}


def load_settings(
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Settings:
    """Build Settings from a config file, the environment and overrides.

    Precedence, lowest first: config file, environment variables,
    explicit keyword overrides (e.g. from CLI options).

    Args:
        config_file: Optional YAML file path.
        environ: Environment mapping. Defaults to ``os.environ``.
        **overrides: Setting values that beat everything else. None is ignored.

    Returns:
        Validated settings.

    Raises:
        ConfigError: A required setting is missing or a value is invalid.
    """
    env = os.environ if environ is None else environ

    data: dict[str, Any] = {}
    if config_file is not None:
        data.update(_read_config_file(Path(config_file).expanduser()))

    for key, var in ENV_VARS.items():
        value = env.get(var)
        if value is not None and value != "":
            data[key] = value

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings(**data)
    except ValidationError as exc:
        problems = []
        for err in exc.errors():
            key = str(err["loc"][0]) if err["loc"] else ""
            var = ENV_VARS.get(key, key)
            if err["type"] == "missing":
                problems.append(f"{var} is not set")
            else:
                problems.append(f"{var}: {err['msg']}")
        raise ConfigError("Invalid configuration: " + "; ".join(problems)) from exc
