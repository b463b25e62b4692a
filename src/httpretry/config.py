"""XDG config loading/saving."""

from __future__ import annotations

import logging as py_logging
import os
import sys
from contextlib import suppress
from pathlib import Path
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from httpretry.retry import RetryPolicy
from httpretry.transport import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT

logger = py_logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/httpretry/config.toml").expanduser()
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF_MS = 500
DEFAULT_MULTIPLIER = 2.0
MAX_ATTEMPTS_ENV = "HTTPRETRY_MAX_ATTEMPTS"
TIMEOUT_ENV = "HTTPRETRY_TIMEOUT"

_MAX_ATTEMPTS_RANGE = (1, 10)
_INITIAL_BACKOFF_MS_RANGE = (0, 60_000)
_MULTIPLIER_RANGE = (0.0, 10.0)
_MAX_TIMEOUT_SECONDS = 600.0


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1, le=10)
    initial_backoff_ms: int = Field(default=DEFAULT_INITIAL_BACKOFF_MS, ge=0, le=60_000)
    multiplier: float = Field(default=DEFAULT_MULTIPLIER, ge=0.0, le=10.0)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0.0, le=_MAX_TIMEOUT_SECONDS)
    user_agent: str = DEFAULT_USER_AGENT

    @field_validator("user_agent")
    @classmethod
    def _validate_user_agent(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("User agent cannot be empty")
        return stripped

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_backoff_seconds=self.initial_backoff_ms / 1000.0,
            multiplier=self.multiplier,
        )


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _toml_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return f'"{_escape(value)}"'
    raise TypeError(f"Unsupported TOML scalar type: {type(value)!r}")


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _apply_env_overrides(cfg: AppConfig) -> None:
    raw_attempts = os.getenv(MAX_ATTEMPTS_ENV, "").strip()
    if raw_attempts:
        try:
            attempts = int(raw_attempts)
        except ValueError:
            attempts = 0
        low, high = _MAX_ATTEMPTS_RANGE
        if low <= attempts <= high:
            cfg.max_attempts = attempts
        else:
            logger.warning("Ignoring invalid %s=%r", MAX_ATTEMPTS_ENV, raw_attempts)

    raw_timeout = os.getenv(TIMEOUT_ENV, "").strip()
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            timeout = 0.0
        if 0.0 < timeout <= _MAX_TIMEOUT_SECONDS:
            cfg.timeout_seconds = timeout
        else:
            logger.warning("Ignoring invalid %s=%r", TIMEOUT_ENV, raw_timeout)


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    max_attempts = raw.get("max_attempts", cfg.max_attempts)
    low, high = _MAX_ATTEMPTS_RANGE
    if _is_int(max_attempts) and low <= cast(int, max_attempts) <= high:
        cfg.max_attempts = cast(int, max_attempts)

    initial_backoff_ms = raw.get("initial_backoff_ms", cfg.initial_backoff_ms)
    low, high = _INITIAL_BACKOFF_MS_RANGE
    if _is_int(initial_backoff_ms) and low <= cast(int, initial_backoff_ms) <= high:
        cfg.initial_backoff_ms = cast(int, initial_backoff_ms)

    multiplier = raw.get("multiplier", cfg.multiplier)
    low_f, high_f = _MULTIPLIER_RANGE
    if _is_number(multiplier) and low_f <= cast(float, multiplier) <= high_f:
        cfg.multiplier = float(cast(float, multiplier))

    timeout_seconds = raw.get("timeout_seconds", cfg.timeout_seconds)
    if _is_number(timeout_seconds) and 0.0 < cast(float, timeout_seconds) <= _MAX_TIMEOUT_SECONDS:
        cfg.timeout_seconds = float(cast(float, timeout_seconds))

    user_agent = raw.get("user_agent", cfg.user_agent)
    if isinstance(user_agent, str) and user_agent.strip():
        cfg.user_agent = user_agent

    _apply_env_overrides(cfg)
    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    raw: object = {}
    if resolved.exists():
        try:
            with resolved.open("rb") as handle:
                raw = tomllib.load(handle)
        except (tomllib.TOMLDecodeError, OSError):
            logger.warning("Ignoring unreadable config file %s", resolved)
            raw = {}
    if not isinstance(raw, dict):
        raw = {}
    return _sanitize(raw)


def save_config(config: AppConfig, path: str | Path | None = None) -> Path:
    resolved = get_config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        f"max_attempts = {_toml_scalar(config.max_attempts)}",
        f"initial_backoff_ms = {_toml_scalar(config.initial_backoff_ms)}",
        f"multiplier = {_toml_scalar(float(config.multiplier))}",
        f"timeout_seconds = {_toml_scalar(float(config.timeout_seconds))}",
        f"user_agent = {_toml_scalar(config.user_agent)}",
    ]

    resolved.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o600)
    return resolved
