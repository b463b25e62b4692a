"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TextIO

from .config import AppConfig, load_config, save_config
from .errors import ExitCode, HttpRetryError, exit_code_for_status, user_facing_error
from .logging import configure_logging, default_log_path
from .progress import ProgressLog
from .retry import Outcome, RetryExecutor
from .transport import Transport, TransportError, UrllibTransport

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


def _bounded_int(flag: str, low: int, high: int) -> Callable[[str], int]:
    def parse(value: str) -> int:
        try:
            parsed = int(value)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"{flag} must be an integer") from exc
        if parsed < low or parsed > high:
            raise argparse.ArgumentTypeError(f"{flag} must be between {low} and {high}")
        return parsed

    return parse


def _multiplier_type(value: str) -> float:
    try:
        multiplier = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--multiplier must be a number") from exc
    if not 0.0 <= multiplier <= 10.0:
        raise argparse.ArgumentTypeError("--multiplier must be between 0 and 10")
    return multiplier


def _timeout_type(value: str) -> float:
    try:
        timeout = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--timeout must be a number") from exc
    if not 0.0 < timeout <= 600.0:
        raise argparse.ArgumentTypeError("--timeout must be greater than 0 and at most 600")
    return timeout


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="httpretry",
        description="Fetch a URL with GET, retrying transient failures with exponential backoff.",
    )
    parser.add_argument("url", nargs="?", default=None)
    parser.add_argument("--max-attempts", type=_bounded_int("--max-attempts", 1, 10), default=None)
    parser.add_argument(
        "--initial-backoff-ms",
        type=_bounded_int("--initial-backoff-ms", 0, 60_000),
        default=None,
    )
    parser.add_argument("--multiplier", type=_multiplier_type, default=None)
    parser.add_argument("--timeout", type=_timeout_type, default=None, help="Per-attempt timeout in seconds")
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Write the resolved settings back to the config file",
    )
    parser.add_argument("--log-level", type=_log_level_type, default="WARN")
    parser.add_argument("--log-file", type=Path, default=None)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def resolve_config(namespace: argparse.Namespace) -> AppConfig:
    config = load_config(namespace.config)
    if namespace.max_attempts is not None:
        config.max_attempts = namespace.max_attempts
    if namespace.initial_backoff_ms is not None:
        config.initial_backoff_ms = namespace.initial_backoff_ms
    if namespace.multiplier is not None:
        config.multiplier = namespace.multiplier
    if namespace.timeout is not None:
        config.timeout_seconds = namespace.timeout
    return config


def exit_code_for(outcome: Outcome) -> ExitCode:
    result = outcome.result
    return exit_code_for_status(None if isinstance(result, TransportError) else result.status)


def run_request(
    namespace: argparse.Namespace,
    *,
    transport: Transport | None = None,
    sleep: Callable[[float], None] = time.sleep,
    stdout: TextIO | None = None,
) -> int:
    if not namespace.url.strip():
        raise HttpRetryError(
            "No request target supplied",
            code=ExitCode.INVALID_ARGS,
            hint="Pass the URL to fetch.",
        )
    config = resolve_config(namespace)
    active_transport = transport or UrllibTransport(
        timeout_seconds=config.timeout_seconds,
        user_agent=config.user_agent,
    )
    progress = ProgressLog(stream=stdout or sys.stdout)
    executor = RetryExecutor(config.to_policy(), sleep=sleep, progress=progress)
    outcome = executor.execute(namespace.url, active_transport)
    return int(exit_code_for(outcome))


def main(
    argv: Sequence[str] | None = None,
    *,
    transport: Transport | None = None,
    sleep: Callable[[float], None] = time.sleep,
    stdout: TextIO | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(level="WARN", log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(level=namespace.log_level, log_file=log_path)

    out = stdout or sys.stdout
    try:
        if namespace.save_config:
            saved = save_config(resolve_config(namespace), namespace.config)
            logger.info("Saved config path=%s", saved)
            print(f"Saved config to {saved}", file=out)

        if namespace.url is None:
            print(f"Usage: {parser.prog} <url>", file=out)
            return int(ExitCode.SUCCESS)

        logger.debug("Starting request flow url=%s", namespace.url)
        return run_request(namespace, transport=transport, sleep=sleep, stdout=out)
    except HttpRetryError as exc:
        logger.error(
            "Handled HttpRetryError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        print(
            user_facing_error("Unexpected runtime failure", hint=f"Inspect logs: {log_path}"),
            file=sys.stderr,
        )
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
