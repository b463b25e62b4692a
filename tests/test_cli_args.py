from __future__ import annotations

import io
from contextlib import redirect_stderr
from pathlib import Path

import pytest

from httpretry import cli
from httpretry.config import MAX_ATTEMPTS_ENV, TIMEOUT_ENV, load_config
from httpretry.errors import ExitCode
from httpretry.transport import AttemptResult, Response, TransportError


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(MAX_ATTEMPTS_ENV, raising=False)
    monkeypatch.delenv(TIMEOUT_ENV, raising=False)


class _Scripted:
    def __init__(self, *results: AttemptResult) -> None:
        self.results = list(results)
        self.calls = 0

    def perform(self, target: str) -> AttemptResult:
        result = self.results[min(self.calls, len(self.results) - 1)]
        self.calls += 1
        return result


def _args(tmp_path: Path, *extra: str) -> list[str]:
    return [
        *extra,
        "--config",
        str(tmp_path / "missing.toml"),
        "--log-file",
        str(tmp_path / "httpretry.log"),
    ]


def test_cli_help_includes_public_flags() -> None:
    help_text = cli.build_parser().format_help()

    for flag in ("--max-attempts", "--initial-backoff-ms", "--multiplier", "--timeout", "--config", "--log-level"):
        assert flag in help_text


def test_missing_url_prints_usage_and_succeeds(tmp_path: Path) -> None:
    stdout = io.StringIO()

    code = cli.main(_args(tmp_path), stdout=stdout)

    assert code == 0
    assert stdout.getvalue().strip() == "Usage: httpretry <url>"


def test_invalid_attempts_returns_error_code(tmp_path: Path) -> None:
    with redirect_stderr(io.StringIO()) as stream:
        code = cli.main(_args(tmp_path, "http://example.test/", "--max-attempts", "0"))

    assert code == 2
    assert "--max-attempts must be between 1 and 10" in stream.getvalue()


def test_successful_fetch_reports_final_response(tmp_path: Path) -> None:
    stdout = io.StringIO()
    transport = _Scripted(Response(status=200, url="http://example.test/"))

    code = cli.main(_args(tmp_path, "http://example.test/"), transport=transport, stdout=stdout)

    assert code == int(ExitCode.SUCCESS)
    assert transport.calls == 1
    assert stdout.getvalue().splitlines() == [
        "Got final result",
        "Got response: 200 OK http://example.test/",
    ]


def test_exhausted_server_errors_report_each_round(tmp_path: Path) -> None:
    stdout = io.StringIO()
    sleeps: list[float] = []
    transport = _Scripted(Response(status=503))

    code = cli.main(
        _args(tmp_path, "http://example.test/"),
        transport=transport,
        sleep=sleeps.append,
        stdout=stdout,
    )

    assert code == int(ExitCode.HTTP_ERROR)
    assert transport.calls == 3
    assert sleeps == [0.5, 1.0]
    assert stdout.getvalue().splitlines()[:3] == [
        "retry on response code: 503, round #1",
        "retry on response code: 503, round #2",
        "Got final result",
    ]


def test_permanent_transport_error_is_not_retried(tmp_path: Path) -> None:
    stdout = io.StringIO()
    transport = _Scripted(TransportError("error sending request: certificate verify failed"))

    code = cli.main(_args(tmp_path, "https://example.test/"), transport=transport, stdout=stdout)

    assert code == int(ExitCode.TRANSPORT_ERROR)
    assert transport.calls == 1
    assert stdout.getvalue().splitlines()[-1] == "Got Err: error sending request: certificate verify failed"


def test_flags_override_backoff_policy(tmp_path: Path) -> None:
    sleeps: list[float] = []
    transport = _Scripted(TransportError("timeout", is_timeout=True))

    cli.main(
        _args(
            tmp_path,
            "http://example.test/",
            "--max-attempts",
            "4",
            "--initial-backoff-ms",
            "10",
            "--multiplier",
            "3",
        ),
        transport=transport,
        sleep=sleeps.append,
        stdout=io.StringIO(),
    )

    assert transport.calls == 4
    assert len(sleeps) == 3
    assert sleeps == pytest.approx([0.01, 0.03, 0.09])


def test_config_file_supplies_policy(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("max_attempts = 1\n", encoding="utf-8")
    transport = _Scripted(Response(status=500))

    code = cli.main(
        [
            "http://example.test/",
            "--config",
            str(config_path),
            "--log-file",
            str(tmp_path / "httpretry.log"),
        ],
        transport=transport,
        sleep=lambda _: None,
        stdout=io.StringIO(),
    )

    assert code == int(ExitCode.HTTP_ERROR)
    assert transport.calls == 1


def test_blank_url_is_reported_to_stderr(tmp_path: Path) -> None:
    with redirect_stderr(io.StringIO()) as stream:
        code = cli.main(_args(tmp_path, "   "), transport=_Scripted(Response(status=200)), stdout=io.StringIO())

    assert code == int(ExitCode.INVALID_ARGS)
    assert "Error: No request target supplied." in stream.getvalue()


def test_unexpected_failure_maps_to_runtime_error(tmp_path: Path) -> None:
    class _Broken:
        def perform(self, target: str) -> AttemptResult:
            raise RuntimeError("transport bug")

    with redirect_stderr(io.StringIO()) as stream:
        code = cli.main(_args(tmp_path, "http://example.test/"), transport=_Broken(), stdout=io.StringIO())

    assert code == int(ExitCode.RUNTIME_ERROR)
    assert "Unexpected runtime failure" in stream.getvalue()


def test_exit_code_for_final_results() -> None:
    from httpretry.retry import FinalReason, Outcome

    def outcome(result: AttemptResult) -> Outcome:
        return Outcome(result=result, attempts=1, reason=FinalReason.TERMINAL)

    assert cli.exit_code_for(outcome(Response(status=301))) is ExitCode.SUCCESS
    assert cli.exit_code_for(outcome(Response(status=404))) is ExitCode.HTTP_ERROR
    assert cli.exit_code_for(outcome(TransportError("x"))) is ExitCode.TRANSPORT_ERROR


def test_exhausted_and_terminal_runs_write_the_same_stderr(tmp_path: Path) -> None:
    with redirect_stderr(io.StringIO()) as exhausted_stream:
        exhausted_code = cli.main(
            _args(tmp_path, "http://example.test/"),
            transport=_Scripted(Response(status=503)),
            sleep=lambda _: None,
            stdout=io.StringIO(),
        )
    with redirect_stderr(io.StringIO()) as terminal_stream:
        terminal_code = cli.main(
            _args(tmp_path, "http://example.test/"),
            transport=_Scripted(Response(status=404)),
            sleep=lambda _: None,
            stdout=io.StringIO(),
        )

    assert exhausted_code == terminal_code == int(ExitCode.HTTP_ERROR)
    assert exhausted_stream.getvalue() == terminal_stream.getvalue() == ""


def test_final_result_is_logged_once_with_its_reason(tmp_path: Path) -> None:
    log_file = tmp_path / "httpretry.log"

    cli.main(
        [
            "http://example.test/",
            "--config",
            str(tmp_path / "missing.toml"),
            "--log-file",
            str(log_file),
            "--log-level",
            "INFO",
        ],
        transport=_Scripted(Response(status=503)),
        sleep=lambda _: None,
        stdout=io.StringIO(),
    )

    lines = log_file.read_text(encoding="utf-8").splitlines()
    final_lines = [line for line in lines if "Final result" in line]
    assert len(final_lines) == 1
    assert " INFO " in final_lines[0]
    assert "reason=exhausted" in final_lines[0]


def test_save_config_writes_resolved_settings(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    stdout = io.StringIO()

    code = cli.main(
        [
            "--config",
            str(config_path),
            "--log-file",
            str(tmp_path / "httpretry.log"),
            "--save-config",
            "--max-attempts",
            "5",
            "--timeout",
            "7.5",
        ],
        stdout=stdout,
    )

    assert code == 0
    assert f"Saved config to {config_path}" in stdout.getvalue()
    assert "Usage: httpretry <url>" in stdout.getvalue()
    saved = load_config(config_path)
    assert saved.max_attempts == 5
    assert saved.timeout_seconds == 7.5
    assert saved.initial_backoff_ms == 500


def test_saved_config_drives_the_next_run(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    save_args = ["--config", str(config_path), "--log-file", str(tmp_path / "httpretry.log")]
    cli.main([*save_args, "--save-config", "--max-attempts", "2"], stdout=io.StringIO())
    transport = _Scripted(Response(status=500))

    code = cli.main(
        ["http://example.test/", *save_args],
        transport=transport,
        sleep=lambda _: None,
        stdout=io.StringIO(),
    )

    assert code == int(ExitCode.HTTP_ERROR)
    assert transport.calls == 2
