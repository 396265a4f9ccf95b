"""Unit tests for the femtologging helpers."""

from __future__ import annotations

import pytest

from mixport.logging import (
    LOG_LEVEL_ENV_VAR,
    configure_logging,
    format_log_message,
    log_debug,
    log_error,
    log_exception,
    log_info,
    log_warning,
    normalize_log_level,
    resolve_log_level,
)


class _RecordingLogger:
    """Stores ``log`` calls instead of emitting them."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, object | None]] = []

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str:
        del stack_info
        self.calls.append((level, message, exc_info))
        return message


@pytest.mark.parametrize(
    ("raw", "expected", "replaced"),
    [
        ("debug", "DEBUG", False),
        ("  Warn ", "WARN", False),
        ("ERROR", "ERROR", False),
        (None, "INFO", True),
        ("   ", "INFO", True),
        ("loud", "INFO", True),
    ],
)
def test_normalize_log_level(raw: str | None, expected: str, *, replaced: bool) -> None:
    """Known levels are upper-cased; anything else falls back to INFO."""
    assert normalize_log_level(raw) == (expected, replaced)


def test_format_log_message_without_args_keeps_percent_signs() -> None:
    """Templates without arguments are not interpolated."""
    assert format_log_message("100% done") == "100% done"


def test_format_log_message_interpolates() -> None:
    """Arguments are applied percent-style."""
    assert format_log_message("%s exported %d", "acme", 3) == "acme exported 3"


@pytest.mark.parametrize(
    ("helper", "level"),
    [
        (log_debug, "DEBUG"),
        (log_info, "INFO"),
        (log_warning, "WARNING"),
        (log_error, "ERROR"),
    ],
)
def test_helpers_emit_their_level(helper: object, level: str) -> None:
    """Each helper logs at its own level with the formatted message."""
    logger = _RecordingLogger()

    helper(logger, "day=%s records=%d", "2024-01-01", 5)  # type: ignore[operator]

    assert logger.calls == [(level, "day=2024-01-01 records=5", None)]


def test_log_exception_attaches_exception() -> None:
    """log_exception logs at ERROR with exc_info set."""
    logger = _RecordingLogger()
    exc = OSError("disk full")

    log_exception(logger, "sink failed: %s", exc)

    assert logger.calls == [("ERROR", "sink failed: %s", exc)], (
        "The message is passed through verbatim."
    )


def test_configure_logging_installs_normalized_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """configure_logging hands the normalized level to basicConfig."""
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr("mixport.logging.basicConfig", fake_basic_config)

    assert configure_logging("bogus") == ("INFO", True)
    assert captured == {"level": "INFO", "force": False}


class TestResolveLogLevel:
    """Tests for resolve_log_level."""

    def test_cli_value_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An explicit option beats the environment."""
        monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "ERROR")

        assert resolve_log_level("DEBUG") == "DEBUG"

    def test_environment_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without an option the environment variable is used."""
        monkeypatch.setenv(LOG_LEVEL_ENV_VAR, "WARN")

        assert resolve_log_level(None) == "WARN"

    def test_nothing_configured(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """No option and no variable leaves the default to normalization."""
        monkeypatch.delenv(LOG_LEVEL_ENV_VAR, raising=False)

        assert resolve_log_level(None) is None
