"""Unit tests for the femtologging helpers in hindsight.logging."""

from __future__ import annotations

import pytest

from hindsight.logging import (
    configure_logging,
    format_log_message,
    log_debug,
    log_error,
    log_exception,
    log_warning,
    normalize_log_level,
)


class _RecordingLogger:
    """Collects log calls for assertions."""

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
    ("raw", "expected", "invalid"),
    [
        ("debug", "DEBUG", False),
        ("  Warn ", "WARN", False),
        (None, "INFO", True),
        ("verbose", "INFO", True),
    ],
)
def test_normalize_log_level(raw: str | None, expected: str, *, invalid: bool) -> None:
    """Known levels are upper-cased; anything else falls back to INFO."""
    assert normalize_log_level(raw) == (expected, invalid), (
        f"unexpected normalization for {raw!r}"
    )


def test_configure_logging_passes_normalized_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """configure_logging hands the normalized level to femtologging."""
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr("hindsight.logging.basicConfig", fake_basic_config)

    assert configure_logging("bogus") == ("INFO", True)
    assert captured == {"level": "INFO", "force": False}, (
        "invalid levels should configure INFO without replacing handlers"
    )


def test_format_log_message_interpolates_percent_args() -> None:
    """Templates use percent-style interpolation."""
    assert format_log_message("%s:%d", "127.0.0.1", 8765) == "127.0.0.1:8765"


def test_log_debug_formats_message() -> None:
    """log_debug emits DEBUG without exception info."""
    logger = _RecordingLogger()

    log_debug(logger, "peer=%s", "10.0.0.1:5000")

    assert logger.calls == [("DEBUG", "peer=10.0.0.1:5000", None)]


def test_log_warning_and_error_forward_exc_info() -> None:
    """Warning and error helpers attach the supplied exception."""
    logger = _RecordingLogger()
    exc = RuntimeError("disk full")

    log_warning(logger, "retrying %d", 2, exc_info=exc)
    log_error(logger, "gave up")

    assert logger.calls == [
        ("WARNING", "retrying 2", exc),
        ("ERROR", "gave up", None),
    ]


def test_log_exception_uses_error_level() -> None:
    """log_exception logs at ERROR with the exception attached."""
    logger = _RecordingLogger()
    exc = ValueError("boom")

    log_exception(logger, "failed", exc)

    assert logger.calls == [("ERROR", "failed", exc)]
