"""Unit tests for capture client delivery errors."""

from __future__ import annotations

import pytest

from hindsight.client import DeliveryError, user_agent


@pytest.mark.parametrize(
    ("status_code", "retryable"),
    [(400, False), (422, False), (500, True), (503, True)],
)
def test_http_status_retryability(status_code: int, *, retryable: bool) -> None:
    """Only server-side failures are worth retrying."""
    error = DeliveryError.http_status(status_code, "boom")

    assert error.status_code == status_code
    assert error.body == "boom"
    assert error.retryable is retryable


def test_local_drops_are_not_retryable() -> None:
    """Back-pressure and shutdown drops will not succeed on retry."""
    assert DeliveryError.queue_full(8).retryable is False
    assert DeliveryError.closed().retryable is False
    assert DeliveryError.encoding(TypeError("bad")).retryable is False


def test_attempts_exhausted_names_attempts() -> None:
    """The message says how often delivery was tried."""
    error = DeliveryError.attempts_exhausted(3, ConnectionRefusedError("refused"))

    assert error.retryable is True
    assert "after 3 attempts" in str(error)


def test_user_agent_identifies_client() -> None:
    """The User-Agent names the client and the interpreter."""
    agent = user_agent()

    assert agent.startswith("Hindsight-Python-Client/")
    assert " Python/" in agent
