"""Delivery failures reported by the capture client's transports."""

from __future__ import annotations


class DeliveryError(RuntimeError):
    """Raised, or handed to the error callback, when an event is not delivered.

    Attributes
    ----------
    retryable
        Whether resending the same event could succeed. Encoding failures
        and local back-pressure drops are not retryable.
    status_code
        Collector response status for HTTP failures.
    body
        At most 1 KiB of the collector's response body for HTTP failures.

    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        """Initialise with a message and failure metadata."""
        self.retryable = retryable
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @classmethod
    def http_status(cls, status_code: int, body: str) -> DeliveryError:
        """Return an error for a collector response other than 204."""
        return cls(
            f"collector answered HTTP {status_code}: {body}",
            retryable=status_code >= 500,  # noqa: PLR2004 - server errors
            status_code=status_code,
            body=body,
        )

    @classmethod
    def network(cls, exc: BaseException) -> DeliveryError:
        """Return an error for a failed connection or request."""
        return cls(f"network error: {exc}", retryable=True)

    @classmethod
    def encoding(cls, exc: BaseException) -> DeliveryError:
        """Return an error for an event that cannot be serialized."""
        return cls(f"could not encode event: {exc}", retryable=False)

    @classmethod
    def attempts_exhausted(
        cls, attempts: int, exc: BaseException | None
    ) -> DeliveryError:
        """Return an error for an event dropped after ``attempts`` tries."""
        return cls(
            f"event dropped after {attempts} attempts: {exc}",
            retryable=True,
        )

    @classmethod
    def queue_full(cls, capacity: int) -> DeliveryError:
        """Return an error for an event dropped because the queue is full."""
        return cls(
            f"event dropped: send queue full ({capacity} pending)",
            retryable=False,
        )

    @classmethod
    def closed(cls) -> DeliveryError:
        """Return an error for an event submitted after ``aclose``."""
        return cls("event dropped: transport is closed", retryable=False)


__all__ = ["DeliveryError"]
