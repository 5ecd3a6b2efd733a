"""Errors raised while decoding inbound events."""

from __future__ import annotations

import enum


class ValidationIssue(enum.StrEnum):
    """Classification of a rejected wire event."""

    MALFORMED = "malformed"
    NOT_OBJECT = "not_object"
    MISSING = "missing"
    UNEXPECTED = "unexpected"
    WRONG_TYPE = "wrong_type"
    OUT_OF_RANGE = "out_of_range"


class EventValidationError(ValueError):
    """Raised when a wire event does not match the event schema exactly.

    Attributes
    ----------
    issue
        Classification of the failure.
    field
        Wire name of the offending field, when one can be identified.
    reason
        Human-readable description of the failure.

    """

    def __init__(
        self,
        issue: ValidationIssue,
        reason: str,
        *,
        field: str | None = None,
    ) -> None:
        """Record the failure classification, reason, and field."""
        self.issue = issue
        self.reason = reason
        self.field = field
        super().__init__(f"event {field!r}: {reason}" if field else f"event {reason}")

    @classmethod
    def malformed(cls, detail: str) -> EventValidationError:
        """Return an error for input that is not valid JSON."""
        return cls(ValidationIssue.MALFORMED, f"is not valid JSON: {detail}")

    @classmethod
    def not_object(cls, type_name: str) -> EventValidationError:
        """Return an error for JSON values that are not objects."""
        return cls(
            ValidationIssue.NOT_OBJECT, f"must be a JSON object, got {type_name}"
        )

    @classmethod
    def missing(cls, field: str) -> EventValidationError:
        """Return an error for a required key absent from the event."""
        return cls(ValidationIssue.MISSING, "key is missing", field=field)

    @classmethod
    def unexpected(cls, fields: list[str]) -> EventValidationError:
        """Return an error naming keys outside the event schema."""
        names = ", ".join(repr(name) for name in sorted(fields))
        return cls(ValidationIssue.UNEXPECTED, f"has unexpected fields: {names}")

    @classmethod
    def wrong_type(cls, field: str, expected: str) -> EventValidationError:
        """Return an error for a key holding the wrong JSON type."""
        return cls(ValidationIssue.WRONG_TYPE, f"must be {expected}", field=field)

    @classmethod
    def out_of_range(cls, field: str, constraint: str) -> EventValidationError:
        """Return an error for a well-typed value outside its range."""
        return cls(ValidationIssue.OUT_OF_RANGE, constraint, field=field)
