"""Event models, strict wire decoding, and visitor-key anonymization."""

from __future__ import annotations

from .anonymizer import daily_salt, day_bucket, event_key, visitor_key
from .errors import EventValidationError, ValidationIssue
from .models import (
    WIRE_FIELDS,
    EnrichedEvent,
    NameAndVersion,
    NormalizedEvent,
    RawEvent,
)
from .validation import decode_event, normalize_event

__all__ = [
    "WIRE_FIELDS",
    "EnrichedEvent",
    "EventValidationError",
    "NameAndVersion",
    "NormalizedEvent",
    "RawEvent",
    "ValidationIssue",
    "daily_salt",
    "day_bucket",
    "decode_event",
    "event_key",
    "normalize_event",
    "visitor_key",
]
