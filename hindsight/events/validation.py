"""Strict decoding of inbound wire events.

Decoding happens in two phases. The payload is first parsed as plain JSON so
the key set can be compared against the nine wire fields; each value is then
converted on its own with ``msgspec.convert`` in strict mode and range
checked. Any violation raises :class:`EventValidationError` naming the field,
and no partially populated event is ever returned.

Example
-------
>>> event = decode_event(line)  # doctest: +SKIP
>>> event.status_code
200

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import datetime as dt
import ipaddress
import typing as typ

import msgspec

from .errors import EventValidationError
from .models import WIRE_FIELDS, NormalizedEvent

_MIN_STATUS = 100
_MAX_STATUS_EXCLUSIVE = 600
_MAX_INT64 = 2**63 - 1

_Check = cabc.Callable[[str, typ.Any], typ.Any]


def _as_string(field: str, value: object) -> str:
    return typ.cast("str", _convert(field, value, str, "a string"))


def _as_integer(field: str, value: object) -> int:
    # msgspec keeps bool distinct from int, but be explicit about it.
    if isinstance(value, bool):
        raise EventValidationError.wrong_type(field, "an integer")
    number = typ.cast("int", _convert(field, value, int, "an integer"))
    if number > _MAX_INT64:
        raise EventValidationError.out_of_range(field, "must fit in 64 bits")
    return number


def _convert(field: str, value: object, target: type, expected: str) -> object:
    try:
        return msgspec.convert(value, type=target, strict=True)
    except msgspec.ValidationError as exc:
        raise EventValidationError.wrong_type(field, expected) from exc


def _check_time(field: str, value: object) -> dt.datetime:
    if not isinstance(value, str):
        raise EventValidationError.wrong_type(field, "an RFC 3339 timestamp string")
    parsed = typ.cast(
        "dt.datetime",
        _convert(field, value, dt.datetime, "an RFC 3339 timestamp string"),
    )
    if parsed.tzinfo is None:
        raise EventValidationError.wrong_type(
            field, "an RFC 3339 timestamp with a UTC offset"
        )
    return parsed.astimezone(dt.UTC)


def _check_ip(field: str, value: object) -> str:
    text = _as_string(field, value)
    try:
        return str(ipaddress.ip_address(text))
    except ValueError as exc:
        raise EventValidationError.wrong_type(field, "a valid IP address") from exc


def _check_status(field: str, value: object) -> int:
    status = _as_integer(field, value)
    if not _MIN_STATUS <= status < _MAX_STATUS_EXCLUSIVE:
        raise EventValidationError.out_of_range(
            field, f"must be between {_MIN_STATUS} and {_MAX_STATUS_EXCLUSIVE - 1}"
        )
    return status


def _check_non_negative(field: str, value: object) -> int:
    number = _as_integer(field, value)
    if number < 0:
        raise EventValidationError.out_of_range(field, "must be non-negative")
    return number


@dc.dataclass(frozen=True, slots=True)
class _FieldRule:
    """Maps a wire key onto a ``NormalizedEvent`` attribute."""

    wire_name: str
    attribute: str
    check: _Check


_RULES: tuple[_FieldRule, ...] = (
    _FieldRule("Time", "time", _check_time),
    _FieldRule("IP", "ip", _check_ip),
    _FieldRule("Host", "host", _as_string),
    _FieldRule("Method", "method", _as_string),
    _FieldRule("Path", "path", _as_string),
    _FieldRule("UserAgent", "user_agent", _as_string),
    _FieldRule("StatusCode", "status_code", _check_status),
    _FieldRule("BytesWritten", "bytes_written", _check_non_negative),
    _FieldRule("Duration", "duration_ms", _check_non_negative),
)


def _check_key_set(raw: dict[str, typ.Any]) -> None:
    for name in WIRE_FIELDS:
        if name not in raw:
            raise EventValidationError.missing(name)
    extra = [key for key in raw if key not in WIRE_FIELDS]
    if extra:
        raise EventValidationError.unexpected(extra)


def normalize_event(raw: object) -> NormalizedEvent:
    """Validate an already-parsed JSON value as a wire event.

    Parameters
    ----------
    raw
        Result of parsing one JSON document.

    Returns
    -------
    NormalizedEvent
        The fully validated event.

    Raises
    ------
    EventValidationError
        If ``raw`` is not an object with exactly the nine wire fields, or any
        field has the wrong type or an out-of-range value.

    """
    if not isinstance(raw, dict):
        raise EventValidationError.not_object(type(raw).__name__)
    fields = typ.cast("dict[str, typ.Any]", raw)
    _check_key_set(fields)
    values = {
        rule.attribute: rule.check(rule.wire_name, fields[rule.wire_name])
        for rule in _RULES
    }
    return NormalizedEvent(**values)


def decode_event(data: bytes | str) -> NormalizedEvent:
    """Parse one JSON document and validate it as a wire event.

    Raises
    ------
    EventValidationError
        If ``data`` is not valid JSON or does not match the event schema.

    """
    try:
        raw = msgspec.json.decode(data)
    except msgspec.DecodeError as exc:
        raise EventValidationError.malformed(str(exc)) from exc
    return normalize_event(raw)


__all__ = ["decode_event", "normalize_event"]
