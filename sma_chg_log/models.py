"""Data types exchanged with the device API and produced for output."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

TIME_ZERO = datetime(1, 1, 1, tzinfo=timezone.utc)
TIME_MAX = datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

_TIMESTAMP_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})\Z"
)

# JSON key, attribute name and type of the scalar fields of a message.
_MESSAGE_FIELDS = (
    ("deviceId", "device_id", str),
    ("deviceName", "device_name", str),
    ("deviceSerialnumber", "device_serialnumber", str),
    ("escalationLevel", "escalation_level", int),
    ("eventTypeExtension", "event_type_extension", str),
    ("marker", "marker", str),
    ("messageGroupTag", "message_group_tag", int),
    ("messageId", "message_id", int),
    ("messageTag", "message_tag", int),
    ("traceLevel", "trace_level", str),
)
_ARGUMENT_FIELDS = (
    ("displayType", "display_type", str),
    ("position", "position", int),
    ("unitTag", "unit_tag", int),
    ("value", "value", str),
)


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def parse_timestamp(text: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime (sub-microsecond digits dropped)."""
    match = _TIMESTAMP_RE.match(text) if isinstance(text, str) else None
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {text!r}")
    *parts, fraction, zone = match.groups()
    tz = timezone.utc
    if zone.upper() != "Z":
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(offset if zone[0] == "+" else -offset)
    try:
        return datetime(*map(int, parts), int((fraction or "").ljust(6, "0")[:6]), tzinfo=tz)
    except ValueError as exc:
        raise ValueError(f"invalid RFC 3339 timestamp: {text!r}") from exc


def _format_timestamp(value: datetime) -> str:
    """Render a datetime as RFC 3339 with trailing fraction zeros trimmed."""
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if len(text) < 19:
        text = text.zfill(19)
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    hours, minutes = divmod(abs(minutes), 60)
    return f"{text}{'+' if offset > timedelta(0) else '-'}{hours:02d}:{minutes:02d}"


def _read_fields(data: dict, fields: tuple) -> dict[str, Any]:
    values = {}
    for key, attr, kind in fields:
        value = data.get(key)
        if value is None:
            value = kind()
        elif not isinstance(value, kind) or isinstance(value, bool):
            raise ValueError(f"field {key!r} must be of type {kind.__name__}")
        values[attr] = value
    return values


def _write_fields(obj: Any, fields: tuple) -> dict[str, Any]:
    return {key: getattr(obj, attr) for key, attr, _ in fields}


@dataclass
class SearchRequest:
    """Body of a message search request."""

    component_id: str
    marker: str = ""
    offset: int = 0
    start: str | None = None
    until: str | None = None
    message_group_tags: list[int] = field(default_factory=list)
    trace_levels: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "componentId": self.component_id,
            "from": self.start,
            "until": self.until,
            "messageGroupTags": list(self.message_group_tags),
            "traceLevels": list(self.trace_levels),
            "marker": self.marker,
            "offset": self.offset,
        }


@dataclass
class MessageArgument:
    """One argument of a device message."""

    display_type: str = ""
    position: int = 0
    unit_tag: int = 0
    value: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def to_json(self) -> str:
        """Return the argument as received, or built from its fields."""
        return _dumps(self.raw or _write_fields(self, _ARGUMENT_FIELDS))


@dataclass
class Message:
    """A single customer message reported by the device."""

    arguments: list[MessageArgument] = field(default_factory=list)
    device_id: str = ""
    device_name: str = ""
    device_serialnumber: str = ""
    escalation_level: int = 0
    event_type_extension: str = ""
    marker: str = ""
    message_group_tag: int = 0
    message_id: int = 0
    message_tag: int = 0
    timestamp: datetime = TIME_ZERO
    trace_level: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def to_json(self) -> str:
        """Return the message as received, or built from its fields."""
        if self.raw:
            return _dumps(self.raw)
        data = {"arguments": [json.loads(arg.to_json()) for arg in self.arguments]}
        data.update(_write_fields(self, _MESSAGE_FIELDS))
        data["timestamp"] = _format_timestamp(self.timestamp)
        return _dumps(data)


@dataclass
class ChargingSession:
    """A charging stop event paired with its start event, if any."""

    charger_name: str = ""
    consumption: float = 0.0
    end: datetime = TIME_ZERO
    authentication: str = ""
    start: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping; empty authentication and start are left out."""
        consumption = self.consumption
        if isinstance(consumption, float) and consumption.is_integer():
            consumption = int(consumption)
        result: dict[str, Any] = {"chargerName": self.charger_name, "consumption": consumption}
        if self.authentication:
            result["authentication"] = self.authentication
        if self.start is not None:
            result["start"] = _format_timestamp(self.start)
        result["end"] = _format_timestamp(self.end)
        return result


@dataclass
class Options:
    """Date range a session report covers."""

    start: datetime | None = None
    until: datetime | None = None


def argument_from_dict(data: Any) -> MessageArgument:
    """Build a message argument from its decoded JSON object."""
    if not isinstance(data, dict):
        raise ValueError("message argument must be a JSON object")
    return MessageArgument(**_read_fields(data, _ARGUMENT_FIELDS), raw=data)


def message_from_dict(data: Any) -> Message:
    """Build a message from its decoded JSON object."""
    if not isinstance(data, dict):
        raise ValueError("message must be a JSON object")
    raw_arguments = data.get("arguments") or []
    if not isinstance(raw_arguments, list):
        raise ValueError("field 'arguments' must be a list")
    raw_timestamp = data.get("timestamp")
    return Message(
        arguments=[argument_from_dict(item) for item in raw_arguments],
        timestamp=TIME_ZERO if raw_timestamp is None else parse_timestamp(raw_timestamp),
        raw=data,
        **_read_fields(data, _MESSAGE_FIELDS),
    )


def messages_from_json(payload: str | bytes) -> list[Message]:
    """Decode a JSON array of messages; a JSON null yields an empty list."""
    data = json.loads(payload)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("expected a JSON array of messages")
    return [message_from_dict(item) for item in data]