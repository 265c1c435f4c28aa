"""JSON and CSV writers for messages and charging sessions."""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import TextIO, Union

from .models import ChargingSession, Message, Options
from .pdf import PdfFormatter

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}
_HTML_RE = re.compile("[<>&\u2028\u2029]")

CSV_HEADER = ("record date", "charger name", "authentication", "start", "end", "consumption")


def _escape_html(text: str) -> str:
    return _HTML_RE.sub(lambda match: _HTML_ESCAPES[match.group()], text)


def _rfc3339(value: datetime) -> str:
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    offset = value.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds()) // 60
    sign = "+" if minutes >= 0 else "-"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


def _csv_field(value: str) -> str:
    needs_quotes = value != "" and (
        value == "\\."
        or any(char in value for char in ',"\r\n')
        or value[0].isspace()
    )
    if not needs_quotes:
        return value
    return '"' + value.replace('"', '""') + '"'


def _flush_stream(stream) -> None:
    flush = getattr(stream, "flush", None)
    if flush is not None:
        flush()


class JsonMessageFormatter:
    """Writes each message as one line of JSON, as received from the device."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def write_message(self, message: Message) -> None:
        self.stream.write(_escape_html(message.to_json()) + "\n")

    def flush(self) -> None:
        """Flush the underlying stream."""
        _flush_stream(self.stream)


class JsonSessionFormatter:
    """Writes each charging session as one line of JSON."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def write_header(self) -> None:
        """JSON output has no header row; flush anything already written before the sessions."""
        _flush_stream(self.stream)

    def write_session(self, session: ChargingSession) -> None:
        text = json.dumps(session.to_dict(), separators=(",", ":"), ensure_ascii=False)
        self.stream.write(_escape_html(text) + "\n")

    def flush(self) -> None:
        """Flush the underlying stream."""
        _flush_stream(self.stream)


class CsvFormatter:
    """Writes charging sessions as comma separated rows."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def _write_row(self, fields: tuple[str, ...] | list[str]) -> None:
        self.stream.write(",".join(_csv_field(value) for value in fields) + "\n")

    def write_header(self) -> None:
        self._write_row(CSV_HEADER)

    def write_session(self, session: ChargingSession) -> None:
        end = session.end
        self._write_row([
            f"{end.year:04d}-{end.month:02d}-{end.day:02d}",
            session.charger_name,
            session.authentication,
            _rfc3339(session.start) if session.start is not None else "",
            _rfc3339(end),
            f"{session.consumption:.2f}",
        ])

    def flush(self) -> None:
        _flush_stream(self.stream)


SessionFormatter = Union[JsonSessionFormatter, CsvFormatter, PdfFormatter]


def new_message_formatter(stream: TextIO) -> JsonMessageFormatter:
    """Return the formatter for raw messages (JSON only)."""
    return JsonMessageFormatter(stream)


def new_session_formatter(fmt: str, stream, options: Options | None = None) -> SessionFormatter:
    """Return the session formatter for "csv" or "pdf"; anything else gives JSON."""
    if fmt == "csv":
        return CsvFormatter(stream)
    if fmt == "pdf":
        return PdfFormatter(stream, options if options is not None else Options())
    return JsonSessionFormatter(stream)