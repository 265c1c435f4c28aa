"""Command line entry point: fetch charging events and report sessions."""

from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TextIO

from .client import Client, ClientError
from .formatters import new_message_formatter, new_session_formatter
from .logconfig import init_logging
from .models import TIME_MAX, ChargingSession, Message, MessageArgument, Options

MESSAGE_ID_CHARGING_COMPLETED = 9813
MESSAGE_ID_CHARGING_STARTED = 9812

_ENV_PREFIX = "SMA_"
_MONTH_RE = re.compile(r"(\d{4})-(\d{2})\Z")

_log = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the command line settings are missing or invalid."""


def _parse_month(text: str) -> datetime:
    match = _MONTH_RE.match(text)
    if match is None:
        raise ValueError(text)
    year, month = int(match.group(1)), int(match.group(2))
    return datetime(year, month, 1, tzinfo=timezone.utc)


def _next_month(value: datetime) -> datetime:
    if value.month == 12:
        return value.replace(year=value.year + 1, month=1)
    return value.replace(month=value.month + 1)


@dataclass
class Config:
    """Settings shared by all commands."""

    host: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    format: str = "json"
    output: str = "-"
    month: str = ""
    start: datetime | None = None
    until: datetime | None = None
    writer: TextIO | None = field(default=None, repr=False)

    def validate(self) -> None:
        """Check the settings, derive the date range and open the output.

        All problems found are reported together in one ConfigError.
        """
        errors: list[str] = []

        if not self.host:
            errors.append("host is required (use --host flag or SMA_HOST environment variable)")
        if not self.host.startswith(("http://", "https://")):
            self.host = "https://" + self.host

        if not self.username:
            errors.append(
                "username is required (use --username flag or SMA_USERNAME environment variable)"
            )
        if not self.password:
            errors.append(
                "password is required (use --password flag or SMA_PASSWORD environment variable)"
            )

        if self.month:
            try:
                start = _parse_month(self.month)
            except ValueError:
                errors.append("month must be in format YYYY-MM")
            else:
                self.start = start
                self.until = _next_month(start)
        else:
            self.until = TIME_MAX

        if self.output == "-":
            self.writer = sys.stdout
        else:
            try:
                self.writer = open(self.output, "w", encoding="utf-8", newline="")
            except OSError as exc:
                errors.append(str(exc))

        if errors:
            self.close()
            raise ConfigError("\n".join(errors))

    def close(self) -> None:
        """Close the output unless it is one of the standard streams."""
        writer, self.writer = self.writer, None
        if writer is not None and writer is not sys.stdout and writer is not sys.stderr:
            writer.close()


def filter_messages(messages: Iterable[Message]) -> list[Message]:
    """Keep only charging started and charging completed messages."""
    wanted = (MESSAGE_ID_CHARGING_COMPLETED, MESSAGE_ID_CHARGING_STARTED)
    return [msg for msg in messages if msg.message_id in wanted]


def _parse_float(text: str) -> float | None:
    if not text or text.strip() != text or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def find_consumption(arguments: Iterable[MessageArgument]) -> float:
    """Return the energy value of a charging completed message, or 0."""
    for arg in arguments:
        if arg.unit_tag == 8 and arg.display_type == "Fix2":
            value = _parse_float(arg.value)
            if value is not None:
                return value
    return 0.0


def find_authentication(arguments: Iterable[MessageArgument]) -> str:
    """Return the authentication of a charging started message, or ""."""
    for arg in arguments:
        if arg.display_type == "String" and arg.position == 0:
            return arg.value
    return ""


def parse_map_authentication(raw: Iterable[str]) -> dict[str, str]:
    """Turn "old:new" entries into a mapping; entries without a colon are ignored."""
    result: dict[str, str] = {}
    for entry in raw:
        old, sep, new = entry.partition(":")
        if sep:
            result[old] = new
    return result


def pair_charging_sessions(
    messages: Iterable[Message], auth_map: dict[str, str]
) -> list[ChargingSession]:
    """Pair each completed event with the started event right after it.

    Messages run newest to oldest, so a start follows its stop.
    """
    sessions: list[ChargingSession] = []
    remaining = iter(messages)
    current = next(remaining, None)

    while current is not None:
        following = next(remaining, None)
        if current.message_id != MESSAGE_ID_CHARGING_COMPLETED:
            current = following
            continue

        session = ChargingSession(
            charger_name=current.device_name,
            consumption=find_consumption(current.arguments),
            end=current.timestamp,
        )
        if following is not None and following.message_id == MESSAGE_ID_CHARGING_STARTED:
            session.authentication = find_authentication(following.arguments)
            session.start = following.timestamp
            following = next(remaining, None)

        if session.authentication in auth_map:
            session.authentication = auth_map[session.authentication]

        sessions.append(session)
        current = following

    return sessions


def to_date(value: datetime) -> datetime:
    """Return midnight of the same day, keeping the time zone."""
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _client(config: Config) -> Client:
    return Client(config.host, config.username, config.password)


def run_events(config: Config) -> None:
    """Write the raw charging start and stop messages as JSON lines."""
    if config.format not in ("", "json"):
        raise ConfigError("only 'json' format supported for events command")

    formatter = new_message_formatter(config.writer)
    try:
        for batch in _client(config).fetch_all_messages(config.start, config.until):
            for msg in filter_messages(batch):
                formatter.write_message(msg)
    except OSError as exc:
        _log.debug("stopped writing messages: %s", exc)
    formatter.flush()


def run_sessions(config: Config, auth_map: dict[str, str]) -> None:
    """Write paired charging sessions as JSON, CSV or PDF."""
    if config.format not in ("", "json", "csv", "pdf"):
        raise ConfigError("format must be 'json', 'csv', or 'pdf'")

    _log.debug("authentication mapping map=%s", auth_map)

    collected: list[Message] = []
    for batch in _client(config).fetch_all_messages(config.start, config.until):
        collected.extend(filter_messages(batch))

    sessions = pair_charging_sessions(collected, auth_map)

    options = Options(start=config.start, until=config.until)
    if sessions and options.start is None:
        options.start = to_date(sessions[-1].end)
    if sessions and (options.until is None or options.until == TIME_MAX):
        options.until = to_date(sessions[0].end) + timedelta(days=1)
    now = datetime.now().astimezone()
    if options.until is None or now < options.until:
        options.until = to_date(now) + timedelta(days=1)

    formatter = new_session_formatter(config.format, config.writer, options)
    formatter.write_header()
    for session in sessions:
        formatter.write_session(session)
    formatter.flush()


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False, argument_default=argparse.SUPPRESS)
    common.add_argument("-H", "--host", help="Hostname of the SMA device")
    common.add_argument("-u", "--username", help="Username for authentication")
    common.add_argument("-p", "--password", help="Password for authentication")
    common.add_argument(
        "-l", "--log-level", help="Log level: trace, debug, info, warn, error (default: info)"
    )
    common.add_argument("-m", "--month", help="Filter by month (format: YYYY-MM)")
    common.add_argument("-f", "--format", help="Output format: json, csv, or pdf (default: json)")
    common.add_argument("-o", "--output", help="Output file path (use '-' for stdout, the default)")
    return common


def _build_parser() -> argparse.ArgumentParser:
    common = _common_options()
    parser = argparse.ArgumentParser(
        prog="sma_chg_log",
        description="Fetch customer messages from an SMA device and output charging events.",
        parents=[common],
    )
    commands = parser.add_subparsers(dest="command")
    commands.add_parser(
        "events",
        parents=[common],
        help="Write raw charging start/stop events as JSON",
        description="Fetch and output raw charging event messages in JSON format.",
    )
    sessions = commands.add_parser(
        "sessions",
        parents=[common],
        help="Write charging sessions",
        description="Fetch charging events and output paired sessions as JSON, CSV or PDF.",
    )
    sessions.add_argument(
        "-a",
        "--map-authentication",
        action="append",
        default=[],
        help="Map authentication values (format: old:new, may be repeated)",
    )
    return parser


def _setting(args: argparse.Namespace, name: str, default: str) -> str:
    value = getattr(args, name, None)
    if value is not None:
        return value
    env = os.environ.get(_ENV_PREFIX + name.upper())
    return env if env else default


def main(argv: list[str] | None = None) -> int:
    """Run the command line tool and return its exit status."""
    args = _build_parser().parse_args(argv)
    init_logging(_setting(args, "log_level", "info"))

    config = Config(
        host=_setting(args, "host", ""),
        username=_setting(args, "username", ""),
        password=_setting(args, "password", ""),
        format=_setting(args, "format", "json"),
        output=_setting(args, "output", "-"),
        month=_setting(args, "month", ""),
    )

    try:
        try:
            config.validate()
            if args.command == "events":
                run_events(config)
            else:
                raw = getattr(args, "map_authentication", None) or []
                run_sessions(config, parse_map_authentication(raw))
        finally:
            config.close()
    except (ConfigError, ClientError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 255
    return 0