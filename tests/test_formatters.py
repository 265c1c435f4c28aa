import csv
import io
import json
from datetime import datetime, timedelta, timezone

from sma_chg_log.formatters import (
    CSV_HEADER,
    CsvFormatter,
    JsonMessageFormatter,
    JsonSessionFormatter,
    new_message_formatter,
    new_session_formatter,
)
from sma_chg_log.models import ChargingSession, Options, message_from_dict, parse_timestamp

RAW_MESSAGE = {
    "arguments": [{"displayType": "Fix2", "position": 1, "unitTag": 8, "value": "7.50"}],
    "deviceId": "device-0001",
    "deviceName": "Wallbox",
    "deviceSerialnumber": "SN-000000",
    "escalationLevel": 0,
    "eventTypeExtension": "",
    "marker": "m1",
    "messageGroupTag": 1,
    "messageId": 9813,
    "messageTag": 2,
    "timestamp": "2024-03-15T18:30:00Z",
    "traceLevel": "info",
    "extra": {"kept": True},
}


def _session(start=True, tz=timezone.utc, name="Wallbox", auth="card"):
    end = datetime(2024, 3, 15, 18, 30, tzinfo=tz)
    return ChargingSession(
        charger_name=name,
        consumption=7.5,
        end=end,
        authentication=auth,
        start=datetime(2024, 3, 15, 17, 0, tzinfo=tz) if start else None,
    )


def test_message_written_as_received():
    buffer = io.StringIO()
    formatter = JsonMessageFormatter(buffer)
    formatter.write_message(message_from_dict(RAW_MESSAGE))
    formatter.flush()
    text = buffer.getvalue()
    assert text.endswith("\n")
    assert text.count("\n") == 1
    assert json.loads(text) == RAW_MESSAGE


def test_message_html_characters_escaped():
    data = dict(RAW_MESSAGE, deviceName="A<B>&C")
    buffer = io.StringIO()
    new_message_formatter(buffer).write_message(message_from_dict(data))
    text = buffer.getvalue()
    assert "<" not in text and ">" not in text and "&" not in text
    assert "\\u003c" in text
    assert json.loads(text)["deviceName"] == "A<B>&C"


def test_json_session_round_trip():
    buffer = io.StringIO()
    formatter = JsonSessionFormatter(buffer)
    formatter.write_header()
    assert buffer.getvalue() == ""
    session = _session()
    formatter.write_session(session)
    formatter.flush()
    assert json.loads(buffer.getvalue()) == session.to_dict()


def test_json_session_omits_missing_start_and_auth():
    buffer = io.StringIO()
    JsonSessionFormatter(buffer).write_session(_session(start=False, auth=""))
    decoded = json.loads(buffer.getvalue())
    assert "start" not in decoded
    assert "authentication" not in decoded
    assert list(decoded) == ["chargerName", "consumption", "end"]


def test_csv_header():
    buffer = io.StringIO()
    CsvFormatter(buffer).write_header()
    assert buffer.getvalue() == "record date,charger name,authentication,start,end,consumption\n"


def test_csv_row():
    buffer = io.StringIO()
    formatter = CsvFormatter(buffer)
    formatter.write_session(_session())
    formatter.flush()
    assert buffer.getvalue() == (
        "2024-03-15,Wallbox,card,2024-03-15T17:00:00Z,2024-03-15T18:30:00Z,7.50\n"
    )


def test_csv_row_keeps_offset():
    tz = timezone(timedelta(hours=2))
    session = _session(tz=tz)
    buffer = io.StringIO()
    CsvFormatter(buffer).write_session(session)
    row = next(csv.reader(io.StringIO(buffer.getvalue())))
    assert parse_timestamp(row[3]) == session.start
    assert parse_timestamp(row[4]) == session.end
    assert parse_timestamp(row[4]).utcoffset() == timedelta(hours=2)


def test_csv_row_without_start():
    buffer = io.StringIO()
    CsvFormatter(buffer).write_session(_session(start=False))
    row = next(csv.reader(io.StringIO(buffer.getvalue())))
    assert row[3] == ""
    assert len(row) == len(CSV_HEADER)


def test_csv_quoting_round_trip():
    buffer = io.StringIO()
    formatter = CsvFormatter(buffer)
    formatter.write_session(_session(name='Box "A", left', auth=" spaced"))
    text = buffer.getvalue()
    assert '" spaced"' in text
    row = next(csv.reader(io.StringIO(text)))
    assert row[1] == 'Box "A", left'
    assert row[2] == " spaced"


def test_factory_csv():
    buffer = io.StringIO()
    formatter = new_session_formatter("csv", buffer, None)
    formatter.write_header()
    assert buffer.getvalue().split("\n")[0].split(",") == list(CSV_HEADER)


def test_factory_pdf():
    buffer = io.BytesIO()
    formatter = new_session_formatter("pdf", buffer, Options())
    formatter.write_header()
    formatter.write_session(_session())
    formatter.flush()
    assert buffer.getvalue().startswith(b"%PDF-")


def test_factory_defaults_to_json():
    for fmt in ("json", "", "other"):
        buffer = io.StringIO()
        formatter = new_session_formatter(fmt, buffer, None)
        formatter.write_header()
        formatter.write_session(_session())
        formatter.flush()
        assert json.loads(buffer.getvalue()) == _session().to_dict()