# sma_chg_log

A command-line tool that reads the customer message log of an SMA ennexOS
device, picks out the "charging started" (message id 9812) and "charging
completed" (message id 9813) events of its EV chargers, and writes them out
either as raw events or as paired charging sessions.

Sessions can be written as JSON (one object per line), CSV, or a PDF report
with a summary and a table of all sessions.

## Installation

```
pip install .
```

This installs the `sma_chg_log` command. The only runtime dependency is
`requests`.

## Settings

Every setting can be given as a flag or as an environment variable named
`SMA_` followed by the option name in upper case, with `-` replaced by `_`.
A flag wins over the environment variable. The options are accepted both
before and after the sub-command.

| Flag                | Environment variable | Default | Meaning                                          |
|---------------------|----------------------|---------|--------------------------------------------------|
| `-H`, `--host`      | `SMA_HOST`           |         | Host name of the device (required)               |
| `-u`, `--username`  | `SMA_USERNAME`       |         | User name (required)                             |
| `-p`, `--password`  | `SMA_PASSWORD`       |         | Password (required)                              |
| `-m`, `--month`     | `SMA_MONTH`          |         | Only include events of this month, as `YYYY-MM`  |
| `-f`, `--format`    | `SMA_FORMAT`         | `json`  | Output format: `json`, `csv` or `pdf`            |
| `-o`, `--output`    | `SMA_OUTPUT`         | `-`     | Output file; `-` writes to standard output       |
| `-l`, `--log-level` | `SMA_LOG_LEVEL`      | `info`  | `trace`, `debug`, `info`, `warn` or `error`      |

```
export SMA_HOST=charger.example.com
export SMA_USERNAME=installer
export SMA_PASSWORD=password
```

If the host is given without `http://` or `https://`, `https://` is put in
front. The device's self-signed certificate is accepted without verification.
The month is taken as a calendar month in UTC. Missing or invalid settings
are all reported together.

Log output goes to standard error. An unknown log level falls back to `info`
with a warning. At `trace` level every HTTP request and response is logged,
with the `Authorization` header redacted.

## Charging sessions

```
sma_chg_log sessions --month 2024-05 --format csv --output may.csv
```

Running `sma_chg_log` without a sub-command also writes sessions, but the
`-a` option below is only available on `sma_chg_log sessions`.

Each "charging completed" event becomes one session. If the event directly
before it in time is a "charging started" event, that event supplies the
start time and the authentication value (for example an RFID card id). The
consumption is the event's kWh value. Sessions are listed newest first.

Authentication values can be renamed in the output with
`-a`/`--map-authentication old:new`, which may be given several times.
Entries without a colon are ignored.

```
sma_chg_log sessions -a 04A1B2C3:"Company car" -a 04D5E6F7:Guest --format pdf -o report.pdf
```

Output formats:

- `json` – one JSON object per session and line, with `chargerName`,
  `consumption`, `authentication` (left out when empty), `start` (left out
  when there is no start event) and `end`.
- `csv` – a header row `record date,charger name,authentication,start,end,consumption`,
  then one row per session; times are RFC 3339, consumption has two decimals.
- `pdf` – an A4 "CHARGING HISTORY OVERVIEW" with the creation date, the
  overview period, the number of records, the total consumption and a table
  of all sessions, with page numbers in the footer. With `--month` the period
  is that month; otherwise it runs from the day of the oldest session to the
  day of the newest, never past today. Text is set in the standard Helvetica
  font; characters outside the Windows-1252 set appear as `?`.

## Raw events

```
sma_chg_log events --month 2024-05 > events.jsonl
```

Writes every charging started/completed message exactly as the device
delivered it, one JSON document per line. Only the `json` format is
supported.

## Use from Python

The pieces behind the command can be used directly:

- `sma_chg_log.client.Client(base_url, username, password)` logs in with a
  bearer token (renewed once on a 401 answer); `fetch_all_messages(start, until)`
  yields batches of `Message` objects, newest first, with
  `start <= timestamp < until`. Failures raise `ClientError`.
- `sma_chg_log.cli.filter_messages` and `pair_charging_sessions` turn
  messages into `ChargingSession` objects.
- `sma_chg_log.formatters.new_session_formatter(fmt, stream, options)` returns
  a JSON, CSV or PDF writer with `write_header`, `write_session` and `flush`.

## Exit status

The command exits with status 0 on success and 255 when the configuration is
invalid or the device cannot be queried; the reason is printed to standard
error as `Error: ...`.