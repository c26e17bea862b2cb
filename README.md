# flexlog

A small logging library built around named loggers, pluggable sinks and
structured data, with no dependencies outside the standard library.

## What is in it

- `flexlog.level`: `Level` (`TRACE`, `DEBUG`, `INFO`, `WARN`, `ERROR`,
  `FATAL`, `OFF`) is an `IntEnum`, so levels compare by severity.
  `level_to_string` gives the upper-case name. `LogFormat` lists the format
  identifiers a logger can be set to.
- `flexlog.message`: `Message` is a log record (name, level, text, UTC
  timestamp, `SourceLocation`, structured data). `MessageRef` is a counted
  handle on a message. `capture_location` records the caller's file, line and
  function.
- `flexlog.sink`: the abstract bases `Sink` (`output`, `flush`) and
  `StructuredFormatter`.
- `flexlog.logger`: `Logger` has a name, a minimum `level`, a formatter and a
  list of sinks. `log` and the helpers `trace` … `fatal` return `True` when a
  message is accepted. A plain message must be non-empty. A message with
  structured `data` may have empty text. Without a dispatcher, a logger
  delivers to its sinks at once.
- `flexlog.log_manager`: `LogManager.instance()` is the process-wide manager.
  After `initialize()` it holds the logger registry and a default logger
  (`"main"`, with a `ConsoleSink`). It also runs a pool of worker threads that
  deliver queued messages. It keeps the defaults for level and format.
  `shutdown()` waits for queued messages and then drops all loggers. A logger
  that is called while the manager is not running raises `LogManagerError`.
- `flexlog.console_sink`: `ConsoleSink` writes `ERROR` and `FATAL` to the
  error stream and everything else to the output stream. It works out what the
  terminal supports from the stream and from `FORCE_COLOR`, `NO_COLOR`, `TERM`,
  `COLORTERM`, `LANG` and `LC_ALL`. It cuts overlong messages
  (`ConsoleSinkOptions.max_message_length`). It strips control characters and,
  where Unicode is not supported, turns non-ASCII characters into `?`.
- `flexlog.file_sink`: `FileSink` appends to a file. It can create the
  directory and rotate by size, by time or by both. It renames rotated files
  with `rotation_pattern` (`{basename}`, `{timestamp}`, `{ext}`). It can
  gzip rotated files and keep at most `max_files` of them. It can also hold an
  advisory `.lock` file. It works as a context manager.
- `flexlog.xml_formatter`: `XmlFormatter` renders messages (`format_message`)
  and structured data (`format_structured_data`) as XML. Options include CDATA,
  attribute style, sorted keys, pretty printing, tags and user data.
- `flexlog.api`: module-level `trace`, `debug`, `info`, `warn`, `error` and
  `fatal`, which fill `{}` fields from positional arguments. The `logger=`
  keyword picks a named logger; without it the default logger is used.
  `register_logger` and `get_logger` are also here.

## Quick start

```python
from flexlog.api import error, info, register_logger
from flexlog.level import Level
from flexlog.log_manager import LogManager

manager = LogManager.instance()
manager.initialize()

info("service started on port {}", 8080)

db = register_logger("database")
db.level = Level.TRACE
db.debug("connection pool ready")

error("request failed: {}", "timeout", logger="database")

manager.shutdown()
```

Messages go out through the manager's worker threads. Call
`manager.flush()` to wait for them, or `manager.shutdown()` to wait and stop.

## Writing to a file

```python
from flexlog.file_sink import FileSink, FileSinkOptions, RotationRule
from flexlog.log_manager import LogManager

manager = LogManager.instance()
manager.initialize()

options = FileSinkOptions(
    file_path="logs/app.log",
    enable_rotation=True,
    rotation_rule=RotationRule.SIZE,
    max_file_size=1024 * 1024,
    max_files=5,
)
sink = FileSink(options)

logger = manager.get_logger("app")
logger.register_sink(sink)
logger.info("written to logs/app.log")

manager.shutdown()
sink.close()
```

A sink passed to `LogManager.register_sink` is added to every logger that is
registered after that call. Loggers that already exist do not get it.

## XML output

```python
from flexlog.level import LogFormat
from flexlog.xml_formatter import XmlFormatter, XmlFormatterOptions

formatter = XmlFormatter(XmlFormatterOptions(use_attributes=True, pretty_print=True))
print(formatter.content_type())   # application/xml
print(formatter.format_structured_data({"user": "alice", "retries": 3}))

# or let a logger render through it
logger.log_format = LogFormat.XML
```

## Limitations

- Only two layouts are rendered. `LogFormat.XML` uses `XmlFormatter`. Every
  other `LogFormat` value (`JSON`, `SPLUNK`, `GELF`, …) falls back to the plain
  pattern layout `[YYYY-MM-DD HH:MM:SS.mmm] [LEVEL] [name] message`.
- `ConsoleSink` detects colour support but does not colour its output.
- There are no network sinks.

## Demo

The package installs a demonstration command. By default it registers ten
loggers that share one console sink and sends 1000 messages from each one.
`--loggers` and `--messages` change those numbers:

```
flexlog-demo
flexlog-demo --loggers 2 --messages 5
```

## Running the tests

```
pip install .[test]
pytest
```