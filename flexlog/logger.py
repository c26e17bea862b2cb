"""Named logger that filters by level and hands messages to its sinks."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional

from .level import Level, LogFormat, level_to_string
from .message import Message, MessageState, SourceLocation, capture_location
from .sink import Formatter, Sink

Dispatcher = Callable[[Message, int], None]


def _pattern_format(message: Message) -> str:
    ts = message.timestamp
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    stamp = f"{ts:%Y-%m-%d %H:%M:%S}.{ts.microsecond // 1000:03d}"
    return f"[{stamp}] [{level_to_string(message.level)}] [{message.name}] {message.message}"


class Logger:
    """A named source of log messages with its own level, format and sinks.

    Accepted messages are passed to ``dispatcher`` together with a priority
    equal to their level; without a dispatcher they are delivered to the
    sinks immediately.
    """

    def __init__(
        self,
        name: str,
        level: Level = Level.TRACE,
        *,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self.name = name
        self._level = Level(level)
        self.dispatcher = dispatcher
        self._log_format = LogFormat.PATTERN
        self._format: Formatter = _pattern_format
        self._sinks: tuple[Sink, ...] = ()
        self._sinks_lock = threading.Lock()
        self._counter_lock = threading.Lock()
        self._dropped_messages = 0
        self._total_processed = 0

    # Level -----------------------------------------------------------------

    @property
    def level(self) -> Level:
        return self._level

    @level.setter
    def level(self, level: Level) -> None:
        self._level = Level(level)

    def is_level_enabled(self, level: Level) -> bool:
        return self._level <= level < Level.OFF

    # Format ----------------------------------------------------------------

    @property
    def format(self) -> Formatter:
        return self._format

    @format.setter
    def format(self, formatter: Formatter) -> None:
        self._format = formatter

    @property
    def log_format(self) -> LogFormat:
        return self._log_format

    @log_format.setter
    def log_format(self, log_format: LogFormat) -> None:
        log_format = LogFormat(log_format)
        self._log_format = log_format
        if log_format is LogFormat.XML:
            from .xml_formatter import XmlFormatter

            self._format = XmlFormatter().format_message
        else:
            self._format = _pattern_format

    # Counters --------------------------------------------------------------

    @property
    def dropped_message_count(self) -> int:
        return self._dropped_messages

    @property
    def total_processed(self) -> int:
        return self._total_processed

    def reset_dropped_message_count(self) -> None:
        with self._counter_lock:
            self._dropped_messages = 0

    # Logging ---------------------------------------------------------------

    def log(
        self,
        msg: str,
        level: Level,
        data: Optional[Mapping[str, Any]] = None,
        location: Optional[SourceLocation] = None,
    ) -> bool:
        """Log ``msg`` at ``level``; return whether it was accepted.

        Plain messages must be non-empty; messages with structured ``data``
        may have empty text.
        """
        level = Level(level)
        if data is None and not msg:
            return False
        if level < self._level or level >= Level.OFF:
            return False
        if location is None:
            location = capture_location(1)
        message = self._create_message(msg, level, data, location)
        return self._enqueue(message)

    def trace(self, msg: str, data: Optional[Mapping[str, Any]] = None) -> bool:
        return self.log(msg, Level.TRACE, data, capture_location(1))

    def debug(self, msg: str, data: Optional[Mapping[str, Any]] = None) -> bool:
        return self.log(msg, Level.DEBUG, data, capture_location(1))

    def info(self, msg: str, data: Optional[Mapping[str, Any]] = None) -> bool:
        return self.log(msg, Level.INFO, data, capture_location(1))

    def warn(self, msg: str, data: Optional[Mapping[str, Any]] = None) -> bool:
        return self.log(msg, Level.WARN, data, capture_location(1))

    def error(self, msg: str, data: Optional[Mapping[str, Any]] = None) -> bool:
        return self.log(msg, Level.ERROR, data, capture_location(1))

    def fatal(self, msg: str, data: Optional[Mapping[str, Any]] = None) -> bool:
        return self.log(msg, Level.FATAL, data, capture_location(1))

    # Sinks -----------------------------------------------------------------

    def register_sink(self, sink: Optional[Sink]) -> None:
        if sink is None:
            return
        with self._sinks_lock:
            self._sinks = self._sinks + (sink,)

    def register_sinks(self, sinks: Iterable[Sink]) -> None:
        added = tuple(sink for sink in sinks if sink is not None)
        if not added:
            return
        with self._sinks_lock:
            self._sinks = self._sinks + added

    def sinks(self) -> list[Sink]:
        return list(self._sinks)

    def flush(self) -> None:
        for sink in self._sinks:
            sink.flush()

    # Delivery --------------------------------------------------------------

    def process_message(self, message: Optional[Message]) -> None:
        """Write an active message to every sink and return it to the pool."""
        if message is None or not message.is_active():
            return
        formatter = self._format
        for sink in self._sinks:
            sink.output(message, formatter)
        message.state = MessageState.POOLED

    def _create_message(
        self,
        text: str,
        level: Level,
        data: Optional[Mapping[str, Any]],
        location: SourceLocation,
    ) -> Message:
        return Message(
            name=self.name,
            level=level,
            message=text,
            timestamp=datetime.now(timezone.utc),
            source_location=location,
            logger=self,
            structured_data=dict(data) if data is not None else {},
            state=MessageState.ACTIVE,
        )

    def _enqueue(self, message: Message) -> bool:
        dispatcher = self.dispatcher
        if dispatcher is None:
            self.process_message(message)
        else:
            try:
                dispatcher(message, int(message.level))
            except Exception:
                with self._counter_lock:
                    self._dropped_messages += 1
                return False
        with self._counter_lock:
            self._total_processed += 1
        return True