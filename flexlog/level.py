"""Severity levels and output format identifiers."""

from __future__ import annotations

from enum import Enum, IntEnum

LEVEL_STRINGS: tuple[str, ...] = (
    "TRACE",
    "DEBUG",
    "INFO",
    "WARN",
    "ERROR",
    "FATAL",
    "OFF",
)


class Level(IntEnum):
    """Log severity, ordered from most to least verbose."""

    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    FATAL = 5
    OFF = 6

    def __str__(self) -> str:
        return level_to_string(self)


class LogFormat(Enum):
    """Output format a logger renders its messages in."""

    PATTERN = 0
    CLOUDWATCH = 1
    ELASTICSEARCH = 2
    GELF = 3
    JSON = 4
    LOGSTASH = 5
    OPENTELEMETRY = 6
    SPLUNK = 7
    XML = 8


def level_to_string(level: Level | int) -> str:
    """Return the upper-case name used for ``level`` in log output."""
    return LEVEL_STRINGS[int(Level(level))]