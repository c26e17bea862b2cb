"""Module-level logging functions that use the process-wide manager."""

from __future__ import annotations

import argparse
from typing import Any, Optional, Sequence

from .console_sink import ConsoleSink
from .level import Level, LogFormat
from .log_manager import LogManager
from .logger import Logger
from .message import capture_location


def register_logger(name: str) -> Logger:
    """Register ``name`` with the manager and return its logger."""
    return LogManager.instance().register_logger(name)


def get_logger(name: str) -> Logger:
    """Return the logger called ``name``, registering it if needed."""
    return LogManager.instance().register_logger(name)


def _emit(level: Level, message: str, args: tuple, logger_name: Optional[str]) -> bool:
    manager = LogManager.instance()
    if logger_name is None:
        target = manager.default_logger()
    else:
        target = manager.get_logger(logger_name)
    if not target.is_level_enabled(level):
        return False
    text = message.format(*args) if args else message
    # Depth 2 skips this helper and the public level function.
    return target.log(text, level, location=capture_location(2))


def trace(message: str, *args: Any, logger: Optional[str] = None) -> bool:
    """Log at TRACE; ``args`` fill ``{}`` fields in ``message``."""
    return _emit(Level.TRACE, message, args, logger)


def debug(message: str, *args: Any, logger: Optional[str] = None) -> bool:
    """Log at DEBUG; ``args`` fill ``{}`` fields in ``message``."""
    return _emit(Level.DEBUG, message, args, logger)


def info(message: str, *args: Any, logger: Optional[str] = None) -> bool:
    """Log at INFO; ``args`` fill ``{}`` fields in ``message``."""
    return _emit(Level.INFO, message, args, logger)


def warn(message: str, *args: Any, logger: Optional[str] = None) -> bool:
    """Log at WARN; ``args`` fill ``{}`` fields in ``message``."""
    return _emit(Level.WARN, message, args, logger)


def error(message: str, *args: Any, logger: Optional[str] = None) -> bool:
    """Log at ERROR; ``args`` fill ``{}`` fields in ``message``."""
    return _emit(Level.ERROR, message, args, logger)


def fatal(message: str, *args: Any, logger: Optional[str] = None) -> bool:
    """Log at FATAL; ``args`` fill ``{}`` fields in ``message``."""
    return _emit(Level.FATAL, message, args, logger)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Log a burst of messages through several loggers sharing one console sink."""
    parser = argparse.ArgumentParser(prog="flexlog", description="Logging demonstration.")
    parser.add_argument("--loggers", type=int, default=10, help="number of loggers")
    parser.add_argument("--messages", type=int, default=1000, help="messages per logger")
    options = parser.parse_args(argv)

    manager = LogManager.instance()
    manager.initialize()

    sink = ConsoleSink()
    loggers = []
    for index in range(options.loggers):
        logger = manager.register_logger(f"logger{index}")
        logger.level = Level.TRACE
        logger.log_format = LogFormat.SPLUNK
        logger.register_sink(sink)
        loggers.append(logger)

    for _ in range(options.messages):
        for logger in loggers:
            logger.info("This is an INFO message")

    manager.shutdown()
    return 0