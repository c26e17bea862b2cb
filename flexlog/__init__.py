"""Named loggers with level filtering, console and rotating file sinks, and XML formatting."""

__version__ = "0.1.0"

__all__ = [
    "level",
    "message",
    "sink",
    "console_sink",
    "file_sink",
    "xml_formatter",
    "logger",
    "log_manager",
    "api",
]