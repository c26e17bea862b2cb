"""Base classes for log output targets and structured formatters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping

from .message import Message

Formatter = Callable[[Message], str]


class Sink(ABC):
    """Destination for formatted log messages."""

    @abstractmethod
    def output(self, msg: Message, format: Formatter) -> None:
        """Render ``msg`` with ``format`` and write it."""

    def flush(self) -> None:
        """Push buffered output to its destination."""


class StructuredFormatter(ABC):
    """Renders messages and structured data in a machine-readable format."""

    @abstractmethod
    def format_message(self, message: Message) -> str:
        """Format the whole message including its structured data."""

    @abstractmethod
    def format_structured_data(self, data: Mapping[str, Any]) -> str:
        """Format only the structured data."""

    @abstractmethod
    def content_type(self) -> str:
        """Return the MIME type of the formatted output."""

    @abstractmethod
    def clone(self) -> "StructuredFormatter":
        """Return an independent copy with the same configuration."""