"""Log message records and reference-counted handles to them."""

from __future__ import annotations

import copy
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from .level import Level


class MessageState(Enum):
    """Lifecycle state of a pooled message."""

    POOLED = "pooled"
    ACTIVE = "active"
    RELEASING = "releasing"


@dataclass(frozen=True)
class SourceLocation:
    """Where in the calling code a message was logged."""

    file_name: str = ""
    line: int = 0
    function_name: str = ""
    column: int = 0


def capture_location(depth: int = 1) -> SourceLocation:
    """Return the location of the caller ``depth`` frames above this one."""
    frame = sys._getframe(depth + 1)
    code = frame.f_code
    return SourceLocation(code.co_filename, frame.f_lineno, code.co_name)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class Message:
    """A single log record as handed to sinks."""

    name: str = ""
    level: Level = Level.INFO
    message: str = ""
    timestamp: datetime = field(default_factory=_now)
    source_location: SourceLocation = field(default_factory=SourceLocation)
    logger: Any = None
    structured_data: dict[str, Any] = field(default_factory=dict)
    ref_count: int = 0
    state: MessageState = MessageState.POOLED
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add_ref(self) -> None:
        with self._lock:
            self.ref_count += 1

    def release_ref(self) -> bool:
        """Drop one reference; return True if it was the last one."""
        with self._lock:
            self.ref_count -= 1
            return self.ref_count == 0

    def is_active(self) -> bool:
        return self.state is MessageState.ACTIVE


def _return_to_pool(message: Message) -> None:
    message.state = MessageState.POOLED


class MessageRef:
    """Counted handle on a :class:`Message`.

    When the last handle is reset while the message is releasing,
    ``finalize`` is called with the message.
    """

    def __init__(
        self,
        message: Optional[Message] = None,
        finalize: Optional[Callable[[Message], None]] = None,
    ) -> None:
        self._message = message
        self._finalize = finalize or _return_to_pool
        if message is not None:
            message.add_ref()

    def __copy__(self) -> "MessageRef":
        return MessageRef(self._message, self._finalize)

    def copy(self) -> "MessageRef":
        return copy.copy(self)

    def __bool__(self) -> bool:
        return self._message is not None and self._message.is_active()

    def __enter__(self) -> Optional[Message]:
        return self._message

    def __exit__(self, *exc_info: object) -> None:
        self.reset()

    def __del__(self) -> None:
        try:
            self.reset()
        except Exception:
            pass

    def reset(self) -> None:
        message = self._message
        if message is None:
            return
        self._message = None
        if message.release_ref() and message.state is MessageState.RELEASING:
            self._finalize(message)

    def get(self) -> Optional[Message]:
        return self._message