"""Sink that writes to standard output and standard error."""

from __future__ import annotations

import os
import sys
import threading
from dataclasses import dataclass, replace
from typing import Mapping, Optional, TextIO

from .level import Level
from .message import Message
from .sink import Formatter, Sink


@dataclass
class TerminalCapabilities:
    """What the attached terminal is able to display."""

    supports_color: bool = False
    supports_rgb: bool = False
    supports_unicode: bool = False
    color_depth: int = 0  # 0=none, 1=4bit, 2=8bit, 3=24bit
    terminal_type: str = ""


@dataclass
class ConsoleSinkOptions:
    unicode_enabled: bool = True
    max_message_length: int = 16384


def _is_terminal(stream: Optional[TextIO]) -> bool:
    standard = (sys.stdout, sys.stderr, sys.__stdout__, sys.__stderr__)
    if stream is None or not any(stream is s for s in standard):
        return False
    try:
        return bool(stream.isatty())
    except (AttributeError, ValueError):
        return False


def detect_terminal_capabilities(
    stream: Optional[TextIO] = None, environ: Optional[Mapping[str, str]] = None
) -> TerminalCapabilities:
    """Work out colour and Unicode support from ``stream`` and the environment."""
    env = os.environ if environ is None else environ
    caps = TerminalCapabilities()

    force_color = env.get("FORCE_COLOR", "")
    no_color = env.get("NO_COLOR", "")
    color_term = env.get("COLORTERM", "")
    term = env.get("TERM", "")

    if force_color and force_color != "0":
        caps.supports_color = True
    elif no_color:
        caps.supports_color = False
    elif sys.platform == "win32":
        is_vscode = env.get("TERM_PROGRAM", "") == "vscode"
        is_windows_terminal = bool(env.get("WT_SESSION", ""))
        is_mintty = bool(term) and ("xterm" in term or "mintty" in term)
        if _is_terminal(stream):
            caps.supports_color = True
            caps.color_depth = 3 if (is_vscode or is_windows_terminal or is_mintty) else 1
        else:
            caps.supports_color = (
                is_vscode or is_windows_terminal or is_mintty or (bool(term) and term != "dumb")
            )
    else:
        caps.supports_color = _is_terminal(stream) and bool(term) and term != "dumb"

    caps.terminal_type = term

    if caps.supports_color:
        if color_term in ("truecolor", "24bit"):
            caps.supports_rgb = True
            caps.color_depth = 3
        elif "256color" in term:
            caps.color_depth = 2

        lang = env.get("LANG", "")
        lc_all = env.get("LC_ALL", "")
        caps.supports_unicode = any(
            marker in value for value in (lang, lc_all) for marker in ("UTF-8", "utf8")
        )

    return caps


def sanitize_text(text: str, preserve_newlines: bool = True) -> str:
    """Drop control characters, keeping tabs and (optionally) newlines."""

    def keep(c: str) -> bool:
        if c == "\n" and preserve_newlines:
            return True
        return c == "\t" or not (ord(c) < 32 or ord(c) == 127)

    return "".join(c for c in text if keep(c))


class ConsoleSink(Sink):
    """Writes messages to stdout; error and fatal messages go to stderr."""

    def __init__(
        self,
        options: Optional[ConsoleSinkOptions] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._options = replace(options) if options is not None else ConsoleSinkOptions()
        self._environ = environ
        self._output_stream: Optional[TextIO] = None
        self._error_stream: Optional[TextIO] = None
        self._lock = threading.Lock()
        self._error_count = 0
        self._capabilities = detect_terminal_capabilities(self.output_stream, environ)

    @property
    def options(self) -> ConsoleSinkOptions:
        return self._options

    @property
    def output_stream(self) -> TextIO:
        return self._output_stream if self._output_stream is not None else sys.stdout

    @property
    def error_stream(self) -> TextIO:
        return self._error_stream if self._error_stream is not None else sys.stderr

    @property
    def terminal_capabilities(self) -> TerminalCapabilities:
        return self._capabilities

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def has_errors(self) -> bool:
        return self._error_count > 0

    def reset_errors(self) -> None:
        self._error_count = 0

    def output(self, msg: Message, format: Formatter) -> None:
        try:
            text = format(msg)
            if not text:
                return

            limit = self._options.max_message_length
            if len(text) > limit:
                cut = limit - 4 if limit >= 4 else len(text)
                text = text[:cut] + "..."

            text = self._sanitize_for_terminal(text)
            if text and not text.endswith("\n"):
                text += "\n"

            target = self.error_stream if msg.level >= Level.ERROR else self.output_stream
            with self._lock:
                self._write(target, text)
        except Exception as exc:
            self._error_count += 1
            try:
                sys.stderr.write(f"ConsoleSink error: {exc}\n")
            except Exception:
                pass

    def flush(self) -> None:
        self.output_stream.flush()
        self.error_stream.flush()

    def set_output_stream(self, stream: TextIO) -> None:
        with self._lock:
            self._output_stream = stream
            self._capabilities = detect_terminal_capabilities(stream, self._environ)

    def set_error_stream(self, stream: TextIO) -> None:
        with self._lock:
            self._error_stream = stream

    def force_terminal_capabilities(self, capabilities: TerminalCapabilities) -> None:
        with self._lock:
            self._capabilities = replace(capabilities)

    def _sanitize_for_terminal(self, text: str) -> str:
        if self._capabilities.supports_unicode and self._options.unicode_enabled:
            return sanitize_text(text)
        kept = []
        for c in text:
            code = ord(c)
            if 32 <= code < 127 or c in "\n\r\t":
                kept.append(c)
            elif code >= 128:
                kept.append("?")
        return "".join(kept)

    def _write(self, stream: TextIO, text: str) -> None:
        try:
            stream.write(text)
            stream.flush()
        except Exception:
            self._error_count += 1