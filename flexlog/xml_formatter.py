"""Formats log messages and structured data as XML documents."""

from __future__ import annotations

import os
import socket
import sys
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from .level import level_to_string
from .message import Message
from .sink import StructuredFormatter

_INT64_MAX = 2**63 - 1
_INT64_MIN = -(2**63)

_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    "'": "&apos;",
    '"': "&quot;",
}


@dataclass
class XmlFormatterOptions:
    """Settings shared by structured formatters plus the XML-specific ones."""

    application_name: str = ""
    environment: str = ""
    hostname: str = ""
    include_timestamp: bool = True
    include_level: bool = True
    include_message: bool = True
    include_logger: bool = True
    include_source_location: bool = True
    include_process_info: bool = False
    include_thread_id: bool = False
    include_null_values: bool = True
    pretty_print: bool = False
    sort_keys: bool = False
    indent_size: int = 2
    tags: list[str] = field(default_factory=list)
    user_data: dict[str, str] = field(default_factory=dict)

    use_attributes: bool = False
    root_element_name: str = "log"
    field_element_name: str = "field"
    include_xml_declaration: bool = True
    use_cdata: bool = True


def _escape(text: str) -> str:
    out = []
    for c in text:
        if c in _ESCAPES:
            out.append(_ESCAPES[c])
        elif ord(c) < 32 and c not in "\t\n\r":
            out.append(f"&#{ord(c)};")
        else:
            out.append(c)
    return "".join(out)


def wrap_in_cdata(text: str) -> str:
    """Wrap ``text`` in a CDATA section, splitting any ``]]>`` it contains."""
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc)
    return f"{ts:%Y-%m-%dT%H:%M:%S}.{ts.microsecond // 1000:03d}Z"


def _is_simple(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool))


def _array_type(items: Sequence[Any]) -> str:
    if not items:
        return "string"
    if all(isinstance(i, bool) for i in items):
        return "bool"
    if all(isinstance(i, int) and not isinstance(i, bool) for i in items):
        return "int"
    if all(isinstance(i, (int, float)) and not isinstance(i, bool) for i in items):
        return "double"
    if all(isinstance(i, str) for i in items):
        return "string"
    raise TypeError("array values must all be strings, integers, floats or booleans")


class XmlFormatter(StructuredFormatter):
    """Renders messages as XML elements, optionally with attributes and CDATA."""

    def __init__(self, options: XmlFormatterOptions | None = None) -> None:
        self._source_options = replace(options) if options is not None else XmlFormatterOptions()
        self._options = replace(self._source_options)
        if not self._options.hostname:
            self._options.hostname = socket.gethostname()

    @property
    def options(self) -> XmlFormatterOptions:
        return self._options

    def content_type(self) -> str:
        return "application/xml"

    def clone(self) -> "XmlFormatter":
        return XmlFormatter(self._source_options)

    def escape_xml(self, text: str) -> str:
        """Escape markup characters and control characters in ``text``."""
        return _escape(text)

    @property
    def _nl(self) -> str:
        return "\n" if self._options.pretty_print else ""

    def _indent(self, level: int) -> str:
        if not self._options.pretty_print:
            return ""
        return " " * (self._options.indent_size * level)

    def _text(self, text: str) -> str:
        return wrap_in_cdata(text) if self._options.use_cdata else _escape(text)

    def format_structured_data(self, data: Mapping[str, Any]) -> str:
        if not data:
            return "<data/>"

        opts = self._options
        nl = self._nl
        element = opts.field_element_name
        keys = sorted(data) if opts.sort_keys else list(data)

        out = ["<data>", nl]
        for key in keys:
            value = data[key]
            if value is None and not opts.include_null_values:
                continue
            if opts.use_attributes and _is_simple(value):
                out += [
                    self._indent(1),
                    f'<{element} name="{key}" value="{self._attribute_value(value)}"/>',
                    nl,
                ]
            else:
                out += [self._indent(1), f'<{element} name="{key}">', nl]
                self._write_value(out, value, 2)
                out += [self._indent(1), f"</{element}>", nl]
        out.append("</data>")
        return "".join(out)

    def format_message(self, message: Message) -> str:
        opts = self._options
        nl = self._nl
        ind1 = self._indent(1)
        ind2 = self._indent(2)
        timestamp = _format_timestamp(message.timestamp)
        level_name = level_to_string(message.level)
        level_value = int(message.level)

        out: list[str] = []
        if opts.include_xml_declaration:
            out += ['<?xml version="1.0" encoding="UTF-8"?>', nl]

        out.append(f"<{opts.root_element_name}")
        if opts.use_attributes:
            if opts.include_timestamp:
                out.append(f' timestamp="{timestamp}"')
            if opts.include_level:
                out.append(f' level="{level_name}"')
                out.append(f' level_value="{level_value}"')
            out.append(f' application="{opts.application_name}"')
            out.append(f' environment="{opts.environment}"')
            out.append(f' host="{opts.hostname}"')
        out += [">", nl]

        if not opts.use_attributes or not opts.include_timestamp:
            out += [ind1, f"<timestamp>{timestamp}</timestamp>", nl]

        if opts.include_message:
            out += [ind1, "<message>", self._text(message.message), "</message>", nl]

        if opts.include_logger:
            out += [ind1, "<logger>", _escape(message.name), "</logger>", nl]

        if not opts.use_attributes or not opts.include_level:
            out += [ind1, f"<level>{level_name}</level>", nl]
            out += [ind1, f"<level_value>{level_value}</level_value>", nl]

        if not opts.use_attributes:
            out += [ind1, f"<application>{opts.application_name}</application>", nl]
            out += [ind1, f"<environment>{opts.environment}</environment>", nl]
            out += [ind1, f"<host>{opts.hostname}</host>", nl]

        if opts.include_source_location:
            location = message.source_location
            out += [ind1, "<location>", nl]
            out += [ind2, f"<file>{os.path.basename(location.file_name)}</file>", nl]
            out += [ind2, f"<line>{location.line}</line>", nl]
            out += [ind2, f"<function>{location.function_name}</function>", nl]
            out += [ind1, "</location>", nl]

        if opts.include_process_info:
            process_name = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else ""
            out += [ind1, "<process>", nl]
            out += [ind2, f"<id>{os.getpid()}</id>", nl]
            out += [ind2, f"<name>{process_name}</name>", nl]
            out += [ind1, "</process>", nl]

        if opts.include_thread_id:
            out += [ind1, f"<thread_id>{threading.get_ident()}</thread_id>", nl]

        if opts.tags:
            out += [ind1, "<tags>", nl]
            for tag in opts.tags:
                out += [ind2, f"<tag>{tag}</tag>", nl]
            out += [ind1, "</tags>", nl]

        if message.structured_data:
            out += [ind1, self.format_structured_data(message.structured_data), nl]

        if opts.user_data:
            out += [ind1, "<user_data>", nl]
            for key, value in opts.user_data.items():
                out += [ind2, f"<{key}>{value}</{key}>", nl]
            out += [ind1, "</user_data>", nl]

        out.append(f"</{opts.root_element_name}>")
        return "".join(out)

    @staticmethod
    def _attribute_value(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, str):
            return _escape(value)
        if isinstance(value, float):
            return format(value, "g")
        return str(value)

    def _write_value(self, out: list[str], value: Any, level: int) -> None:
        nl = self._nl
        indent = self._indent(level)

        if value is None:
            out += [indent, "<null/>", nl]
        elif isinstance(value, bool):
            out += [indent, f"<bool>{'true' if value else 'false'}</bool>", nl]
        elif isinstance(value, int):
            if value > _INT64_MAX:
                out += [indent, f"<uint>{value}</uint>", nl]
            elif value < _INT64_MIN:
                raise OverflowError(f"integer {value} does not fit in 64 bits")
            else:
                out += [indent, f"<int>{value}</int>", nl]
        elif isinstance(value, float):
            out += [indent, f"<double>{value:.6f}</double>", nl]
        elif isinstance(value, str):
            out += [indent, "<string>", self._text(value), "</string>", nl]
        elif isinstance(value, datetime):
            out += [indent, f"<datetime>{_format_timestamp(value)}</datetime>", nl]
        elif isinstance(value, (list, tuple)):
            self._write_array(out, value, level)
        else:
            raise TypeError(f"unsupported structured value type: {type(value).__name__}")

    def _write_array(self, out: list[str], items: Sequence[Any], level: int) -> None:
        nl = self._nl
        indent = self._indent(level)
        item_indent = self._indent(level + 1)
        kind = _array_type(items)

        out += [indent, f'<array type="{kind}">', nl]
        for item in items:
            if kind == "string":
                text = self._text(item)
            elif kind == "bool":
                text = "true" if item else "false"
            elif kind == "double":
                text = f"{float(item):.6f}"
            else:
                text = str(item)
            out += [item_indent, "<item>", text, "</item>", nl]
        out += [indent, "</array>", nl]