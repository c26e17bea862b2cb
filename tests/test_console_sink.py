import io

from flexlog.console_sink import (
    ConsoleSink,
    ConsoleSinkOptions,
    TerminalCapabilities,
    detect_terminal_capabilities,
    sanitize_text,
)
from flexlog.level import Level
from flexlog.message import Message


def plain(msg):
    return msg.message


def make_sink(options=None, environ=None):
    sink = ConsoleSink(options, environ=environ or {})
    out, err = io.StringIO(), io.StringIO()
    sink.set_output_stream(out)
    sink.set_error_stream(err)
    return sink, out, err


def test_output_appends_newline_to_stdout():
    sink, out, err = make_sink()
    sink.output(Message(message="hello", level=Level.INFO), plain)
    assert out.getvalue() == "hello\n"
    assert err.getvalue() == ""


def test_existing_newline_is_not_doubled():
    sink, out, _ = make_sink()
    sink.output(Message(message="line\n"), plain)
    assert out.getvalue() == "line\n"


def test_error_levels_go_to_error_stream():
    sink, out, err = make_sink()
    sink.output(Message(message="bad", level=Level.ERROR), plain)
    sink.output(Message(message="worse", level=Level.FATAL), plain)
    sink.output(Message(message="meh", level=Level.WARN), plain)
    assert err.getvalue().splitlines() == ["bad", "worse"]
    assert out.getvalue().splitlines() == ["meh"]


def test_empty_formatted_message_writes_nothing():
    sink, out, err = make_sink()
    sink.output(Message(message="ignored"), lambda m: "")
    assert out.getvalue() == ""
    assert err.getvalue() == ""


def test_long_message_is_truncated():
    options = ConsoleSinkOptions(max_message_length=10)
    sink, out, _ = make_sink(options)
    text = "x" * 50
    sink.output(Message(message=text), plain)
    written = out.getvalue().rstrip("\n")
    assert written.endswith("...")
    assert len(written) < options.max_message_length
    assert text.startswith(written[:-3])


def test_non_unicode_terminal_replaces_non_ascii():
    sink, out, _ = make_sink()
    sink.force_terminal_capabilities(TerminalCapabilities(supports_unicode=False))
    sink.output(Message(message="caf\u00e9\x07"), plain)
    assert out.getvalue() == "caf?\n"


def test_unicode_terminal_keeps_non_ascii_and_drops_controls():
    sink, out, _ = make_sink()
    sink.force_terminal_capabilities(TerminalCapabilities(supports_unicode=True))
    sink.output(Message(message="caf\u00e9\x01\tend"), plain)
    assert out.getvalue() == "caf\u00e9\tend\n"


def test_unicode_disabled_in_options_forces_ascii():
    sink, out, _ = make_sink(ConsoleSinkOptions(unicode_enabled=False))
    sink.force_terminal_capabilities(TerminalCapabilities(supports_unicode=True))
    sink.output(Message(message="\u00e9"), plain)
    assert out.getvalue().strip() == "?"


def test_format_failure_counts_error(capsys):
    sink, out, _ = make_sink()

    def boom(msg):
        raise RuntimeError("broken")

    sink.output(Message(message="x"), boom)
    assert sink.error_count == 1
    assert sink.has_errors
    assert "ConsoleSink error: broken" in capsys.readouterr().err
    assert out.getvalue() == ""
    sink.reset_errors()
    assert sink.error_count == 0
    assert not sink.has_errors


def test_sanitize_text_keeps_tabs_and_newlines():
    text = "a\tb\nc"
    assert sanitize_text(text) == text
    assert "\n" not in sanitize_text(text, preserve_newlines=False)
    assert sanitize_text("\x00\x1b\x7f") == ""


def test_force_color_environment():
    caps = detect_terminal_capabilities(io.StringIO(), {"FORCE_COLOR": "1", "COLORTERM": "truecolor"})
    assert caps.supports_color
    assert caps.supports_rgb
    assert caps.color_depth == 3


def test_force_color_zero_and_no_color_disable_color():
    assert not detect_terminal_capabilities(io.StringIO(), {"FORCE_COLOR": "0"}).supports_color
    caps = detect_terminal_capabilities(io.StringIO(), {"NO_COLOR": "1", "TERM": "xterm"})
    assert not caps.supports_color
    assert caps.terminal_type == "xterm"


def test_256_color_terminal_and_unicode_locale():
    env = {"FORCE_COLOR": "1", "TERM": "xterm-256color", "LANG": "en_US.UTF-8"}
    caps = detect_terminal_capabilities(io.StringIO(), env)
    assert caps.color_depth == 2
    assert caps.supports_unicode
    assert not caps.supports_rgb


def test_non_terminal_stream_has_no_color():
    caps = detect_terminal_capabilities(io.StringIO(), {"TERM": "xterm", "LANG": "en_US.UTF-8"})
    assert not caps.supports_color
    assert not caps.supports_unicode


def test_set_output_stream_redetects_capabilities():
    sink = ConsoleSink(environ={"FORCE_COLOR": "1", "TERM": "xterm-256color"})
    sink.force_terminal_capabilities(TerminalCapabilities())
    sink.set_output_stream(io.StringIO())
    assert sink.terminal_capabilities.supports_color
    assert sink.terminal_capabilities.terminal_type == "xterm-256color"


def test_flush_flushes_both_streams():
    class Recording(io.StringIO):
        flushed = 0

        def flush(self):
            self.flushed += 1
            super().flush()

    sink = ConsoleSink(environ={})
    out, err = Recording(), Recording()
    sink.set_output_stream(out)
    sink.set_error_stream(err)
    sink.flush()
    assert out.flushed == 1
    assert err.flushed == 1