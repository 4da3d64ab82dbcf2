"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- format_response and print_mapping in JSON and plain modes
- The logging handler
- Global instance management
"""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from vimeonet.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("vimeonet.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("vimeonet.output._is_tty", lambda: True)


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager().format == OutputFormat.RICH

    def test_no_color_forces_plain_on_tty(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_format_wins(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_enabled_by_default(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


class TestDataOutput:
    def test_json_response(self, capsys):
        OutputManager(format=OutputFormat.JSON).format_response({"name": "Ada", "id": 1})

        out = capsys.readouterr()
        assert json.loads(out.out) == {"name": "Ada", "id": 1}
        assert out.err == ""

    def test_plain_dict(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).format_response({"a": 1, "b": None})

        assert capsys.readouterr().out == "a\t1\nb\t\n"

    def test_plain_list_of_dicts(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.format_response([{"uri": "/videos/1", "tags": ["x"]}, "loose"])

        assert capsys.readouterr().out == '/videos/1\t["x"]\nloose\n'

    def test_bytes_are_decoded(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).format_response(b"hello")

        assert capsys.readouterr().out == "hello\n"

    def test_print_mapping_json(self, capsys):
        OutputManager(format=OutputFormat.JSON).print_mapping({"enabled": True, "ttl": None})

        assert json.loads(capsys.readouterr().out) == {"enabled": True, "ttl": None}

    def test_print_mapping_plain(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_mapping({"entries": 3})

        assert capsys.readouterr().out == "entries\t3\n"


class TestDiagnostics:
    def test_messages_go_to_stderr(self, capsys):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.info("hello")
        mgr.warning("careful")
        mgr.error("broken")

        out = capsys.readouterr()
        assert out.out == ""
        assert out.err == "hello\nWarning: careful\nError: broken\n"

    def test_quiet_suppresses_info_not_errors(self, capsys):
        mgr = OutputManager(no_color=True, quiet=True)
        mgr.info("hidden")
        mgr.success("hidden")
        mgr.error("shown")

        assert capsys.readouterr().err == "Error: shown\n"

    def test_debug_requires_verbose(self, capsys):
        OutputManager(no_color=True).debug("hidden")
        OutputManager(no_color=True, verbose=True).debug("shown")

        assert capsys.readouterr().err == "[debug] shown\n"


class TestLoggingHandler:
    def test_plain_handler_without_color(self):
        handler = OutputManager(no_color=True).logging_handler()

        assert type(handler) is logging.StreamHandler
        assert handler.level == logging.WARNING

    def test_rich_handler_with_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm")
        handler = OutputManager(verbose=True).logging_handler()

        assert isinstance(handler, RichHandler)
        assert handler.level == logging.DEBUG


class TestGlobalInstance:
    def test_lazy_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_and_reset(self):
        mgr = OutputManager(quiet=True)
        set_output(mgr)
        assert get_output() is mgr

        reset_output()
        assert get_output() is not mgr
