"""Tests for roundtable/diagnostics.py."""

import logging

from roundtable.diagnostics import LoggingReporter, NullReporter, build_reporter


def test_build_reporter_follows_dev_mode():
    assert isinstance(build_reporter(True), LoggingReporter)
    assert isinstance(build_reporter(False), NullReporter)


def test_logging_reporter_writes_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="roundtable.diagnostics"):
        LoggingReporter().report("https://router.test/chat/completions", "POST", {"model": "a/m1"}, "502")
    assert any("POST https://router.test/chat/completions" in m for m in caplog.messages)


def test_null_reporter_is_silent(caplog):
    with caplog.at_level(logging.DEBUG):
        NullReporter().report("u", "GET", None, "boom")
    assert caplog.messages == []
