import logging

from content_worker.core.logger import TraceContextFilter, get_logger


def test_logger_is_configured_once():
    first = get_logger("content_worker.tests.logger")
    second = get_logger("content_worker.tests.logger")
    assert first is second
    assert len(first.handlers) == 1
    assert first.propagate is False


def test_level_follows_env(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")
    assert get_logger("content_worker.tests.logger_level").level == logging.WARNING


def test_invalid_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    assert get_logger("content_worker.tests.logger_bad_level").level == logging.INFO


def test_records_outside_a_span_get_placeholder_trace():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    assert TraceContextFilter().filter(record) is True
    assert record.trace_id == "-"
