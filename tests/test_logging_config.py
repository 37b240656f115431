"""
Tests for the log formatters and setup_logging().
"""

import json
import logging
import sys

import pytest

from resource_sync.logging_config import JSONFormatter, TextFormatter, setup_logging


def _record(msg="Pull required? True", **extra):
    record = logging.LogRecord(
        name="resource_sync.engine.monitor",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_formatter_includes_tick_and_reference():
    line = JSONFormatter().format(_record(tick_id="T-1", reference="abc"))

    entry = json.loads(line)
    assert entry["level"] == "INFO"
    assert entry["logger"] == "resource_sync.engine.monitor"
    assert entry["tick_id"] == "T-1"
    assert entry["reference"] == "abc"


def test_json_formatter_without_extras():
    entry = json.loads(JSONFormatter().format(_record()))

    assert "tick_id" not in entry
    assert "reference" not in entry


def test_json_formatter_skips_unknown_reference():
    """Failures before the local reference is read carry reference=None."""
    entry = json.loads(JSONFormatter().format(_record(reference=None)))

    assert "reference" not in entry


def test_text_formatter_short_module_name():
    line = TextFormatter().format(_record())

    assert "[monitor]" in line
    assert line.endswith("Pull required? True")


def test_text_formatter_tags_extras():
    line = TextFormatter().format(_record(tick_id="T-1", reference="abc"))

    assert line.endswith("Pull required? True (tick=T-1, ref=abc)")


def test_text_formatter_appends_traceback():
    try:
        raise ValueError("bad data")
    except ValueError:
        record = _record()
        record.exc_info = sys.exc_info()

    line = TextFormatter().format(record)

    assert "Traceback" in line
    assert "ValueError: bad data" in line


def test_setup_logging_installs_one_handler(restore_root):
    setup_logging(level="debug", format_type="json")
    setup_logging(level="warning", format_type="json")

    assert len(restore_root.handlers) == 1
    assert isinstance(restore_root.handlers[0].formatter, JSONFormatter)
    assert restore_root.level == logging.WARNING
    assert logging.getLogger("pymongo").level == logging.WARNING


def test_setup_logging_unknown_level_falls_back_to_info(restore_root):
    setup_logging(level="chatty", format_type="text")

    assert restore_root.level == logging.INFO
    assert isinstance(restore_root.handlers[0].formatter, TextFormatter)
