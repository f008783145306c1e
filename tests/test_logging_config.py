import json
import logging
import sys
from datetime import datetime, timezone

from concierge.logging_config import JSONFormatter, bind_logger, get_logger


def _record(msg="hello", context=None, exc_info=None):
    record = logging.LogRecord("concierge.test", logging.INFO, __file__, 1, msg, None, exc_info)
    if context is not None:
        record.context = context
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "concierge.test"
        assert data["message"] == "hello"
        assert "timestamp" in data
        assert "context" not in data

    def test_context_and_non_ascii(self):
        line = JSONFormatter().format(_record("olá", context={"wa_id": "5511999"}))

        assert "olá" in line
        assert json.loads(line)["context"] == {"wa_id": "5511999"}

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record(exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad" in data["exception"]

    def test_source_only_for_warnings(self):
        info = json.loads(JSONFormatter().format(_record()))
        warning = _record()
        warning.levelno, warning.levelname = logging.WARNING, "WARNING"

        assert "source" not in info
        assert json.loads(JSONFormatter().format(warning))["source"].startswith("test_logging_config:")

    def test_unserializable_context_values(self):
        line = JSONFormatter().format(_record(context={"at": datetime(2026, 10, 14, tzinfo=timezone.utc)}))

        assert json.loads(line)["context"]["at"].startswith("2026-10-14")


class TestLoggers:
    def test_namespace(self):
        assert get_logger("webhook").name == "concierge.webhook"

    def test_bound_context_merged(self, caplog):
        log = bind_logger("inbound_service", wa_id="5511999", delivery_id=None)

        with caplog.at_level(logging.INFO, logger="concierge.inbound_service"):
            log.info("Handled", context={"outcome": "replied"})

        assert caplog.records[-1].context == {"wa_id": "5511999", "outcome": "replied"}
