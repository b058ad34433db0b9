import json
import logging
import logging.handlers

from cryptopulse.core.logger import ColorFormatter, JSONFormatter, setup_logging


def _record(msg="🛡️ Limits saved", level=logging.INFO, **extra):
    record = logging.LogRecord("RiskPolicyStore", level, __file__, 10, msg, None, None)
    record.__dict__.update(extra)
    return record


def test_json_formatter_emits_one_object():
    payload = json.loads(JSONFormatter().format(_record()))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "RiskPolicyStore"
    assert payload["msg"] == "🛡️ Limits saved"
    assert "user_id" not in payload


def test_json_formatter_carries_context_fields():
    payload = json.loads(JSONFormatter().format(_record(user_id="alice", signal_id="sig-1")))
    assert payload["user_id"] == "alice"
    assert payload["signal_id"] == "sig-1"


def test_color_formatter_wraps_level_colour():
    line = ColorFormatter().format(_record(level=logging.ERROR))
    assert line.startswith(ColorFormatter.COLORS[logging.ERROR])
    assert line.endswith(ColorFormatter.RESET)
    assert "RiskPolicyStore" in line
    assert "ERROR" in line


def test_setup_logging_installs_single_queue_handler():
    setup_logging(level="DEBUG", env="production")
    setup_logging(level="INFO", env="development")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.handlers.QueueHandler)
    assert root.level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
