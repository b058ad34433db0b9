import atexit
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from queue import SimpleQueue
from typing import Optional

from cryptopulse.core.settings import settings

# Record attributes copied into JSON lines when a call site passes them via extra=
CONTEXT_FIELDS = ("user_id", "signal_id", "symbol", "order_id")

NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")

_listener: Optional[logging.handlers.QueueListener] = None


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log shippers (production)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class ColorFormatter(logging.Formatter):
    """Level-coloured console lines for local development."""

    RESET = "\x1b[0m"
    COLORS = {
        logging.DEBUG: "\x1b[38;20m",
        logging.INFO: "\x1b[32;20m",
        logging.WARNING: "\x1b[33;20m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }

    def __init__(self):
        super().__init__("%(asctime)s | %(name)-18s | %(levelname)-8s | %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, self.RESET)
        return f"{color}{super().format(record)}{self.RESET}"


def _stop_listener() -> None:
    global _listener
    if _listener is not None:
        _listener.stop()
        _listener = None


def setup_logging(level: Optional[str] = None, env: Optional[str] = None) -> None:
    """
    Routes every record through a queue so the event loop never blocks on stdout.
    Safe to call more than once; the previous listener is replaced.
    """
    global _listener

    env = env or settings.ENV
    root = logging.getLogger()
    root.setLevel(level or settings.LOG_LEVEL)

    _stop_listener()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    sink = logging.StreamHandler(sys.stdout)
    sink.setFormatter(JSONFormatter() if env == "production" else ColorFormatter())

    records: SimpleQueue = SimpleQueue()
    root.addHandler(logging.handlers.QueueHandler(records))
    _listener = logging.handlers.QueueListener(records, sink, respect_handler_level=True)
    _listener.start()

    atexit.unregister(_stop_listener)
    atexit.register(_stop_listener)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
