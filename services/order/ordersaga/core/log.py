"""
Logging setup for the order service.

Everything logs through ``logging.getLogger(__name__)`` under the ``ordersaga``
namespace. ``setup_logging`` picks a plain or JSON line format; the JSON form
carries the saga identifiers passed via ``extra=``.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from ordersaga.core.config import settings

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

class JsonFormatter(logging.Formatter):
    EXTRA_FIELDS = ("order_id", "user_id", "product_id", "quantity", "status", "task", "error_kind")

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)

def setup_logging(level: str | None = None, json_lines: bool | None = None) -> None:
    level = (level or settings.LOG_LEVEL).upper()
    json_lines = settings.LOG_JSON if json_lines is None else json_lines

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if json_lines else logging.Formatter(PLAIN_FORMAT))

    root = logging.getLogger("ordersaga")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # kafka-python is chatty at INFO
    logging.getLogger("kafka").setLevel(logging.WARNING)
