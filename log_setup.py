"""Logging configuration: one JSON object per line on stderr."""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Optional

DEFAULT_LEVEL = "WARNING"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: Optional[str] = None) -> None:
    """Route the root logger to stderr; ``level`` overrides ``LOG_LEVEL``.

    stdout is left to command output.
    """
    name = (level or os.getenv("LOG_LEVEL", DEFAULT_LEVEL)).upper()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(name)
