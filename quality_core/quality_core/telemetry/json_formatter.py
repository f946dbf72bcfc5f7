"""JSON log formatter for log aggregation.

Emits each log record as a single-line JSON object so that cluster log
collectors can index the fields without regex parsing.

Activate by setting ``STRUCTURED_LOGGING=true``.

Output schema per line::

    {
        "timestamp": "2025-05-15T12:34:56.789012+00:00",
        "level": "INFO",
        "logger": "quality_core.runner.report_runner",
        "message": "Generating monthly re_data report",
        "category": "credential error",   // present on fatal errors
        "exc_info": "Traceback ..."        // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Error category attached by the CLI via ``extra={"category": ...}``.
        category = getattr(record, "category", None)
        if category:
            payload["category"] = category

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)
