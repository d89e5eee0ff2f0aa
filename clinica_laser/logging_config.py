"""Configurazione logging strutturato (JSON su stderr)."""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import Settings

# campi extra riportati nel JSON se presenti sul record
EXTRA_FIELDS = ("procedure_id", "patient_id", "request_path", "zone_count")


class JSONFormatter(logging.Formatter):
    """
    Formatter JSON con campi costanti:
    - timestamp (ISO 8601, UTC)
    - level
    - logger
    - message
    - procedure_id / patient_id / request_path / zone_count (se passati in extra)
    - exception (se presente)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


def configure_logging(settings: Settings) -> None:
    """
    Configura il root logger leggendo LOG_LEVEL e LOG_FORMAT dai settings.
    Output su stderr.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    if settings.log_format == "json":
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    root_logger.addHandler(console_handler)
    root_logger.info("Logging configurato: level=%s, format=%s", settings.log_level, settings.log_format)
