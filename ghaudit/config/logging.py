# ghaudit/config/logging.py

import json
import logging
from datetime import datetime, timezone

from ghaudit.core.context import owner_ctx, run_id_ctx

LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Attributes every LogRecord has; anything else arrived through `extra=`.
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> dict:
    return {k: v for k, v in vars(record).items() if k not in _RESERVED}


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "run_id": run_id_ctx.get(),
            "owner": owner_ctx.get(),
        }
        log_record.update(_extra_fields(record))
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


class TextFormatter(logging.Formatter):
    """`time LEVEL logger message key=value ...` for terminals."""

    def format(self, record):
        fields = {"run_id": run_id_ctx.get(), "owner": owner_ctx.get()}
        fields.update(_extra_fields(record))
        pairs = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)
        line = (
            f"{datetime.now(timezone.utc).strftime('%H:%M:%S.%f')[:-3]} "
            f"{record.levelname:<7} {record.name} {record.getMessage()}"
        )
        if pairs:
            line = f"{line} {pairs}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(log_level: str, log_format: str = "text"):
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if log_format == "json" else TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(LOG_LEVELS.get(log_level.lower(), logging.INFO))
    root_logger.addHandler(handler)
