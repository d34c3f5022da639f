from __future__ import annotations

import json
import logging
from logging import LogRecord
from typing import Any, Dict

from loguru import logger
from opentelemetry import trace


# Attributes every LogRecord carries; anything else was passed via ``extra=``.
_STANDARD_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Libraries whose INFO chatter drowns out ledger events.
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "celery.worker.strategy")


class InterceptHandler(logging.Handler):
    """Forward stdlib records (uvicorn, sqlalchemy, celery) into Loguru."""

    def emit(self, record: LogRecord) -> None:  # pragma: no cover - bridging glue
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        try:
            message = record.getMessage()
        except (TypeError, ValueError):  # pragma: no cover - malformed format strings
            message = str(record.msg)

        extra = {key: value for key, value in vars(record).items() if key not in _STANDARD_RECORD_ATTRS}
        bound = logger.bind(**extra) if extra else logger
        bound.opt(depth=6, exception=record.exc_info).log(level, message.replace("{", "{{").replace("}", "}}"))


def _render(message: "logger.Message", metadata: Dict[str, Any]) -> None:
    record = message.record
    payload: Dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name.lower(),
        "message": record["message"],
        "logger": record["name"],
        **metadata,
    }

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        payload["trace_id"] = f"{span_context.trace_id:032x}"
        payload["span_id"] = f"{span_context.span_id:016x}"

    payload.update(record["extra"])

    if record["exception"] is not None:
        payload["exception"] = repr(record["exception"].value)

    print(json.dumps(payload, default=str), flush=True)


def configure_logging(*, service_name: str, environment: str, version: str, level: str | int = "INFO") -> None:
    """Route Loguru and stdlib logging to one JSON line per event on stdout.

    Ledger code logs with keyword context (``logger.info("...", customer_id=...)``);
    those keywords end up as top-level JSON fields next to the trace ids.
    """

    logger.remove()
    metadata = {"service": service_name, "environment": environment, "version": version}
    logger.add(lambda message: _render(message, metadata), level=level, backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
