"""
Logging Setup
=============
Structured logging for the bot process.

Library modules log through ``structlog.get_logger(__name__)``. This module
routes structlog into the stdlib root logger so both end up on one stdout
handler, either as JSON lines or a readable console format.

Usage:
    from rollbot_core.logging_setup import setup_logging

    setup_logging(service_name="rollbot", level="INFO")
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

service_name_var: ContextVar[str] = ContextVar("service_name", default="unknown")

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def _exception_fields(exc_info) -> Dict[str, Any]:
    exc_type, exc_value, _ = exc_info
    return {
        "type": exc_type.__name__ if exc_type else None,
        "message": str(exc_value) if exc_value else None,
        "traceback": traceback.format_exception(*exc_info),
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, tagged with the bot's service name."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": service_name_var.get(),
            "source": {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            },
        }
        if record.exc_info:
            payload["exception"] = _exception_fields(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    service_name: str = "rollbot",
    level: str = "INFO",
    json_output: bool = True,
) -> logging.Logger:
    """
    Configure stdlib and structlog logging for the bot.

    Replaces any handlers already on the root logger.

    Args:
        service_name: Name reported in every JSON record
        level: Level name; unknown names fall back to INFO
        json_output: JSON lines when True, console format otherwise

    Returns:
        The configured root logger
    """
    service_name_var.set(service_name)
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(CONSOLE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).info(
        "logging_configured", service=service_name, level=logging.getLevelName(numeric_level)
    )
    return root


def mask_jid(jid: Optional[str]) -> str:
    """Mask an identity for log output, keeping the domain part."""
    if not jid:
        return "<none>"
    user, sep, domain = jid.partition("@")
    masked = user[:4] + "****" if len(user) > 4 else "****"
    return f"{masked}{sep}{domain}"
