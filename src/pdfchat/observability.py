"""
Structured logging for pdfchat.
Events are rendered as JSON lines by structlog and written through the stdlib
root logger, so third-party loggers (httpx, uvicorn) land in the same file.
"""
from __future__ import annotations

import logging
from pathlib import Path

import structlog

# Field names whose values never reach the log file.
SECRET_FIELDS = frozenset({"credential", "api_key", "signature", "authorization"})
_MASK = "***"

_CONFIGURED = False


def mask_secrets(_logger, _method_name: str, event_dict: dict) -> dict:
    for key in list(event_dict):
        if key.lower() in SECRET_FIELDS and event_dict[key]:
            event_dict[key] = _MASK
    return event_dict


def configure_logging(log_path: str | Path, level: str = "INFO"):
    """Configures process-wide structured logging to a file. Later calls are no-ops."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    level_value = logging.getLevelName(str(level).upper())
    root = logging.getLogger()
    root.setLevel(level_value if isinstance(level_value, int) else logging.INFO)
    root.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            mask_secrets,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def get_logger(name: str):
    return structlog.get_logger(name)
