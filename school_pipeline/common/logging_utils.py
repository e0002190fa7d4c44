"""Central logging utilities for the School Data Pipeline.

Goals:
- Single place to configure logging for the CLI, the harvest run and tests.
- Structured fields: pass them via ``extra={...}``; the console formatters render
  them as ``key=value`` pairs, the JSON formatter as top-level keys.
- Respect environment variables:
    LOG_LEVEL=INFO|DEBUG|... (default: INFO, or the ``level`` argument)
    LOG_FORMAT=console|json (default: console)
    LOG_NO_COLOR=1 to disable color output even on console format.
    LOG_TIMEZONE=utc|local (default: local)

Usage:
    from school_pipeline.common.logging_utils import configure_logging, get_logger
    configure_logging(service="school-details")  # idempotent
    logger = get_logger(__name__)
    logger.info("processing school", extra={"url": url, "index": 3})

Calling configure_logging() multiple times is safe – subsequent calls become no-ops unless
`force=True` is passed.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_CONFIG_LOCK = threading.Lock()
_ALREADY_CONFIGURED = False

# Attributes every LogRecord carries; anything else was passed through ``extra``.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: v
        for k, v in record.__dict__.items()
        if k not in _STANDARD_ATTRS and not k.startswith("_")
    }


def _format_kv(fields: Dict[str, Any]) -> str:
    parts = []
    for k, v in fields.items():
        text = str(v)
        if " " in text or not text:
            text = json.dumps(text, ensure_ascii=False)
        parts.append(f"{k}={text}")
    return " ".join(parts)


# --------------------------------------------------------------------------------------
# Formatters
# --------------------------------------------------------------------------------------

class KeyValueFormatter(logging.Formatter):
    """Plain console format with structured fields appended as key=value."""

    def __init__(self, tz_local: bool):
        super().__init__()
        self.tz_local = tz_local

    def _timestamp(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if self.tz_local:
            ts = ts.astimezone()
        return ts.strftime("%Y-%m-%d %H:%M:%S")

    def _base(self, record: logging.LogRecord) -> str:
        base = f"{self._timestamp(record)} | {record.levelname:<8} | {record.name} | {record.getMessage()}"
        fields = _extra_fields(record)
        if fields:
            base += " | " + _format_kv(fields)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        return self._base(record)


class ColorFormatter(KeyValueFormatter):
    COLORS = {
        "DEBUG": "\x1b[38;5;245m",  # grey
        "INFO": "\x1b[38;5;39m",  # blue
        "WARNING": "\x1b[38;5;214m",  # orange
        "ERROR": "\x1b[38;5;196m",  # red
        "CRITICAL": "\x1b[48;5;196m\x1b[38;5;231m",  # white on red
    }
    RESET = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        base = self._base(record)
        level_color = self.COLORS.get(record.levelname, "")
        if level_color:
            return f"{level_color}{base}{self.RESET}"
        return base


class JsonFormatter(logging.Formatter):
    def __init__(self, tz_local: bool):
        super().__init__()
        self.tz_local = tz_local

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if self.tz_local:
            ts = ts.astimezone()
        payload: Dict[str, Any] = {
            "ts": ts.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for k, v in _extra_fields(record).items():
            if k in payload:
                continue
            try:
                json.dumps({k: v})  # type check
                payload[k] = v
            except (TypeError, ValueError):
                payload[k] = repr(v)
        return json.dumps(payload, ensure_ascii=False)


# --------------------------------------------------------------------------------------
# Public API
# --------------------------------------------------------------------------------------

def configure_logging(
    service: str | None = None, *, level: str | None = None, force: bool = False
) -> None:
    """Configure root logging once.

    Parameters
    ----------
    service: Optional logical service/app name (added as 'service' field to every record
        emitted through get_logger()).
    level: Fallback level when LOG_LEVEL is not set (e.g. settings.log_level).
    force: If True, reconfigure even if already configured.
    """
    global _ALREADY_CONFIGURED
    with _CONFIG_LOCK:
        if _ALREADY_CONFIGURED and not force:
            return

        log_level = os.getenv("LOG_LEVEL", level or "INFO").upper()
        log_format = os.getenv("LOG_FORMAT", "console").lower()
        tz_mode = os.getenv("LOG_TIMEZONE", "local").lower()
        no_color = os.getenv("LOG_NO_COLOR") == "1"

        tz_local = tz_mode != "utc"

        # Clear existing handlers if reconfiguring
        root = logging.getLogger()
        for h in list(root.handlers):
            root.removeHandler(h)

        if log_format == "json":
            formatter: logging.Formatter = JsonFormatter(tz_local=tz_local)
        elif sys.stderr.isatty() and not no_color:
            formatter = ColorFormatter(tz_local=tz_local)
        else:
            formatter = KeyValueFormatter(tz_local=tz_local)

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root.addHandler(handler)
        root.setLevel(getattr(logging, log_level, logging.INFO))

        # Playwright and urllib3 are chatty at DEBUG
        for noisy in ("urllib3", "asyncio"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        _ServiceLoggerAdapter.BASE_SERVICE = service

        _ALREADY_CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    base = logging.getLogger(name)
    # If a service context exists, wrap in adapter; else return raw logger
    if _ServiceLoggerAdapter.BASE_SERVICE:
        return _ServiceLoggerAdapter(base, {"service": _ServiceLoggerAdapter.BASE_SERVICE})  # type: ignore[return-value]
    return base


class _ServiceLoggerAdapter(logging.LoggerAdapter):
    # Set by configure_logging if service specified
    BASE_SERVICE: Optional[str] = None

    def process(self, msg: Any, kwargs: Dict[str, Any]):  # noqa: D401
        extra = dict(kwargs.get("extra") or {})
        if "service" not in extra and self.extra.get("service"):
            extra["service"] = self.extra["service"]
        kwargs["extra"] = extra
        return msg, kwargs


__all__ = [
    "configure_logging",
    "get_logger",
]
