"""Structured JSON logging for the approval service."""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

_actor_id: ContextVar[Optional[str]] = ContextVar("log_actor_id", default=None)
_request_path: ContextVar[Optional[str]] = ContextVar("log_request_path", default=None)


class LogContext:
    """Request-scoped fields merged into every log line."""

    @staticmethod
    def bind(*, actor_id: Optional[str] = None, request_path: Optional[str] = None) -> None:
        if actor_id is not None:
            _actor_id.set(actor_id)
        if request_path is not None:
            _request_path.set(request_path)

    @staticmethod
    def get_all() -> Dict[str, str]:
        ctx: Dict[str, str] = {}
        if _actor_id.get() is not None:
            ctx["actor_id"] = _actor_id.get()
        if _request_path.get() is not None:
            ctx["request_path"] = _request_path.get()
        return ctx

    @staticmethod
    def clear() -> None:
        _actor_id.set(None)
        _request_path.set(None)


_STDLIB_KEYS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        # Fields passed through `extra=`
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default, ensure_ascii=False)


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Install a single stdout handler on the package logger."""
    root = logging.getLogger("hr_approval")
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    root.propagate = False
