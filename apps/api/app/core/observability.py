"""
Structured event log (JSON lines on stdout).

Line keys: ts, level, message, request_id, event, module (+ extra).
The HTTP middleware binds the current request id so service events carry it.
"""
from __future__ import annotations

import datetime
import json
import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

from .config import get_log_level

_log = logging.getLogger("app")

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def configure_logging() -> None:
    if not _log.handlers:
        logging.basicConfig(level=get_log_level())


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def emit(
    level: str,
    event: str,
    message: str,
    *,
    module: str,
    request_id: Optional[str] = None,
    **extra: Any,
) -> None:
    payload: Dict[str, Any] = {
        "ts": _now_iso(),
        "level": level.lower(),
        "message": message,
        "request_id": request_id if request_id is not None else request_id_var.get(),
        "event": event,
        "module": module,
    }
    payload.update(extra)
    print(json.dumps(payload, ensure_ascii=False, default=str), flush=True)
