from __future__ import annotations

import json
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

# (request id, path) of the request being served, for records logged by services
_request_context: ContextVar[Optional[Tuple[str, str]]] = ContextVar("teachback_request", default=None)

REQUEST_ID_HEADER = "X-Request-ID"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the current request when there is one."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        data: Dict[str, Any] = {
            "level": record.levelname,
            "ts": int(time.time() * 1000),
            "logger": record.name,
            "message": record.getMessage(),
        }
        ctx = _request_context.get()
        if ctx is not None:
            data["request_id"], data["path"] = ctx
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def _resolve_level(value: Optional[str], default: int = logging.INFO) -> int:
    if not value:
        return default
    value = value.strip()
    if value.isdigit():
        return int(value)
    lvl = logging.getLevelName(value.upper())
    if isinstance(lvl, str):
        return default
    return int(lvl)


def setup_logging(level: Optional[str] = None) -> None:
    resolved_level = _resolve_level(level)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(resolved_level)
    for name in ("teachback", "teachback.access", "teachback.relay", "teachback.transcript", "teachback.notes"):
        logging.getLogger(name).setLevel(resolved_level)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id for the duration of a request and writes the access record."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        token = _request_context.set((request_id, request.url.path))
        start = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logging.getLogger("teachback.access").info(
                "%s %s -> %d in %dms",
                request.method,
                request.url.path,
                response.status_code,
                int((time.perf_counter() - start) * 1000),
            )
            return response
        finally:
            _request_context.reset(token)


def install_app_logging(app: FastAPI) -> None:
    app.add_middleware(RequestContextMiddleware)
