from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException


class ErrorResponse(BaseModel):
    message: str
    details: Optional[str] = None


class TeachbackError(Exception):
    """Base for failures the HTTP layer turns into `{message, details}`."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(TeachbackError):
    """Required vendor credentials are missing."""


class RelayError(TeachbackError):
    pass


class RelayTimeoutError(RelayError, TimeoutError):
    pass


class ConnectionClosedError(RelayError):
    pass


class TransportError(RelayError):
    pass


class UpstreamError(TeachbackError):
    """A vendor REST call failed; `status` is None when no response arrived."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message, details=body or None)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        if self.status is None:
            return f"{self.message}: {self.body}" if self.body else self.message
        return f"{self.message} ({self.status}): {self.body}"


class ValidationError(TeachbackError):
    status_code = 400


def _error_content(message: str, details: Optional[str] = None) -> Dict[str, Any]:
    return ErrorResponse(message=message, details=details).model_dump(exclude_none=True)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def _handle_http_exception(request: Request, exc: HTTPException):  # type: ignore[unused-variable]
        if isinstance(exc.detail, dict):
            content = _error_content(str(exc.detail.get("message", "")), exc.detail.get("details"))
        else:
            content = _error_content(str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(TeachbackError)
    async def _handle_teachback_error(request: Request, exc: TeachbackError):  # type: ignore[unused-variable]
        return JSONResponse(status_code=exc.status_code, content=_error_content(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: Request, exc: RequestValidationError):  # type: ignore[unused-variable]
        return JSONResponse(status_code=400, content=_error_content("Invalid request body", str(exc.errors())))

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):  # type: ignore[unused-variable]
        logging.getLogger("teachback").exception("unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content=_error_content("internal error"))
