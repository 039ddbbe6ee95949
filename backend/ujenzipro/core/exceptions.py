"""
Application exceptions and the FastAPI handlers that serialize them.

Every error leaves the API as ``{"error": {"message", "path", ...}}``; the
live WebSocket routes send the same envelope before closing.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ujenzipro.core.integrations.observability import record_exception

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""
    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    @property
    def is_client_error(self) -> bool:
        return self.status_code < 500

    def envelope(self, path: Optional[str] = None) -> Dict[str, Any]:
        return error_envelope(self.message, path, details=self.details)


class NotFoundError(AppException):
    """Requested record does not exist."""
    def __init__(self, message: str = "Not found", details: Any = None):
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class InvalidStatusTransitionError(AppException):
    """A status change would move a delivery backwards or out of a terminal state."""
    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot change status from '{current}' to '{target}'",
            status_code=status.HTTP_409_CONFLICT,
            details={"current": current, "target": target},
        )
        self.current = current
        self.target = target


class BackendUnavailableError(AppException):
    """The data backend rejected or failed a read/write."""
    def __init__(self, message: str = "Data backend unavailable", details: Any = None):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)


def error_envelope(message: str, path: Optional[str] = None, **fields: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"message": message}
    body.update(fields)
    if path is not None:
        body["path"] = path
    return {"error": body}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    path = request.url.path
    log = logger.warning if exc.is_client_error else logger.error
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra={"status_code": exc.status_code, "path": path, "details": exc.details},
    )
    if not exc.is_client_error:
        record_exception(exc, path)
    return JSONResponse(status_code=exc.status_code, content=exc.envelope(path))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # unknown routes and wrong methods
    path = request.url.path
    logger.warning(f"HTTP {exc.status_code}: {exc.detail}", extra={"path": path})
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.detail, path, status_code=exc.status_code),
    )


def _serialize_validation_errors(errors: list) -> list:
    """
    Make pydantic error entries JSON-safe.

    Coordinate-pair and bound validators raise ValueError, which pydantic
    keeps as an exception object under ``ctx``.
    """
    def plain(value):
        return str(value) if isinstance(value, Exception) else value

    serialized = []
    for error in errors:
        entry = {key: plain(value) for key, value in error.items() if key != "ctx"}
        if isinstance(error.get("ctx"), dict):
            entry["ctx"] = {key: plain(value) for key, value in error["ctx"].items()}
        serialized.append(entry)
    return serialized


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    path = request.url.path
    errors = _serialize_validation_errors(exc.errors())
    logger.warning(
        f"Rejected request body on {path}",
        extra={"path": path, "fields": [".".join(str(p) for p in e.get("loc", ())) for e in errors]},
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_envelope("Validation error", path, details=errors),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    path = request.url.path
    logger.exception(
        f"Unhandled exception: {exc}",
        extra={"path": path, "exception_type": type(exc).__name__},
    )
    record_exception(exc, path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope("Internal server error", path),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
