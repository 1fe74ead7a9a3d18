"""
Error normalization and handlers.

Every error leaves the service in one envelope:

    {"error": {"code", "message", "request_id", ...}, "detail": message}

with the request id echoed in the `x-request-id` header. Gate denials add
`reason` and `redirect_to` to the error object so clients can route the user.
"""

import builtins
import logging
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from creditpath.core.logging import get_request_id, log_event


logger = logging.getLogger("creditpath")

# HTTPException status -> error code; anything else is "http_error".
_HTTP_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
}


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id

    def extra_payload(self) -> dict:
        """Additional fields merged into the error object."""
        return {}


class PermissionError(AppError, builtins.PermissionError):
    code = "forbidden"
    status_code = 403


class AccessDeniedError(PermissionError):
    """The access gate denied the requested action."""
    code = "access_denied"

    def __init__(self, message: str, *, reason: str, redirect_to: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason
        self.redirect_to = redirect_to

    def extra_payload(self) -> dict:
        return {"reason": self.reason, "redirect_to": self.redirect_to}


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class CheckoutInProgressError(ConflictError):
    """A checkout or portal request is already in flight for the session."""
    code = "checkout_in_progress"


class UpstreamError(AppError):
    """The billing backend failed or was unreachable."""
    code = "upstream_error"
    status_code = 502


def _request_id(request: Request, preferred: Optional[str] = None) -> str:
    return (
        preferred
        or getattr(request.state, "request_id", None)
        or get_request_id()
        or str(uuid4())
    )


def _error_response(status_code: int, code: str, message: str, rid: str, extra: Optional[dict] = None) -> JSONResponse:
    error = {"code": code, "message": message, "request_id": rid}
    if extra:
        error.update(extra)
    response = JSONResponse(status_code=status_code, content={"error": error, "detail": message})
    response.headers["x-request-id"] = rid
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = _request_id(request, exc.request_id)
    log_event(
        "error" if exc.status_code >= 500 else "warning",
        "app.error",
        request_id=rid,
        error_code=exc.code,
        extra={"status": exc.status_code, "error_message": exc.message},
    )
    return _error_response(exc.status_code, exc.code, exc.message, rid, exc.extra_payload())


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _request_id(request)
    code = _HTTP_CODES.get(exc.status_code, "http_error")
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else "HTTP error"
    log_event("warning", "http.error", request_id=rid, error_code=code, extra={"status": exc.status_code})
    return _error_response(exc.status_code, code, message, rid)


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _request_id(request)
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    return _error_response(500, "internal_error", "Unexpected error", rid)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
