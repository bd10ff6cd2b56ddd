"""Response envelope helpers.

Every endpoint answers with `{success, message, data, errors}`. Routes
build successful envelopes with `ok()` and turn service errors into
HTTPExceptions with `http_error()`; the middleware in `middleware.py`
turns those into failed envelopes.
"""

from typing import Any, Optional

from fastapi import HTTPException

from .services import ConflictError, NotFoundError

DEFAULT_ERROR_MESSAGES = {
    400: "Bad request. Please check your input.",
    401: "Authentication required.",
    403: "Access denied.",
    404: "Resource not found.",
    409: "Conflict occurred.",
    422: "Validation failed.",
    500: "Internal server error.",
}
FALLBACK_ERROR_MESSAGE = "An error occurred."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def default_message(status_code: int) -> str:
    return DEFAULT_ERROR_MESSAGES.get(status_code, FALLBACK_ERROR_MESSAGE)


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    return {"success": True, "message": message, "data": data, "errors": None}


def fail(message: str, errors: Any = None, **extra) -> dict:
    body = {"success": False, "message": message, "data": None, "errors": errors}
    body.update(extra)
    return body


def http_error(exc: ValueError) -> HTTPException:
    """Map a service error to the matching HTTP status (404, 409 or 400)."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
