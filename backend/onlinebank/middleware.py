"""HTTP middleware and exception handlers.

Installed by `install(app)`, from the outside in:

- correlation id: echoes `X-Correlation-ID` or generates one
- global exception guard: unhandled errors become a 200 envelope with an
  `errorId` that is also written to the log
- response time: adds `X-Response-Time: <n>ms`
- request logging: method, path and status
- status transform: any response with status >= 400 is rewritten to a
  200 envelope carrying `originalStatus`

Clients therefore always read `success` rather than the HTTP status.
"""

import json
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .responses import UNEXPECTED_ERROR_MESSAGE, default_message, fail

logger = logging.getLogger("onlinebank.http")

CORRELATION_HEADER = "X-Correlation-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"
VALUE_ERROR_PREFIX = "Value error, "
# Headers that must not be copied onto a rebuilt body.
DROPPED_HEADERS = {"content-length", "content-type"}


def sanitize(value) -> str:
    """Strip characters that could forge extra log lines."""
    return str(value).replace("\r", "").replace("\n", "").replace("\t", "")


def validation_errors(exc: RequestValidationError) -> dict:
    """Group pydantic errors by field name."""
    errors = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "form")]
        field = ".".join(loc) or "general"
        msg = err.get("msg", "")
        if msg.startswith(VALUE_ERROR_PREFIX):
            msg = msg[len(VALUE_ERROR_PREFIX):]
        errors.setdefault(field, []).append(msg)
    return errors


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = validation_errors(exc)
    logger.info("validation failed for %s %s: %s", request.method, sanitize(request.url.path), errors)
    return JSONResponse(status_code=400, content=fail("Validation failed.", errors))


async def _read_body(response) -> bytes:
    chunks = [chunk async for chunk in response.body_iterator]
    return b"".join(c if isinstance(c, bytes) else c.encode() for c in chunks)


def _error_envelope(status_code: int, raw: bytes) -> dict:
    message, errors = None, None
    try:
        payload = json.loads(raw) if raw else None
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        detail = payload.get("detail")
        message = payload.get("message")
        errors = payload.get("errors")
        if message is None and isinstance(detail, str):
            message = detail
        elif errors is None and detail is not None and not isinstance(detail, str):
            errors = detail
    return fail(message or default_message(status_code), errors, originalStatus=status_code)


def install(app: FastAPI) -> None:
    """Register the exception handlers and middleware stack on `app`."""
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    @app.middleware("http")
    async def status_transform(request: Request, call_next):
        response = await call_next(request)
        if response.status_code < 400:
            return response
        raw = await _read_body(response)
        headers = {k: v for k, v in response.headers.items() if k.lower() not in DROPPED_HEADERS}
        return JSONResponse(status_code=200, content=_error_envelope(response.status_code, raw), headers=headers)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        method, path = sanitize(request.method), sanitize(request.url.path)
        logger.info("Incoming Request: %s %s", method, path)
        response = await call_next(request)
        logger.info("Response: %s %s -> %s", method, path, response.status_code)
        return response

    @app.middleware("http")
    async def response_time(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        response.headers[RESPONSE_TIME_HEADER] = f"{elapsed_ms}ms"
        return response

    @app.middleware("http")
    async def global_exception_guard(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            error_id = uuid.uuid4().hex[:8]
            logger.exception(
                "unhandled error %s on %s %s", error_id, sanitize(request.method), sanitize(request.url.path)
            )
            return JSONResponse(status_code=200, content=fail(UNEXPECTED_ERROR_MESSAGE, errorId=error_id))

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        cid = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = cid
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = cid
        return response
