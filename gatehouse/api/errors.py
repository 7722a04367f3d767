"""
Error responses.

Every failure leaves the service as ``{"ok": false, "message": ...}``.
Diagnostic causes stay in the audit log and never reach the body.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from gatehouse.core.errors import AppError, Err

logger = logging.getLogger("gatehouse.api")


def error_response(err: Err) -> JSONResponse:
    """Map a core error to its HTTP status and generic body."""
    return JSONResponse(
        status_code=err.status_code,
        content={"ok": False, "message": err.message},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(exc.error)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"[HTTP] {request.method} {request.url.path} rejected: {exc.errors()}")
    return JSONResponse(status_code=400, content={"ok": False, "message": "Validation failed"})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[HTTP] Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"ok": False, "message": "Internal Server Error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
