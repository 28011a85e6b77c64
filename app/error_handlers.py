from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import StatementError
from starlette.exceptions import HTTPException as StarletteHTTPException

from Security.data_encryption_at_rest import FieldEncryptionError


logger = logging.getLogger("app.errors")

SENSITIVE_FIELD_DETAIL = "Sensitive field could not be processed"


def _field_error_response(request: Request, exc: BaseException) -> JSONResponse:
    # Only the class name is logged; messages never carry field values
    logger.error("field encryption error on %s %s: %s", request.method, request.url.path, exc.__class__.__name__)
    return JSONResponse(status_code=500, content={"detail": SENSITIVE_FIELD_DETAIL})


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return await request_validation_exception_handler(request, exc)

    @app.exception_handler(HTTPException)
    async def fastapi_http_exception_handler(request: Request, exc: HTTPException):
        return await http_exception_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await http_exception_handler(request, exc)

    @app.exception_handler(FieldEncryptionError)
    async def field_encryption_exception_handler(request: Request, exc: FieldEncryptionError):
        return _field_error_response(request, exc)

    @app.exception_handler(StatementError)
    async def statement_exception_handler(request: Request, exc: StatementError):
        # Errors raised inside column types arrive wrapped by SQLAlchemy
        if isinstance(exc.orig, FieldEncryptionError):
            return _field_error_response(request, exc.orig)
        logger.exception("database error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
