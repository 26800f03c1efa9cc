import logging
import traceback

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import StoreError, StorePermissionError, to_http_exception

logger = logging.getLogger(__name__)

VALIDATION_MESSAGE = "Please review your entries and try again."


def _error_response(exc: HTTPException, kind: str) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": kind},
        headers=getattr(exc, "headers", None),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


def http_error(_: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(exc, "http_error")


def validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "detail": jsonable_errors(exc),
            "message": VALIDATION_MESSAGE,
            "type": "validation_error",
        },
    )


def store_error(request: Request, exc: StoreError) -> JSONResponse:
    # Services wrap their own calls; this catches reads made outside them.
    if isinstance(exc, StorePermissionError):
        http_exc = to_http_exception(exc, exc.path, exc.operation)
    else:
        http_exc = to_http_exception(exc, request.url.path, request.method.lower())
    return _error_response(http_exc, "store_error")


def server_error(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    if settings.expose_errors:
        detail = {
            "type": exc.__class__.__name__,
            "message": str(exc) or "Unhandled error",
            "trace": traceback.format_exc(),
        }
    else:
        detail = "Internal Server Error"
    return JSONResponse(status_code=500, content={"detail": detail, "type": "server_error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_error)
    app.add_exception_handler(RequestValidationError, validation_error)
    app.add_exception_handler(StoreError, store_error)
    app.add_exception_handler(Exception, server_error)
