"""
Exception handlers mapping domain errors onto HTTP responses.

- ValidationError  -> 400 {"error": ..., "field": ...}
- NotFoundError    -> 404 {"error": ...}
- IdentityError    -> 401 {"error": ...}
- RecordStoreError -> 500 {"error": ...}, 503 when the store is unreachable
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from timetrack.utils.errors import (
    IdentityError,
    NotFoundError,
    RecordStoreError,
    ValidationError,
    create_app_error,
    get_error_message,
    is_network_error,
    log_error,
)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": exc.message, "field": exc.field})


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": exc.message})


async def identity_error_handler(request: Request, exc: IdentityError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"error": get_error_message(exc)})


async def record_store_error_handler(request: Request, exc: RecordStoreError) -> JSONResponse:
    app_error = create_app_error(exc, context=f"{request.method} {request.url.path}")
    log_error(app_error)
    status_code = 503 if is_network_error(exc) else 500
    return JSONResponse(status_code=status_code, content={"error": app_error.message})


def install_error_handlers(app: FastAPI) -> None:
    # NotFoundError subclasses RecordStoreError; Starlette resolves handlers
    # along the exception's MRO, so the more specific one wins.
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(IdentityError, identity_error_handler)
    app.add_exception_handler(RecordStoreError, record_store_error_handler)
